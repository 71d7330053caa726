import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from injection_rotation.core.clock import FixedClock  # noqa: E402
from injection_rotation.models.enums import BodyView, InjectionType  # noqa: E402
from injection_rotation.models.injection import Site  # noqa: E402
from injection_rotation.services.catalog import SiteCatalog  # noqa: E402
from injection_rotation.services.injection_history import InjectionHistory  # noqa: E402
from injection_rotation.services.rotation_service import RotationService  # noqa: E402
from injection_rotation.services.store import MemoryHistoryBackend  # noqa: E402

START = datetime(2026, 1, 1, 8, 0, tzinfo=timezone.utc)


@pytest.fixture()
def clock():
    return FixedClock(START)


@pytest.fixture()
def four_site_catalog():
    """A, B, C, D: all subcutaneous, no intramuscular sites."""
    return SiteCatalog(
        [Site(id=sid, type=InjectionType.SUBQ, view=BodyView.FRONT, label=f"Site {sid}") for sid in "ABCD"]
    )


@pytest.fixture()
def mixed_catalog():
    return SiteCatalog(
        [
            Site(id="abd-left", type=InjectionType.SUBQ, view=BodyView.FRONT, label="Abdomen (Left)"),
            Site(id="thigh-left", type=InjectionType.IM, view=BodyView.FRONT, label="Thigh (Left)"),
            Site(id="abd-right", type=InjectionType.SUBQ, view=BodyView.FRONT, label="Abdomen (Right)"),
            Site(id="glute-left", type=InjectionType.IM, view=BodyView.BACK, label="Glute (Left)"),
            Site(id="arm-left", type=InjectionType.SUBQ, view=BodyView.BACK, label="Upper Arm (Left)"),
        ]
    )


@pytest.fixture()
def backend():
    return MemoryHistoryBackend()


@pytest.fixture()
def service(backend, four_site_catalog, clock):
    history = InjectionHistory(backend, four_site_catalog, clock=clock, unknown_site_policy="warn")
    return RotationService(history, four_site_catalog, clock=clock)


@pytest.fixture()
def mixed_service(backend, mixed_catalog, clock):
    history = InjectionHistory(backend, mixed_catalog, clock=clock, unknown_site_policy="reject")
    return RotationService(history, mixed_catalog, clock=clock)
