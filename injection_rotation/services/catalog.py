import json
import logging
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from pydantic import TypeAdapter, ValidationError

from injection_rotation.models.enums import BodyView, InjectionType
from injection_rotation.models.injection import Site

logger = logging.getLogger(__name__)

# --- DEFAULT SITES (order matters: it is the tie-break for recommendations) ---
DEFAULT_SITES = [
    Site(id="abd-left", type=InjectionType.SUBQ, view=BodyView.FRONT, label="Abdomen (Left)"),
    Site(id="abd-right", type=InjectionType.SUBQ, view=BodyView.FRONT, label="Abdomen (Right)"),
    Site(id="arm-left", type=InjectionType.SUBQ, view=BodyView.BACK, label="Upper Arm (Left)"),
    Site(id="arm-right", type=InjectionType.SUBQ, view=BodyView.BACK, label="Upper Arm (Right)"),
    Site(
        id="thigh-left",
        type=InjectionType.IM,
        view=BodyView.FRONT,
        label="Outer Thigh (Left)",
        muscle="Vastus lateralis",
    ),
    Site(
        id="thigh-right",
        type=InjectionType.IM,
        view=BodyView.FRONT,
        label="Outer Thigh (Right)",
        muscle="Vastus lateralis",
    ),
    Site(
        id="glute-left",
        type=InjectionType.IM,
        view=BodyView.BACK,
        label="Glute (Left)",
        muscle="Gluteus medius",
    ),
    Site(
        id="glute-right",
        type=InjectionType.IM,
        view=BodyView.BACK,
        label="Glute (Right)",
        muscle="Gluteus medius",
    ),
]

_SITE_LIST = TypeAdapter(List[Site])


class SiteCatalog:
    """Read-only list of valid injection sites, kept in enumeration order."""

    def __init__(self, sites: Iterable[Site]):
        self._sites = tuple(sites)
        self._by_id = {}
        for site in self._sites:
            if site.id in self._by_id:
                raise ValueError(f"Duplicate site id in catalog: {site.id}")
            self._by_id[site.id] = site

    def __iter__(self) -> Iterator[Site]:
        return iter(self._sites)

    def __len__(self) -> int:
        return len(self._sites)

    def __contains__(self, site_id: object) -> bool:
        return site_id in self._by_id

    def get(self, site_id: str) -> Optional[Site]:
        return self._by_id.get(site_id)

    def by_type(self, injection_type: InjectionType) -> List[Site]:
        kind = InjectionType(injection_type)
        return [s for s in self._sites if s.type == kind]

    def label_for(self, site_id: str) -> str:
        site = self._by_id.get(site_id)
        return site.label if site else site_id


def default_catalog() -> SiteCatalog:
    return SiteCatalog(DEFAULT_SITES)


def load_catalog(path: Optional[Path]) -> SiteCatalog:
    """Loads a catalog from a JSON list of sites. Falls back to the built-in sites when no path is given."""
    if path is None:
        return default_catalog()
    try:
        with Path(path).open("r", encoding="utf-8") as fh:
            raw = json.load(fh)
        sites = _SITE_LIST.validate_python(raw)
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        raise RuntimeError(f"Invalid site catalog at {path}: {exc}") from exc
    logger.info("Loaded %d sites from %s", len(sites), path)
    return SiteCatalog(sites)
