import logging
import threading
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from pydantic import ValidationError

from injection_rotation.core.clock import Clock, SystemClock
from injection_rotation.models.injection import InjectionRecord
from injection_rotation.services.catalog import SiteCatalog
from injection_rotation.services.store import HistoryBackend, PersistenceError

logger = logging.getLogger(__name__)

UNKNOWN_SITE_POLICIES = ("reject", "warn", "accept")


class SiteValidationError(ValueError):
    """An injection could not be logged because its input is invalid."""


def last_used(history: Sequence[InjectionRecord], site_id: str) -> Optional[datetime]:
    # Newest entry wins; the same site appears many times
    for record in reversed(history):
        if record.site_id == site_id:
            return record.timestamp
    return None


class InjectionHistory:
    """
    Append-only log of injections.
    Loaded once from the backend; every append rewrites the whole collection.
    """

    def __init__(
        self,
        backend: HistoryBackend,
        catalog: SiteCatalog,
        clock: Optional[Clock] = None,
        unknown_site_policy: str = "warn",
    ):
        if unknown_site_policy not in UNKNOWN_SITE_POLICIES:
            raise ValueError(f"Invalid unknown site policy: {unknown_site_policy}")
        self.backend = backend
        self.catalog = catalog
        self.clock = clock or SystemClock()
        self.unknown_site_policy = unknown_site_policy
        # Guards the build, save and swap of the history as one step
        self._lock = threading.Lock()
        self._records: Tuple[InjectionRecord, ...] = self._load()

    def _load(self) -> Tuple[InjectionRecord, ...]:
        raw = self.backend.load()
        try:
            records = tuple(InjectionRecord.model_validate(item) for item in raw)
        except ValidationError as exc:
            raise PersistenceError(f"Stored injection history is corrupt: {exc}") from exc
        logger.info("Loaded injection history (%d records)", len(records))
        return records

    @property
    def records(self) -> Tuple[InjectionRecord, ...]:
        return self._records

    def __len__(self) -> int:
        return len(self._records)

    def log_injection(self, site_id: str, compound_name: str, notes: Optional[str] = None) -> InjectionRecord:
        # Ids are recorded verbatim; only blank input is refused
        if not site_id or not site_id.strip():
            raise SiteValidationError("site_id is required")
        if not compound_name or not compound_name.strip():
            raise SiteValidationError("compound_name is required")

        if site_id not in self.catalog:
            if self.unknown_site_policy == "reject":
                raise SiteValidationError(f"Unknown injection site: {site_id}")
            if self.unknown_site_policy == "warn":
                logger.warning(f"Logging injection at site not in catalog: {site_id}")

        with self._lock:
            record = InjectionRecord(
                site_id=site_id,
                timestamp=self.clock.now(),
                compound_name=compound_name,
                notes=notes,
            )
            updated = self._records + (record,)
            try:
                self.backend.save([r.to_storage() for r in updated])
            except PersistenceError:
                logger.error(f"Failed to persist injection at {site_id}; history unchanged")
                raise
            self._records = updated

        logger.info(f"Injection logged: {site_id} ({compound_name})")
        return record

    def get_last_used(self, site_id: str) -> Optional[datetime]:
        return last_used(self._records, site_id)

    def recent(self, limit: int = 20) -> List[InjectionRecord]:
        """Latest records first."""
        if limit <= 0:
            return []
        return list(reversed(self._records[-limit:]))
