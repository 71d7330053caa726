import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from injection_rotation.core.clock import Clock, SystemClock
from injection_rotation.core.db import create_tables, init_db
from injection_rotation.core.settings import Settings
from injection_rotation.models.enums import InjectionType, RecencyBucket
from injection_rotation.models.injection import InjectionRecord, Recommendation, RotationBreakdown, SiteRecency
from injection_rotation.services import recency, recommendation, rotation_score
from injection_rotation.services.catalog import SiteCatalog, load_catalog
from injection_rotation.services.injection_history import InjectionHistory
from injection_rotation.services.store import DataStore, HistoryBackend, JsonHistoryBackend, SqlHistoryBackend

logger = logging.getLogger(__name__)


class RotationService:
    """
    Operations the UI layer calls.
    Every read is derived from the current history snapshot and the clock; nothing is cached between calls.
    """

    def __init__(
        self,
        history: InjectionHistory,
        catalog: SiteCatalog,
        clock: Optional[Clock] = None,
        window_size: int = rotation_score.DEFAULT_WINDOW_SIZE,
        recommendation_count: int = 3,
    ):
        self.history = history
        self.catalog = catalog
        self.clock = clock or history.clock
        self.window_size = window_size
        self.recommendation_count = recommendation_count

    def _now(self) -> datetime:
        return self.clock.now()

    def log_injection(self, site_id: str, compound_name: str, notes: Optional[str] = None) -> InjectionRecord:
        return self.history.log_injection(site_id, compound_name, notes)

    def get_last_used(self, site_id: str) -> Optional[datetime]:
        return self.history.get_last_used(site_id)

    def get_next_recommended(self, injection_type: InjectionType, count: Optional[int] = None) -> List[Recommendation]:
        if count is None:
            count = self.recommendation_count
        return recommendation.rank_sites(self.history.records, self.catalog, injection_type, count, self._now())

    def get_least_recently_used(self, injection_type: InjectionType) -> Optional[str]:
        return recommendation.least_recently_used(self.history.records, self.catalog, injection_type, self._now())

    def get_rotation_score(self) -> int:
        return rotation_score.rotation_score(self.history.records, len(self.catalog), self.window_size)

    def get_score_breakdown(self) -> RotationBreakdown:
        return rotation_score.rotation_breakdown(self.history.records, len(self.catalog), self.window_size)

    def get_recency_color(self, site_id: str) -> RecencyBucket:
        return recency.recency_for_site(self.history.records, site_id, self._now())

    def get_recency_map(self) -> List[SiteRecency]:
        return recency.recency_map(self.history.records, self.catalog, self._now())

    def get_recent_history(self, limit: int = 20) -> List[InjectionRecord]:
        return self.history.recent(limit)


def build_backend(settings: Settings) -> HistoryBackend:
    key = settings.data.history_key
    engine = init_db(settings.database.url)
    if engine is not None:
        create_tables(engine)
        return SqlHistoryBackend(engine, key)
    return JsonHistoryBackend(DataStore(Path(settings.data.data_dir)), key)


def build_rotation_service(settings: Settings, clock: Optional[Clock] = None) -> RotationService:
    catalog = load_catalog(settings.catalog.path)
    clock = clock or SystemClock()
    history = InjectionHistory(
        build_backend(settings),
        catalog,
        clock=clock,
        unknown_site_policy=settings.catalog.unknown_site_policy,
    )
    logger.info(
        "Rotation service ready (%d catalog sites, policy=%s)",
        len(catalog),
        settings.catalog.unknown_site_policy,
    )
    return RotationService(
        history,
        catalog,
        clock=clock,
        window_size=settings.rotation.window_size,
        recommendation_count=settings.rotation.recommendation_count,
    )
