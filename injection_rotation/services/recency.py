from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from injection_rotation.core.clock import ensure_utc
from injection_rotation.models.enums import RecencyBucket
from injection_rotation.models.injection import InjectionRecord, SiteRecency
from injection_rotation.services.catalog import SiteCatalog
from injection_rotation.services.injection_history import last_used

MS_PER_DAY = 86_400_000
FRESH_AFTER_DAYS = 7
CAUTION_AFTER_DAYS = 3


def days_since(then: datetime, now: datetime) -> int:
    """Whole days elapsed, floored: 23 hours is 0 days."""
    elapsed_ms = (ensure_utc(now) - ensure_utc(then)) // timedelta(milliseconds=1)
    return elapsed_ms // MS_PER_DAY


def classify(last: Optional[datetime], now: datetime) -> RecencyBucket:
    if last is None:
        return RecencyBucket.UNUSED
    days = days_since(last, now)
    if days >= FRESH_AFTER_DAYS:
        return RecencyBucket.FRESH
    if days >= CAUTION_AFTER_DAYS:
        return RecencyBucket.CAUTION
    return RecencyBucket.RECENT


def recency_for_site(history: Sequence[InjectionRecord], site_id: str, now: datetime) -> RecencyBucket:
    return classify(last_used(history, site_id), now)


def recency_map(history: Sequence[InjectionRecord], catalog: SiteCatalog, now: datetime) -> List[SiteRecency]:
    out = []
    for site in catalog:
        last = last_used(history, site.id)
        out.append(SiteRecency(site_id=site.id, bucket=classify(last, now), last_used=last))
    return out
