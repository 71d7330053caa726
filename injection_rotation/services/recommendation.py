from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from injection_rotation.models.enums import InjectionType
from injection_rotation.models.injection import InjectionRecord, Recommendation
from injection_rotation.services.catalog import SiteCatalog
from injection_rotation.services.injection_history import last_used
from injection_rotation.services.recency import days_since


def _priority(position: int, days: Optional[int]) -> Tuple[int, int, int]:
    # Never used first, then longest unused; catalog position breaks ties
    if days is None:
        return (0, 0, position)
    return (1, -days, position)


def rank_sites(
    history: Sequence[InjectionRecord],
    catalog: SiteCatalog,
    injection_type: InjectionType,
    count: int,
    now: datetime,
) -> List[Recommendation]:
    """
    Orders the catalog sites of one injection type by rotation priority and returns the first `count`.
    Returns an empty list when the type has no sites or count is not positive.
    """
    if count <= 0:
        return []

    candidates = []
    for position, site in enumerate(catalog.by_type(injection_type)):
        last = last_used(history, site.id)
        days = days_since(last, now) if last is not None else None
        candidates.append((_priority(position, days), Recommendation(site_id=site.id, days_since_last_use=days)))

    candidates.sort(key=lambda item: item[0])
    return [rec for _, rec in candidates[:count]]


def least_recently_used(
    history: Sequence[InjectionRecord],
    catalog: SiteCatalog,
    injection_type: InjectionType,
    now: datetime,
) -> Optional[str]:
    ranked = rank_sites(history, catalog, injection_type, 1, now)
    return ranked[0].site_id if ranked else None
