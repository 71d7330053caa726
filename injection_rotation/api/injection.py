import logging
from datetime import datetime
from functools import lru_cache
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from injection_rotation.core.settings import get_settings
from injection_rotation.models.enums import InjectionType, RecencyBucket
from injection_rotation.models.injection import Recommendation, RotationBreakdown, Site, SiteRecency
from injection_rotation.services.injection_history import SiteValidationError
from injection_rotation.services.rotation_service import RotationService, build_rotation_service
from injection_rotation.services.store import PersistenceError

logger = logging.getLogger(__name__)

router = APIRouter()


@lru_cache(maxsize=1)
def get_rotation_service() -> RotationService:
    return build_rotation_service(get_settings())


class LogInjectionRequest(BaseModel):
    site_id: str = Field(min_length=1)
    compound_name: str = Field(min_length=1)
    notes: Optional[str] = None


class InjectionRecordResponse(BaseModel):
    site_id: str
    timestamp: datetime
    compound_name: str
    notes: Optional[str] = None
    site_label: str


class LastUsedResponse(BaseModel):
    site_id: str
    last_used: Optional[datetime] = None


class RecencyResponse(BaseModel):
    site_id: str
    bucket: RecencyBucket


def _to_response(service: RotationService, record) -> InjectionRecordResponse:
    return InjectionRecordResponse(
        site_id=record.site_id,
        timestamp=record.timestamp,
        compound_name=record.compound_name,
        notes=record.notes,
        site_label=service.catalog.label_for(record.site_id),
    )


@router.get("/sites", response_model=List[Site])
def list_sites(service: RotationService = Depends(get_rotation_service)):
    return list(service.catalog)


@router.get("/history", response_model=List[InjectionRecordResponse])
def recent_history(
    limit: int = Query(default=20, ge=1, le=500),
    service: RotationService = Depends(get_rotation_service),
):
    """Most recent injections, newest first."""
    return [_to_response(service, r) for r in service.get_recent_history(limit)]


@router.post("/log", response_model=InjectionRecordResponse, status_code=status.HTTP_201_CREATED)
def log_injection(payload: LogInjectionRequest, service: RotationService = Depends(get_rotation_service)):
    try:
        record = service.log_injection(payload.site_id, payload.compound_name, payload.notes)
    except SiteValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except PersistenceError as e:
        logger.error(f"Injection log failed: {e}")
        raise HTTPException(status_code=503, detail="Could not save injection")
    return _to_response(service, record)


@router.get("/last-used/{site_id}", response_model=LastUsedResponse)
def last_used(site_id: str, service: RotationService = Depends(get_rotation_service)):
    return LastUsedResponse(site_id=site_id, last_used=service.get_last_used(site_id))


@router.get("/recommended", response_model=List[Recommendation])
def recommended(
    injection_type: InjectionType = Query(alias="type"),
    count: Optional[int] = Query(default=None, ge=1, le=50),
    service: RotationService = Depends(get_rotation_service),
):
    return service.get_next_recommended(injection_type, count)


@router.get("/recency", response_model=List[SiteRecency])
def recency_map(service: RotationService = Depends(get_rotation_service)):
    return service.get_recency_map()


@router.get("/recency/{site_id}", response_model=RecencyResponse)
def recency(site_id: str, service: RotationService = Depends(get_rotation_service)):
    return RecencyResponse(site_id=site_id, bucket=service.get_recency_color(site_id))


@router.get("/score", response_model=RotationBreakdown)
def score(service: RotationService = Depends(get_rotation_service)):
    return service.get_score_breakdown()
