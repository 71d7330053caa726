from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from injection_rotation.core.clock import ensure_utc
from injection_rotation.models.enums import BodyView, InjectionType, RecencyBucket, ScoreLabel


class InjectionRecord(BaseModel):
    """A single logged injection. Never mutated once appended to the history."""

    site_id: str = Field(
        validation_alias=AliasChoices("siteId", "site_id"),
        serialization_alias="siteId",
    )
    timestamp: datetime = Field(
        validation_alias=AliasChoices("date", "timestamp"),
        serialization_alias="date",
    )
    # Older payloads stored the compound under "peptideName"
    compound_name: str = Field(
        validation_alias=AliasChoices("compoundName", "peptideName", "compound_name"),
        serialization_alias="compoundName",
    )
    notes: Optional[str] = None

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @field_validator("timestamp")
    def _utc_timestamp(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_validator("notes", mode="before")
    def _blank_notes_are_absent(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def to_storage(self) -> dict[str, Any]:
        """JSON-ready dict. The notes key is left out entirely when there are none."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Site(BaseModel):
    id: str = Field(min_length=1)
    type: InjectionType
    view: BodyView
    label: str
    muscle: Optional[str] = None
    depth: Optional[str] = None
    notes: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class Recommendation(BaseModel):
    site_id: str
    days_since_last_use: Optional[int] = None

    model_config = ConfigDict(frozen=True)


class SiteRecency(BaseModel):
    site_id: str
    bucket: RecencyBucket
    last_used: Optional[datetime] = None


class RotationBreakdown(BaseModel):
    score: int = Field(ge=0, le=100)
    label: ScoreLabel
    window_size: int = 0
    diversity: float = 1.0
    repeat_penalty: float = 0.0
    evenness: float = 1.0
