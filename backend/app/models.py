from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from backend.app.services.normalization import normalize_name


def utc_now() -> datetime:
    return datetime.utcnow()


class UserRole(str, Enum):
    admin = "admin"
    user = "user"
    guest = "guest"


class SuggestedAction(str, Enum):
    proceed = "proceed"
    review = "review"
    block = "block"


def _clean_name(value: str) -> str:
    cleaned = " ".join(value.split())
    if not cleaned:
        raise ValueError("name cannot be blank")
    if not normalize_name(cleaned):
        raise ValueError("name must contain letters")
    return cleaned


def _clean_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


class PersonCreateRequest(BaseModel):
    """A candidate person: not stored yet, so no id or creation time."""

    name: str = Field(min_length=1, max_length=120)
    father_name: Optional[str] = Field(default=None, max_length=120)
    father_id: Optional[str] = Field(default=None, max_length=120)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _clean_name(value)

    @field_validator("father_name", "father_id")
    @classmethod
    def clean_optional(cls, value: Optional[str]) -> Optional[str]:
        return _clean_optional(value)


class PersonUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    father_name: Optional[str] = Field(default=None, max_length=120)
    father_id: Optional[str] = Field(default=None, max_length=120)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return _clean_name(value)

    @field_validator("father_name", "father_id")
    @classmethod
    def clean_optional(cls, value: Optional[str]) -> Optional[str]:
        return _clean_optional(value)


class PersonRecord(BaseModel):
    id: str
    name: str
    father_name: Optional[str] = None
    father_id: Optional[str] = None
    created_at_utc: datetime


class PersonCreateResponse(BaseModel):
    person_id: str
    father_id: Optional[str]
    overridden: bool


class PersonClearResponse(BaseModel):
    deleted: int


class DuplicateMatch(BaseModel):
    person: PersonRecord
    confidence: float = Field(ge=0, le=1)
    reasons: list[str] = Field(default_factory=list)


class DuplicateDetectionResult(BaseModel):
    is_duplicate: bool
    matches: list[DuplicateMatch]
    suggested_action: SuggestedAction


class DuplicateCheckResponse(DuplicateDetectionResult):
    descriptions: list[str] = Field(default_factory=list)


class FamilyNode(BaseModel):
    person: PersonRecord
    children: list[FamilyNode] = Field(default_factory=list)

FamilyNode.model_rebuild()
