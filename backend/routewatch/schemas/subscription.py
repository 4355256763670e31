from datetime import datetime, timezone
from typing import Annotated, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Location ids are stored in a 32-bit INTEGER column.
LocationId = Annotated[int, Field(ge=-(2**31), le=2**31 - 1)]


class SubscriptionCreate(BaseModel):
    user_id: Optional[str] = None
    email: str = ""
    origin_id: LocationId
    origin_code: str = ""
    destination_id: LocationId
    destination_code: str = ""
    date_time: datetime
    is_active: bool = True

    @field_validator("date_time")
    @classmethod
    def _normalize_date_time(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode="after")
    def _distinct_endpoints(self) -> "SubscriptionCreate":
        if self.origin_id == self.destination_id:
            raise ValueError("Origin and destination must be different")
        return self


# Columns that may not be set to null through a patch.
NON_NULLABLE_PATCH_FIELDS = frozenset(
    {
        "email",
        "origin_id",
        "origin_code",
        "destination_id",
        "destination_code",
        "date_time",
        "is_active",
    }
)


class SubscriptionUpdate(BaseModel):
    """Partial update. Only fields present in the request body are applied;
    unknown fields are ignored."""

    email: Optional[str] = None
    origin_id: Optional[LocationId] = None
    origin_code: Optional[str] = None
    destination_id: Optional[LocationId] = None
    destination_code: Optional[str] = None
    date_time: Optional[datetime] = None
    is_active: Optional[bool] = None
    last_checked_at: Optional[datetime] = None

    @field_validator("date_time", "last_checked_at")
    @classmethod
    def _normalize_timestamps(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @model_validator(mode="after")
    def _reject_nulls(self) -> "SubscriptionUpdate":
        for name in sorted(self.model_fields_set & NON_NULLABLE_PATCH_FIELDS):
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class SubscriptionResponse(BaseModel):
    id: UUID
    user_id: str
    email: str
    origin_id: int
    origin_code: str
    destination_id: int
    destination_code: str
    date_time: datetime
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_checked_at: Optional[datetime] = None

    @field_validator("date_time", "created_at", "updated_at", "last_checked_at")
    @classmethod
    def _attach_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # SQLite hands back naive values; everything is stored in UTC.
        return as_utc(value)

    class Config:
        from_attributes = True


class MessageResponse(BaseModel):
    message: str
