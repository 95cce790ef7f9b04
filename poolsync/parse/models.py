"""Data models for pool snapshots and the rows written to the store."""
from datetime import date as calendar_date
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Transaction(BaseModel):
    """One discrete contribution reported by the pool page."""

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    date: datetime = Field(..., description="UTC instant of the contribution")
    amount: float = Field(..., strict=True, description="Amount, not range checked")
    contributor_id: str = Field(..., description="Opaque contributor identifier")
    id: Optional[str] = Field(default=None, description="Remote transaction id (informational)")

    @field_validator("date")
    @classmethod
    def _normalize_date(cls, value: datetime) -> datetime:
        return as_utc(value)


class CampaignSnapshot(BaseModel):
    """Decoded view of the pool at fetch time. Never persisted as such."""

    model_config = ConfigDict(frozen=True)

    pool_id: str
    title: str = ""
    owner_id: str
    owner_name: str = ""
    owner_pledge: float
    transactions: Tuple[Transaction, ...] = ()
    contributors: Dict[str, str] = Field(default_factory=dict, description="contributor id -> display name")


class Contributor(BaseModel):
    """Row of the contributors table."""

    model_config = ConfigDict(frozen=True)

    contributor_id: str
    full_name: str

    def to_row(self) -> dict[str, Any]:
        return self.model_dump()


class Payment(BaseModel):
    """Row of the payments table."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Stable identifier: unix seconds + contributor id")
    date: calendar_date
    amount: float
    contributor_id: str

    def to_row(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
