"""
Daily scan-quota records and the results the ledger hands back.
Records are stored as JSON values in the key-value store; field names on the wire are camelCase.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class QuotaRecord(CamelModel):
    """
    Scans consumed by one identity on one UTC day.
    A record whose date is not today is expired and must be treated as absent.
    """
    count: int = Field(default=0, ge=0)
    date: str
    level: Optional[str] = None
    bonus_applied: bool = False

    @classmethod
    def from_value(cls, value) -> Optional["QuotaRecord"]:
        """Build from a stored value, tolerating the legacy snake_case column layout."""
        if not isinstance(value, dict):
            return None
        date = value.get("date") or value.get("date_string")
        if not date:
            return None
        return cls(
            count=max(0, int(value.get("count") or 0)),
            date=date,
            level=value.get("level"),
            bonus_applied=bool(value.get("bonusApplied") or value.get("bonus_applied") or False),
        )

    def is_for(self, day: str) -> bool:
        return self.date == day


class GuestUsageRecord(CamelModel):
    """Scans made anonymously from one IP today, kept so a later sign-in can be credited."""
    count: int = Field(default=0, ge=0)
    date: str

    @classmethod
    def from_value(cls, value) -> Optional["GuestUsageRecord"]:
        if not isinstance(value, dict) or not value.get("date"):
            return None
        return cls(count=max(0, int(value.get("count") or 0)), date=value["date"])


class QuotaDecision(CamelModel):
    allowed: bool
    remaining: int
    limit: int
    level: str
    reset_time: Optional[str] = None
    bonus_applied: Optional[bool] = None


class QuotaStatus(CamelModel):
    remaining: int
    limit: int
    level: str


class DecrementResult(CamelModel):
    success: bool = True
    remaining: int
    limit: int
    level: str
    count: int = 0
    message: Optional[str] = None


class BonusResult(CamelModel):
    bonus_applied: bool
    guest_scans_used: Optional[int] = None
    bonus_scans: Optional[int] = None
    remaining: Optional[int] = None
