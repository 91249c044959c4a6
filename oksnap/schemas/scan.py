from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from oksnap.core.plan_limits import MAX_DECREMENT_AMOUNT

# Values the web client sends when nobody is signed in
ANONYMOUS_USER_IDS = ("", "null", "undefined")


def normalize_user_id(value) -> str | None:
    """Empty, "null" and "undefined" mean a guest."""
    if value is None:
        return None
    value = str(value).strip()
    if value in ANONYMOUS_USER_IDS:
        return None
    return value


def _whole_number(value) -> int | None:
    """2, 2.0, "2" and "2.0" all mean 2. Booleans, fractions and other text are rejected."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


class ScanLimitRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str | None = None

    @field_validator("user_id", mode="before")
    @classmethod
    def _normalize_user_id(cls, value):
        return normalize_user_id(value)


class DecrementScanRequest(ScanLimitRequest):
    decrement_amount: int = 1

    @field_validator("decrement_amount", mode="before")
    @classmethod
    def _check_amount(cls, value):
        if value is None:
            return 1
        value = _whole_number(value)
        if value is None:
            raise ValueError("decrementAmount must be an integer")
        if value < 1 or value > MAX_DECREMENT_AMOUNT:
            raise ValueError(f"decrementAmount must be between 1 and {MAX_DECREMENT_AMOUNT}")
        return value
