from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from oksnap.schemas.scan import normalize_user_id


class IdentifyRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    image_data: str | None = None
    target_language: str | None = None
    user_id: str | None = None

    @field_validator("user_id", mode="before")
    @classmethod
    def _normalize_user_id(cls, value):
        return normalize_user_id(value)
