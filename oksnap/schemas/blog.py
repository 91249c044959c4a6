from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Nutrition(BaseModel):
    model_config = ConfigDict(extra="ignore")

    calories: int | float = 0
    protein: int | float = 0
    carbs: int | float = 0
    fat: int | float = 0

    @field_validator("calories", "protein", "carbs", "fat", mode="before")
    @classmethod
    def _none_is_zero(cls, value):
        return 0 if value is None else value


class DishData(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    name: str | None = None
    name_korean: str | None = None
    description: str | None = None
    cuisine: str | None = None
    is_korean: bool = False
    nutrition: Nutrition = Field(default_factory=Nutrition)

    @field_validator("name", "name_korean", "description", "cuisine", mode="before")
    @classmethod
    def _strip(cls, value):
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator("nutrition", mode="before")
    @classmethod
    def _nutrition_default(cls, value):
        return {} if value is None else value

    @field_validator("is_korean", mode="before")
    @classmethod
    def _is_korean_default(cls, value):
        return bool(value)


class GenerateBlogRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    dish_data: DishData | None = None


class BlogExistsResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    exists: bool
    slug: str
    blog_url: str | None = None
    image_url: str | None = None
