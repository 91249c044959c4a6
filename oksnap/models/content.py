"""
Published blog artifacts and the denormalized index (recipes.json) entries that list them.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from oksnap.utils.time_utils import utc_now

PUBLISH_CREATED = "created"
PUBLISH_ALREADY_EXISTS = "alreadyExists"


class IndexEntry(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    slug: str
    title: str
    # Kept alongside title for older site scripts that read `name`
    name: Optional[str] = None
    url: str
    created_at: Optional[str] = None

    @classmethod
    def from_value(cls, value) -> Optional["IndexEntry"]:
        if not isinstance(value, dict) or not value.get("slug"):
            return None
        title = value.get("title") or value.get("name") or value["slug"]
        return cls(
            slug=value["slug"],
            title=title,
            name=value.get("name") or title,
            url=value.get("url") or "",
            created_at=value.get("createdAt") or value.get("created_at"),
        )

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)


class ContentArtifact(BaseModel):
    slug: str
    title: str
    body: str
    image_url: Optional[str] = None
    published_at: datetime = Field(default_factory=utc_now)


@dataclass
class PublishResult:
    status: str
    slug: str
    url: str
    commit_sha: Optional[str] = None
    index_commit_sha: Optional[str] = None
    # Set whenever this call wrote the slug's index entry
    entry: Optional[IndexEntry] = None

    @property
    def created(self) -> bool:
        return self.status == PUBLISH_CREATED
