from oksnap.models.quota import (
    QuotaRecord,
    GuestUsageRecord,
    QuotaDecision,
    QuotaStatus,
    DecrementResult,
    BonusResult,
)
from oksnap.models.content import (
    ContentArtifact,
    IndexEntry,
    PublishResult,
    PUBLISH_CREATED,
    PUBLISH_ALREADY_EXISTS,
)

__all__ = [
    "QuotaRecord",
    "GuestUsageRecord",
    "QuotaDecision",
    "QuotaStatus",
    "DecrementResult",
    "BonusResult",
    "ContentArtifact",
    "IndexEntry",
    "PublishResult",
    "PUBLISH_CREATED",
    "PUBLISH_ALREADY_EXISTS",
]
