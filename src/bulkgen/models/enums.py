"""String enums for job and item state."""

from enum import StrEnum


class JobStatus(StrEnum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ItemStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemStatus.COMPLETED, ItemStatus.FAILED)


class Platform(StrEnum):
    AMAZON = "amazon"
    SHOPIFY = "shopify"
    ETSY = "etsy"
    INSTAGRAM = "instagram"
