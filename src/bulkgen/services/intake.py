"""Submission validation and item normalization."""

import re

from bulkgen.errors.exceptions import ValidationError
from bulkgen.models.bulk_job import BulkItem, ItemInput
from bulkgen.models.enums import ItemStatus, Platform
from bulkgen.services.id_generator import item_id

MAX_OWNER_ID_LENGTH = 128

# Owner ids are embedded in job ids, which travel as URL path segments.
_OWNER_ID_RE = re.compile(r"[A-Za-z0-9._@:-]+")


def normalize_platform(raw: str | None) -> Platform:
    """Map a free-form platform name onto a supported platform.

    Exact names win, then substring matches ("Shopify store" -> shopify).
    Anything unrecognized falls back to amazon.
    """
    if not raw:
        return Platform.AMAZON
    value = raw.strip().lower()
    for platform in Platform:
        if value == platform.value:
            return platform
    for platform in Platform:
        if platform.value in value:
            return platform
    return Platform.AMAZON


def validate_submission(owner_id: str | None, items: list | None, max_items: int) -> None:
    """Reject a submission before any job is created."""
    if not items:
        raise ValidationError("Items list is required and must not be empty")
    if not owner_id or not owner_id.strip():
        raise ValidationError("Owner id is required")
    owner_id = owner_id.strip()
    if len(owner_id) > MAX_OWNER_ID_LENGTH:
        raise ValidationError(
            f"Owner id must be at most {MAX_OWNER_ID_LENGTH} characters",
            details={"length": len(owner_id), "max_length": MAX_OWNER_ID_LENGTH},
        )
    if not _OWNER_ID_RE.fullmatch(owner_id):
        raise ValidationError(
            "Owner id may only contain letters, digits and . _ - @ :",
            details={"owner_id": owner_id},
        )
    if len(items) > max_items:
        raise ValidationError(
            f"A job may contain at most {max_items} items",
            details={"item_count": len(items), "max_items": max_items},
        )


def build_items(job_id: str, inputs: list[ItemInput]) -> list[BulkItem]:
    """Create the pending item list for a new job, preserving submission order."""
    items = []
    for index, raw in enumerate(inputs):
        name = (raw.product_name or "").strip() or f"Product {index + 1}"
        items.append(
            BulkItem(
                id=item_id(job_id, index),
                product_name=name,
                features=raw.features or "",
                platform=normalize_platform(raw.platform),
                status=ItemStatus.PENDING,
            )
        )
    return items
