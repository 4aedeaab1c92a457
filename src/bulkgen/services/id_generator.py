"""Identifier generation for jobs, items and traces."""

import secrets
import string
import time
import uuid

_BASE36 = string.digits + string.ascii_lowercase


def generate_id(prefix: str) -> str:
    """Generate a prefixed unique ID, e.g. ``trc_a1b2c3d4e5f6a7b8``."""
    short_uuid = uuid.uuid4().hex[:16]
    return f"{prefix}{short_uuid}"


def generate_job_id(owner_id: str) -> str:
    """Build a job id from the owner, the current time and a random suffix.

    Returns a string like ``bulk_user42_1718000000000_k3j9x0a1b``.
    """
    millis = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"bulk_{owner_id}_{millis}_{suffix}"


def item_id(job_id: str, index: int) -> str:
    """Deterministic item id for the item at ``index`` (0-based) of a job."""
    return f"{job_id}_product_{index}"
