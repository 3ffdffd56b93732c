"""Timestamp and identifier helpers shared by the adapter and the store."""

import time
import uuid
from datetime import datetime, timezone


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a `Z` suffix."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def generate_id(prefix: str) -> str:
    """Return `<prefix>_<epoch-ms>_<7 random chars>`."""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:7]}"
