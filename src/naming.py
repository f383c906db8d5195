"""Unique resource names for resources that support name/name_prefix."""

import re
import threading
from datetime import datetime, timezone
from typing import Optional

UNIQUE_ID_PREFIX = "terraform-"

# 18 timestamp digits followed by an 8 hex digit counter
UNIQUE_ID_SUFFIX_LENGTH = 26

_SUFFIX_PATTERN = re.compile(r"^\d{18}[0-9a-f]{8}$")

_counter = 0
_counter_lock = threading.Lock()


def unique_id(prefix: str = UNIQUE_ID_PREFIX) -> str:
    """
    Return prefix followed by a time-ordered unique suffix.

    The suffix is the UTC time down to 1/10000 s plus a process-wide
    counter, so ids generated by one process sort in creation order.
    """
    global _counter
    with _counter_lock:
        _counter += 1
        counter = _counter

    now = datetime.now(timezone.utc)
    timestamp = now.strftime("%Y%m%d%H%M%S") + f"{now.microsecond // 100:04d}"
    return f"{prefix}{timestamp}{counter:08x}"


def generate_name(name: Optional[str], name_prefix: Optional[str]) -> str:
    """Pick the explicit name, else a unique name from the prefix."""
    if name:
        return name
    if name_prefix:
        return unique_id(name_prefix)
    return unique_id()


def prefix_from_name(name: Optional[str]) -> Optional[str]:
    """Recover the prefix of a name generated by unique_id(), if it is one."""
    if not name or len(name) < UNIQUE_ID_SUFFIX_LENGTH:
        return None

    suffix = name[-UNIQUE_ID_SUFFIX_LENGTH:]
    if not _SUFFIX_PATTERN.match(suffix):
        return None

    return name[:-UNIQUE_ID_SUFFIX_LENGTH]
