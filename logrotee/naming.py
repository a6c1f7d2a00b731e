"""Chunk naming: numeric ring slots and timestamped names."""

import logging
import os
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y%m%d_%H%M%S_%f"


def numeric_chunk_name(base_path: str, index: int) -> str:
    return f"{base_path}.{index}"


def next_index(index: int, ring_size: int) -> int:
    """Advance a ring index, wrapping to 0 at ring_size."""
    index += 1
    if index >= ring_size:
        index = 0
    return index


def reclaim_slot(chunk_path: str, compress_suffix: str = "") -> list[str]:
    """Delete a recycled chunk and its compressed sibling. Returns removed paths.

    Another process may recreate either file between this call and the
    rename that follows; that race is accepted.
    """
    candidates = [chunk_path]
    if compress_suffix:
        candidates.append(chunk_path + compress_suffix)

    removed = []
    for path in candidates:
        try:
            os.remove(path)
        except FileNotFoundError:
            continue
        removed.append(path)
        logger.info("Evicted %s", path)
    return removed


def date_chunk_name(base_path: str, now: datetime | None = None) -> str:
    """Return a time-sortable chunk name that does not exist yet."""
    now = now or datetime.now(timezone.utc)
    name = f"{base_path}.{now.strftime(DATE_FORMAT)}"
    candidate = name
    counter = 1
    while os.path.exists(candidate):
        candidate = f"{name}-{counter}"
        counter += 1
    return candidate
