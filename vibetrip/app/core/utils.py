"""Utility functions for the gateway application."""

import gc
import hashlib
import json
import resource
import sys
from typing import Any, Dict


def content_hash(data: Any) -> str:
    """Short, stable hash of a JSON-compatible payload.

    Keys are sorted so logically equal payloads hash the same. Used for
    cache keys and for stage logs, which record hashes instead of content.

    Examples:
        >>> content_hash({"b": 1, "a": 2}) == content_hash({"a": 2, "b": 1})
        True
    """
    serialized = json.dumps(data, sort_keys=True, default=str, ensure_ascii=False)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()[:16]


def get_memory_usage() -> Dict[str, Any]:
    """Process memory figures for the health endpoint.

    ``max_rss_mb`` is the peak resident set size; ru_maxrss is reported in
    bytes on macOS and in kilobytes elsewhere.
    """
    max_rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    divisor = 1024 * 1024 if sys.platform == "darwin" else 1024
    return {
        "max_rss_mb": round(max_rss / divisor, 2),
        "gc_objects": len(gc.get_objects()),
        "gc_counts": list(gc.get_count()),
    }
