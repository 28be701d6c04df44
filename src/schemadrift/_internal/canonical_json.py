"""Canonical JSON serialization.

One function used for the JSON report and for keying enum values, so the
same value always serializes to the same bytes regardless of key order.
"""

import json
from typing import Any


def canonical_dumps(obj: Any) -> str:
    """
    Serialize to canonical JSON.

    Rules:
    - Sorted keys
    - Compact separators (",", ":")
    - Non-ASCII kept as UTF-8
    - Lists keep their order (callers sort them when order is not meaningful)

    Args:
        obj: JSON-compatible Python object

    Returns:
        Canonical JSON string
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
