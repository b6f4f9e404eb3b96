"""
Canonical JSON for sidecar metadata.

Two sidecars with the same fields must serialize to the same text, so
they deduplicate to one object in the store.
"""

import json
from typing import Any


def canonical_json_str(obj: Any) -> str:
    """
    Encode an object to canonical JSON text.

    Keys sorted, no insignificant whitespace, non-ASCII kept as-is,
    NaN and infinities rejected.

    Raises ValueError if the object cannot be encoded.
    """
    try:
        return json.dumps(
            obj,
            sort_keys=True,
            separators=(',', ':'),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as e:
        raise ValueError(f"Object cannot be canonically encoded: {e}")
