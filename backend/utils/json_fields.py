# backend/utils/json_fields.py
# Structured values live in TEXT columns; encoding happens only here.
import json
import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)

_EMPTY_MARKERS = ("", "{}", "null", "[]")


def encode(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False, default=str)


def decode(raw: Optional[str], field: str = "") -> Any:
    """Decode stored text; on failure log it and hand back the raw value."""
    if raw is None or not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except ValueError as e:
        logger.error(f"Error parsing JSON data in field {field or '?'}: {e}")
        return raw


def is_empty(raw: Any) -> bool:
    # Undecodable text still counts as content
    if raw is None:
        return True
    if isinstance(raw, str):
        return raw.strip() in _EMPTY_MARKERS
    if isinstance(raw, (dict, list)):
        return len(raw) == 0
    return False
