"""Normalisation of values read back from storage.

Structured columns may arrive as serialized JSON text (older rows, raw
SQL, drivers without JSON support) and aggregate counts may arrive as
strings or Decimals; these helpers turn both into plain Python values.
"""

import json
from typing import Any, Dict, Optional

DOCUMENT_FIELDS = ("selected_categories", "written_test", "practical_test")


def decode_document(value: Any) -> Any:
    """Parse `value` as JSON when it is serialized text; anything else is returned unchanged."""
    if isinstance(value, (str, bytes)):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


def shape_application(row: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Decode the structured fields of an application row in place."""
    if row is None:
        return None
    for field in DOCUMENT_FIELDS:
        if row.get(field) is not None:
            row[field] = decode_document(row[field])
    return row


def parse_int(value: Any, default: int = 0) -> int:
    """Convert a numeric wire value to `int`, falling back to `default`."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return default
