"""JSONB column helpers for raw-SQL repositories.

Parameters are bound as JSON text and cast in SQL (``CAST(:x AS JSONB)``).
Depending on the driver codec, JSONB results arrive as dict or as text.
"""

import json
from typing import Any


def dump_jsonb(value: dict[str, Any]) -> str:
    return json.dumps(value, default=str)


def load_jsonb(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, (str, bytes)):
        loaded = json.loads(value)
        return loaded if isinstance(loaded, dict) else {}
    return dict(value)
