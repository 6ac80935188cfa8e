from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from enum import Enum
from typing import Any, Dict
from uuid import UUID
from datetime import datetime


def json_safe(value: Any) -> Any:
    """
    Convert a summary dict into plain JSON types (Decimal kept as string
    to preserve precision).
    """
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [json_safe(v) for v in value]
    return value


def canonical_dumps(obj: Dict[str, Any]) -> str:
    # Deterministic JSON string: sorted keys, no whitespace
    return json.dumps(json_safe(obj), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def payload_hash(obj: Dict[str, Any]) -> str:
    return hashlib.sha256(canonical_dumps(obj).encode("utf-8")).hexdigest()
