"""Stable fingerprints for audit summaries."""
from __future__ import annotations

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict
from uuid import UUID


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    raise TypeError(f"Cannot put {type(value).__name__} in an audit summary")


def canonical_json(summary: Dict[str, Any]) -> str:
    # sorted keys, no whitespace: equal summaries give equal bytes
    return json.dumps(summary, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=_plain)


def normalise_summary(summary: Dict[str, Any]) -> Dict[str, Any]:
    """The JSON-safe form that is both stored and hashed."""
    return json.loads(canonical_json(summary))


def summary_hash(summary: Dict[str, Any]) -> str:
    return hashlib.sha256(canonical_json(summary).encode("utf-8")).hexdigest()
