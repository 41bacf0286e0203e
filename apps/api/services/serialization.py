"""Row-to-JSON helpers for ledger responses."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict


def row_to_dict(row: Any, **extra: Any) -> Dict[str, Any]:
    """Column values of an ORM row, with dates rendered as ISO strings."""
    payload: Dict[str, Any] = {}
    for column in row.__table__.columns:
        value = getattr(row, column.key)
        if isinstance(value, date):
            value = value.isoformat()
        payload[column.key] = value
    payload.update(extra)
    return payload
