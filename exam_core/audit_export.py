"""Helpers to export a submission's infraction log in JSON/CSV formats."""
from __future__ import annotations

from typing import Iterable, List, Dict, Any
import csv
import io

from .types import INFRACTION_TYPES

_FIELDS: tuple[str, ...] = (
    "timestamp",
    "type",
)


def _normalize_event(event: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key in _FIELDS:
        val = event.get(key)
        out[key] = "" if val is None else str(val)
    # older clients reported focus loss as "focusLost"
    if out["type"] == "focusLost":
        out["type"] = "focus-lost"
    if out["type"] not in INFRACTION_TYPES:
        out["type"] = "unknown"
    return out


def summarize(events: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    counts = {k: 0 for k in INFRACTION_TYPES}
    for evt in events:
        kind = _normalize_event(evt or {})["type"]
        if kind in counts:
            counts[kind] += 1
    return counts


def to_json(events: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Return a JSON-safe payload for infraction export."""

    normalized: List[Dict[str, Any]] = [_normalize_event(evt or {}) for evt in events]
    return {"infractions": normalized, "counts": summarize(normalized)}


def to_csv(events: Iterable[Dict[str, Any]]) -> str:
    """Render infractions as CSV with a fixed header."""

    normalized = [_normalize_event(evt or {}) for evt in events]
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=_FIELDS)
    writer.writeheader()
    for row in normalized:
        writer.writerow(row)
    return buf.getvalue()


__all__ = ["to_json", "to_csv", "summarize"]
