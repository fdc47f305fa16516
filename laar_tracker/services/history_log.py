"""Bounded status history stored as JSON text in the HISTORIAL column.

The log never fails the write path: absent, unparsable or non-list input is
treated as an empty history.
"""
from __future__ import annotations
import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from ..models import HistoryEntry
from ..utils.constants import StatusValues

logger = logging.getLogger(__name__)

EntryFields = Union[HistoryEntry, Mapping[str, Any]]


def _load_entries(existing_log: Optional[str]) -> List[Dict[str, Any]]:
    if not existing_log:
        return []
    try:
        data = json.loads(existing_log)
    except (TypeError, ValueError) as e:
        logger.warning("Historial no parseable, se reinicia: %s", e)
        return []
    if not isinstance(data, list):
        logger.warning("Historial con formato inesperado (%s), se reinicia", type(data).__name__)
        return []
    return [item for item in data if isinstance(item, dict)]


def _entry_from_fields(fields: EntryFields, timestamp: str) -> HistoryEntry:
    if isinstance(fields, HistoryEntry):
        return HistoryEntry(fields.status, fields.origin_city, fields.destination_city, timestamp)
    return HistoryEntry(
        status=str(fields.get("status", "") or ""),
        origin_city=str(fields.get("origin_city", "") or ""),
        destination_city=str(fields.get("destination_city", "") or ""),
        timestamp=timestamp,
    )


def parse_history(existing_log: Optional[str]) -> List[HistoryEntry]:
    return [HistoryEntry.from_json_dict(item) for item in _load_entries(existing_log)]


def trim_history(existing_log: Optional[str], max_entries: int = StatusValues.HISTORY_MAX_ENTRIES) -> str:
    """Keep only the last max_entries entries."""
    entries = _load_entries(existing_log)
    return json.dumps(entries[-max_entries:], ensure_ascii=False)


def append_history(
    existing_log: Optional[str],
    fields: EntryFields,
    timestamp: str,
    max_entries: int = StatusValues.HISTORY_MAX_ENTRIES,
) -> str:
    """Append a timestamped snapshot and drop the oldest entries over the cap.

    Returns the serialized log; always a JSON array with at least one entry.
    """
    entries = _load_entries(existing_log)
    entries.append(_entry_from_fields(fields, timestamp).to_json_dict())
    return json.dumps(entries[-max_entries:], ensure_ascii=False)
