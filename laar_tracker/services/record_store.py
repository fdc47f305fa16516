from __future__ import annotations
import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from ..exceptions import TransportError, ValidationError
from ..models import UPDATABLE_FIELDS, TrackingRecord
from ..utils.constants import BatchConfig, ColumnHeaders, ResultMessages, StatusValues
from ..utils.time_utils import DEFAULT_TIMEZONE, format_datetime, now_local, parse_datetime
from .history_log import append_history
from .tracker_service import TrackerService

logger = logging.getLogger(__name__)


class TrackingStore:
    """Tracking records kept one per row in the spreadsheet tab.

    `sheets` only needs read_rows / append_row / update_row (see
    SheetsClient). Lookups are linear scans over a fresh read; row numbers
    come from that read and are used for targeted writes.
    """

    def __init__(self, sheets, timezone: str = DEFAULT_TIMEZONE,
                 clock: Optional[Callable[[], datetime]] = None):
        self.sheets = sheets
        self.timezone = timezone
        self._clock = clock or (lambda: now_local(self.timezone))

    # --- helpers ---
    def _now(self) -> datetime:
        return self._clock()

    def _now_str(self) -> str:
        return format_datetime(self._now(), self.timezone)

    # --- reads ---
    def get_all(self) -> List[TrackingRecord]:
        try:
            rows = self.sheets.read_rows()
        except TransportError as e:
            logger.error("Error al obtener guías: %s", e)
            raise TransportError(f"No se pudo obtener las guías: {e}") from e
        return [
            TrackingRecord.from_row(row, row_index=idx)
            for idx, row in enumerate(rows, start=ColumnHeaders.FIRST_DATA_ROW)
        ]

    def find(self, parcel_id: str) -> Optional[TrackingRecord]:
        for record in self.get_all():
            if record.parcel_id == parcel_id:
                return record
        return None

    # --- writes ---
    def add(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        """Create a record; duplicates are rejected, never merged."""
        parcel_id = str(fields.get("parcel_id") or "").strip()
        if not parcel_id:
            raise ValidationError("Falta el número de guía (parcel_id)")

        existing = self.find(parcel_id)
        if existing is not None:
            return {
                "success": False,
                "message": ResultMessages.ALREADY_EXISTS,
                "record": existing.to_dict(),
            }

        now = self._now()
        now_str = format_datetime(now, self.timezone)
        status = str(fields.get("status") or StatusValues.DESCONOCIDO)
        origin = str(fields.get("origin_city") or "")
        destination = str(fields.get("destination_city") or "")

        record = TrackingRecord(
            id=TrackerService.generate_record_id(parcel_id, int(now.timestamp() * 1000)),
            parcel_id=parcel_id,
            created_at=now_str,
            status=status,
            origin_city=origin,
            destination_city=destination,
            delivered_to=str(fields.get("delivered_to") or ""),
            delivered_at=str(fields.get("delivered_at") or ""),
            last_updated_at=now_str,
            history=append_history(
                "[]",
                {"status": status, "origin_city": origin, "destination_city": destination},
                timestamp=now_str,
            ),
        )
        try:
            self.sheets.append_row(record.to_row())
        except TransportError as e:
            logger.error("Error al agregar guía %s: %s", parcel_id, e)
            raise TransportError(f"No se pudo agregar la guía {parcel_id}: {e}") from e

        logger.info("Guía agregada: %s", parcel_id)
        return {"success": True, "message": ResultMessages.ADD_OK, "id": record.id}

    def update(self, parcel_id: str, partial: Mapping[str, Any]) -> Dict[str, Any]:
        """Merge `partial` over the stored record.

        Keys present in `partial` overwrite (empty string included); absent
        keys or None values keep the stored value. A history entry is added
        only when a non-empty status differs from the stored one.
        """
        unknown = [key for key in partial if key not in UPDATABLE_FIELDS]
        if unknown:
            raise ValidationError(f"Campos no actualizables: {', '.join(sorted(unknown))}")

        record = self.find(parcel_id)
        if record is None:
            return {"success": False, "message": ResultMessages.NOT_FOUND}
        return self._write_update(record, partial)

    def _write_update(self, record: TrackingRecord, partial: Mapping[str, Any]) -> Dict[str, Any]:
        now_str = self._now_str()
        changes = {key: str(value) for key, value in partial.items() if value is not None}

        new_status = changes.get("status")
        if new_status and new_status != record.status:
            record.history = append_history(
                record.history,
                {
                    "status": new_status,
                    "origin_city": changes.get("origin_city") or record.origin_city,
                    "destination_city": changes.get("destination_city") or record.destination_city,
                },
                timestamp=now_str,
            )
            logger.info("Guía %s: %s -> %s", record.parcel_id, record.status or "-", new_status)

        for key, value in changes.items():
            setattr(record, key, value)
        record.last_updated_at = now_str

        try:
            self.sheets.update_row(record.row_index, record.to_row())
        except TransportError as e:
            logger.error("Error al actualizar guía %s: %s", record.parcel_id, e)
            raise TransportError(f"No se pudo actualizar la guía {record.parcel_id}: {e}") from e

        return {"success": True, "message": ResultMessages.UPDATE_OK, "updated": True}

    # --- batches ---
    def add_multiple(self, items: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
        items = list(items)
        if not items:
            raise ValidationError("La lista de guías está vacía")

        results: Dict[str, Any] = {"success": True, "added": 0, "skipped": 0, "errors": 0, "details": []}
        for item in items:
            parcel_id = str(item.get("parcel_id") or "")
            try:
                result = self.add(item)
            except (ValidationError, TransportError) as e:
                results["errors"] += 1
                results["details"].append(
                    {"parcel_id": parcel_id, "status": ResultMessages.ERROR, "error": str(e)})
                continue

            if result["success"]:
                results["added"] += 1
                results["details"].append({"parcel_id": parcel_id, "status": ResultMessages.ADDED})
            else:
                results["skipped"] += 1
                results["details"].append(
                    {"parcel_id": parcel_id, "status": ResultMessages.SKIPPED, "reason": result["message"]})

        logger.info("Carga múltiple: %d agregadas, %d omitidas, %d errores",
                    results["added"], results["skipped"], results["errors"])
        return results

    def update_pending_only(self, updates: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
        """Apply updates only to records whose stored status is not final.

        Each item is {"parcel_id": ..., "data": {partial fields}}.
        """
        results: Dict[str, Any] = {"success": True, "updated": 0, "skipped": 0, "errors": 0, "details": []}
        for item in updates:
            parcel_id = str(item.get("parcel_id") or "")
            try:
                record = self.find(parcel_id)
                if record is None:
                    results["skipped"] += 1
                    results["details"].append(
                        {"parcel_id": parcel_id, "status": ResultMessages.SKIPPED,
                         "reason": ResultMessages.NOT_FOUND})
                    continue

                if TrackerService.is_final_state(record.status):
                    results["skipped"] += 1
                    results["details"].append(
                        {"parcel_id": parcel_id, "status": ResultMessages.SKIPPED,
                         "reason": ResultMessages.FINAL_STATE})
                    continue

                data = item.get("data") or {}
                unknown = [key for key in data if key not in UPDATABLE_FIELDS]
                if unknown:
                    raise ValidationError(f"Campos no actualizables: {', '.join(sorted(unknown))}")
                self._write_update(record, data)
                results["updated"] += 1
                results["details"].append({"parcel_id": parcel_id, "status": ResultMessages.UPDATED})
            except (ValidationError, TransportError) as e:
                results["errors"] += 1
                results["details"].append(
                    {"parcel_id": parcel_id, "status": ResultMessages.ERROR, "error": str(e)})

        return results

    # --- aggregates ---
    def get_stats(self) -> Dict[str, Any]:
        records = self.get_all()
        counts = Counter(record.status or StatusValues.DESCONOCIDO for record in records)
        return {
            "total": len(records),
            "counts_by_status": dict(counts),
            "as_of": self._now_str(),
        }

    def get_recently_delivered(self, window_hours: float = BatchConfig.RECENT_WINDOW_HOURS) -> List[TrackingRecord]:
        threshold = self._now() - timedelta(hours=window_hours)
        recent = []
        for record in self.get_all():
            if not TrackerService.is_final_state(record.status):
                continue
            updated_at = parse_datetime(record.last_updated_at, self.timezone)
            if updated_at is not None and updated_at >= threshold:
                recent.append(record)
        return recent
