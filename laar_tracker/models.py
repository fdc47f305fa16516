from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from .utils.constants import StatusValues


# Partial-update keys accepted by TrackingStore.update
UPDATABLE_FIELDS = (
    "status",
    "origin_city",
    "destination_city",
    "delivered_to",
    "delivered_at",
)


@dataclass
class HistoryEntry:
    """Snapshot of a record at the moment its status changed."""

    status: str
    origin_city: str = ""
    destination_city: str = ""
    timestamp: str = ""

    # Persisted keys match the sheet's existing HISTORIAL JSON
    def to_json_dict(self) -> Dict[str, str]:
        return {
            "estado": self.status,
            "ciudadOrigen": self.origin_city,
            "ciudadDestino": self.destination_city,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_json_dict(cls, data: Dict[str, Any]) -> "HistoryEntry":
        return cls(
            status=str(data.get("estado", data.get("status", "")) or ""),
            origin_city=str(data.get("ciudadOrigen", data.get("origin_city", "")) or ""),
            destination_city=str(data.get("ciudadDestino", data.get("destination_city", "")) or ""),
            timestamp=str(data.get("timestamp", "") or ""),
        )


@dataclass
class TrackingRecord:
    """One row of the tracking sheet."""

    id: str
    parcel_id: str
    created_at: str = ""
    status: str = ""
    origin_city: str = ""
    destination_city: str = ""
    delivered_to: str = ""
    delivered_at: str = ""
    last_updated_at: str = ""
    history: str = "[]"
    row_index: Optional[int] = None

    def to_row(self) -> List[str]:
        """Values in sheet column order (A:J)."""
        return [
            self.id,
            self.parcel_id,
            self.created_at,
            self.status,
            self.origin_city,
            self.destination_city,
            self.delivered_to,
            self.delivered_at,
            self.last_updated_at,
            self.history,
        ]

    @classmethod
    def from_row(cls, row: List[Any], row_index: Optional[int] = None) -> "TrackingRecord":
        cells = ["" if v is None else str(v) for v in row]
        cells += [""] * (10 - len(cells))
        return cls(
            id=cells[0],
            parcel_id=cells[1],
            created_at=cells[2],
            status=cells[3],
            origin_city=cells[4],
            destination_city=cells[5],
            delivered_to=cells[6],
            delivered_at=cells[7],
            last_updated_at=cells[8],
            history=cells[9] or "[]",
            row_index=row_index,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ScrapedStatus:
    """Fields extracted from the LAAR tracking page for one parcel."""

    parcel_id: str
    status: str = StatusValues.NO_DISPONIBLE
    origin_city: str = ""
    destination_city: str = ""
    delivered_to: str = ""
    delivered_at: str = ""
    url: str = ""

    @property
    def is_available(self) -> bool:
        return bool(self.status.strip()) and self.status != StatusValues.NO_DISPONIBLE

    def as_update(self) -> Dict[str, str]:
        """Partial-update payload for TrackingStore.update.

        Fields the page did not show are left out so stored values survive.
        A scheduled run therefore never blanks a city already in the sheet;
        clearing a field takes an explicit update with "".
        """
        payload = {
            "status": self.status,
            "origin_city": self.origin_city,
            "destination_city": self.destination_city,
            "delivered_to": self.delivered_to,
            "delivered_at": self.delivered_at,
        }
        return {key: value for key, value in payload.items() if value}

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ScrapeOutcome:
    """Result of one queued scrape task."""

    parcel_id: str
    success: bool
    data: Optional[ScrapedStatus] = None
    error: str = ""

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"parcel_id": self.parcel_id, "success": self.success}
        if self.data is not None:
            out.update({k: v for k, v in self.data.to_dict().items() if k != "parcel_id"})
        if self.error:
            out["error"] = self.error
        return out
