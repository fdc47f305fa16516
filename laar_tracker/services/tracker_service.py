from __future__ import annotations
import re
import time
from typing import Iterable, List, Optional

from ..utils.constants import StatusValues, TrackingConfig

_PARCEL_ID_RE = re.compile(TrackingConfig.PARCEL_ID_PATTERN)


class TrackerService:
    """Business rules for LAAR parcel status and identifiers."""

    @staticmethod
    def is_final_state(status: Optional[str]) -> bool:
        """True when the status marks the end of the parcel's journey.

        Substring match, so "Entregado parcial" is final too.
        """
        if not status:
            return False
        text = str(status).lower()
        return any(marker in text for marker in StatusValues.FINAL_STATE_MARKERS)

    @staticmethod
    def clean_parcel_id(parcel_id: str) -> str:
        return re.sub(r"\s+", "", str(parcel_id or "").strip().upper())

    @staticmethod
    def is_valid_parcel_id(parcel_id: str) -> bool:
        # Typical LAAR code: two letters and digits, e.g. LC51960903
        return bool(_PARCEL_ID_RE.match(TrackerService.clean_parcel_id(parcel_id)))

    @staticmethod
    def parse_parcel_list(text: str) -> List[str]:
        """Split a comma/newline separated list into clean, valid, unique ids."""
        parts = re.split(r"[,\n;]", text or "")
        return TrackerService.dedupe_valid(parts)

    @staticmethod
    def dedupe_valid(parcel_ids: Iterable[str]) -> List[str]:
        seen = set()
        result: List[str] = []
        for raw in parcel_ids:
            guia = TrackerService.clean_parcel_id(raw)
            if not guia or guia in seen or not TrackerService.is_valid_parcel_id(guia):
                continue
            seen.add(guia)
            result.append(guia)
        return result

    @staticmethod
    def generate_record_id(parcel_id: str, now_ms: Optional[int] = None) -> str:
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        return f"{parcel_id}-{now_ms}"

    @staticmethod
    def build_tracking_url(parcel_id: str, template: str = TrackingConfig.DEFAULT_URL_TEMPLATE) -> str:
        return template.format(guia=parcel_id)


# Module-level alias used across the package
is_final_state = TrackerService.is_final_state
