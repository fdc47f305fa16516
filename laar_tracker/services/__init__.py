from .history_log import append_history, parse_history, trim_history
from .record_store import TrackingStore
from .tracker_service import TrackerService, is_final_state

__all__ = [
    "append_history",
    "parse_history",
    "trim_history",
    "TrackingStore",
    "TrackerService",
    "is_final_state",
]
