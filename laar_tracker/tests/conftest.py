from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from laar_tracker.exceptions import TransportError
from laar_tracker.services.record_store import TrackingStore

TZ = "America/Guayaquil"


class FakeSheetsClient:
    """In-memory stand-in for SheetsClient (rows start at sheet row 2)."""

    def __init__(self, rows=None):
        self.rows = [list(r) for r in (rows or [])]
        self.appended = []
        self.updated = []
        self.fail_reads = False
        self.fail_writes = False

    def read_rows(self):
        if self.fail_reads:
            raise TransportError("sheet unreachable")
        return [list(r) for r in self.rows]

    def append_row(self, values):
        if self.fail_writes:
            raise TransportError("append failed")
        self.rows.append(list(values))
        self.appended.append(list(values))

    def update_row(self, row_index, values):
        if self.fail_writes:
            raise TransportError("update failed")
        self.rows[row_index - 2] = list(values)
        self.updated.append((row_index, list(values)))


class FixedClock:
    def __init__(self, value):
        self.value = value

    def __call__(self):
        return self.value


def make_row(parcel_id, status="En tránsito", last_updated="2025-10-01 08:00:00",
             history="[]", origin="QUITO", destination="GUAYAQUIL"):
    return [f"{parcel_id}-1", parcel_id, "2025-10-01 08:00:00", status, origin, destination,
            "", "", last_updated, history]


@pytest.fixture
def clock():
    return FixedClock(datetime(2025, 10, 20, 12, 0, 0, tzinfo=ZoneInfo(TZ)))


@pytest.fixture
def sheets():
    return FakeSheetsClient()


@pytest.fixture
def store(sheets, clock):
    return TrackingStore(sheets, timezone=TZ, clock=clock)
