import json
from datetime import timedelta

import pytest

from laar_tracker.exceptions import TransportError, ValidationError
from laar_tracker.tests.conftest import FakeSheetsClient, make_row
from laar_tracker.utils.time_utils import format_datetime


def test_get_all_fills_missing_cells_and_row_indices(sheets, store):
    sheets.rows = [make_row("LC1000001"), ["id-2", "LC1000002"]]
    records = store.get_all()
    assert [r.row_index for r in records] == [2, 3]
    assert records[1].status == ""
    assert records[1].history == "[]"


def test_find_exact_match(sheets, store):
    sheets.rows = [make_row("LC1000001")]
    assert store.find("LC1000001").parcel_id == "LC1000001"
    assert store.find("lc1000001") is None


def test_add_creates_row_with_seeded_history(sheets, store):
    result = store.add({"parcel_id": "LC51960903", "status": "En tránsito", "origin_city": "QUITO"})
    assert result["success"] is True

    row = sheets.appended[0]
    assert row[0] == result["id"]
    assert row[0].startswith("LC51960903-")
    assert row[2] == row[8] == "2025-10-20 12:00:00"
    history = json.loads(row[9])
    assert len(history) == 1
    assert history[0]["estado"] == "En tránsito"
    assert history[0]["ciudadOrigen"] == "QUITO"


def test_add_defaults_status_to_unknown(sheets, store):
    store.add({"parcel_id": "LC51960903"})
    assert sheets.appended[0][3] == "Desconocido"


def test_add_duplicate_is_rejected_without_writes(sheets, store):
    sheets.rows = [make_row("LC100")]
    result = store.add({"parcel_id": "LC100", "status": "Entregado"})
    assert result["success"] is False
    assert result["message"] == "already exists"
    assert sheets.appended == []
    assert sheets.rows == [make_row("LC100")]


def test_add_requires_parcel_id(store):
    with pytest.raises(ValidationError):
        store.add({"status": "En tránsito"})


def test_update_not_found(store):
    assert store.update("LC404", {"status": "Entregado"}) == {"success": False, "message": "not found"}


def test_update_omitted_field_kept_and_empty_string_overwrites(sheets, store):
    sheets.rows = [make_row("LC1000001", origin="QUITO", destination="LOJA")]
    store.update("LC1000001", {"origin_city": ""})
    record = store.find("LC1000001")
    assert record.origin_city == ""
    assert record.destination_city == "LOJA"
    assert record.status == "En tránsito"


def test_update_status_change_appends_one_history_entry(sheets, store):
    previous = json.dumps([
        {"estado": "Recibido", "ciudadOrigen": "QUITO", "ciudadDestino": "LOJA", "timestamp": "t1"},
        {"estado": "En tránsito", "ciudadOrigen": "QUITO", "ciudadDestino": "LOJA", "timestamp": "t2"},
    ])
    sheets.rows = [make_row("LC1000001", history=previous, origin="QUITO", destination="LOJA")]

    store.update("LC1000001", {"status": "Entregado"})

    row_index, values = sheets.updated[0]
    assert row_index == 2
    history = json.loads(values[9])
    assert [h["estado"] for h in history] == ["Recibido", "En tránsito", "Entregado"]
    assert history[2]["ciudadOrigen"] == "QUITO"
    assert history[2]["timestamp"] == "2025-10-20 12:00:00"


def test_update_same_status_adds_no_history_but_bumps_timestamp(sheets, store):
    sheets.rows = [make_row("LC1000001", history="[]", last_updated="2025-01-01 00:00:00")]
    store.update("LC1000001", {"status": "En tránsito"})
    values = sheets.updated[0][1]
    assert values[9] == "[]"
    assert values[8] == "2025-10-20 12:00:00"


def test_update_with_no_fields_still_writes(sheets, store):
    sheets.rows = [make_row("LC1000001", last_updated="2025-01-01 00:00:00")]
    result = store.update("LC1000001", {})
    assert result["success"] is True
    assert sheets.updated[0][1][8] == "2025-10-20 12:00:00"


def test_update_writes_exact_row(sheets, store):
    sheets.rows = [make_row("LC1000001"), make_row("LC1000002"), make_row("LC1000003")]
    store.update("LC1000003", {"delivered_to": "ANA PEREZ"})
    assert sheets.updated[0][0] == 4
    assert sheets.rows[2][6] == "ANA PEREZ"
    assert sheets.rows[0][6] == ""


def test_update_rejects_unknown_fields(sheets, store):
    sheets.rows = [make_row("LC1000001")]
    with pytest.raises(ValidationError):
        store.update("LC1000001", {"parcel_id": "LC9"})


def test_add_multiple_counts_duplicates_as_skipped(store):
    result = store.add_multiple([{"parcel_id": "LC100"}, {"parcel_id": "LC100"}])
    assert result["added"] == 1
    assert result["skipped"] == 1
    assert result["details"][1] == {"parcel_id": "LC100", "status": "skipped", "reason": "already exists"}


def test_add_multiple_empty_batch_rejected(sheets, store):
    with pytest.raises(ValidationError):
        store.add_multiple([])
    assert sheets.appended == []


def test_add_multiple_item_errors_do_not_abort(sheets, store):
    result = store.add_multiple([{"parcel_id": ""}, {"parcel_id": "LC200"}])
    assert result["errors"] == 1
    assert result["added"] == 1
    assert result["details"][0]["status"] == "error"


def test_update_pending_only_skips_missing_and_final(sheets, store):
    sheets.rows = [make_row("LC1000001", status="Entregado"), make_row("LC1000002")]
    result = store.update_pending_only([
        {"parcel_id": "LC1000001", "data": {"status": "Devuelto"}},
        {"parcel_id": "LC404", "data": {"status": "Entregado"}},
        {"parcel_id": "LC1000002", "data": {"status": "Entregado"}},
    ])
    assert result["updated"] == 1
    assert result["skipped"] == 2
    reasons = {d["parcel_id"]: d.get("reason") for d in result["details"]}
    assert reasons["LC1000001"] == "final state"
    assert reasons["LC404"] == "not found"
    assert [row_index for row_index, _ in sheets.updated] == [3]


def test_update_pending_only_tallies_transport_errors(sheets, store):
    sheets.rows = [make_row("LC1000001")]
    sheets.fail_writes = True
    result = store.update_pending_only([{"parcel_id": "LC1000001", "data": {"status": "Entregado"}}])
    assert result["errors"] == 1
    assert result["updated"] == 0


def test_get_stats(sheets, store):
    sheets.rows = [make_row("LC1", status="Entregado"), make_row("LC2", status="Entregado"),
                   make_row("LC3", status="")]
    stats = store.get_stats()
    assert stats["total"] == 3
    assert stats["counts_by_status"] == {"Entregado": 2, "Desconocido": 1}
    assert stats["as_of"] == "2025-10-20 12:00:00"


def test_recently_delivered_window(sheets, store, clock):
    now = clock()
    sheets.rows = [
        make_row("LC1", status="Entregado", last_updated=format_datetime(now - timedelta(hours=23))),
        make_row("LC2", status="Entregado", last_updated=format_datetime(now - timedelta(hours=25))),
        make_row("LC3", status="En tránsito", last_updated=format_datetime(now - timedelta(hours=1))),
        make_row("LC4", status="Entregado", last_updated="no es fecha"),
    ]
    assert [r.parcel_id for r in store.get_recently_delivered(24)] == ["LC1"]


def test_read_failure_is_wrapped():
    from laar_tracker.services.record_store import TrackingStore

    sheets = FakeSheetsClient()
    sheets.fail_reads = True
    with pytest.raises(TransportError, match="No se pudo obtener las guías"):
        TrackingStore(sheets).get_all()
