import json

import pytest

from laar_tracker.core.operations import ReconciliationJob, scrape_parcels
from laar_tracker.exceptions import TransportError, ValidationError
from laar_tracker.models import ScrapedStatus
from laar_tracker.tests.conftest import make_row
from laar_tracker.utils.job_lock import JobLock


class FakeScraper:
    def __init__(self, results):
        self.results = results
        self.calls = []

    def scrape(self, parcel_id):
        self.calls.append(parcel_id)
        result = self.results[parcel_id]
        if isinstance(result, Exception):
            raise result
        return result


def no_sleep(seconds):
    pass


def test_no_pending_records_is_noop(sheets, store):
    sheets.rows = [make_row("LC1000001", status="Entregado")]
    scraper = FakeScraper({})
    summary = ReconciliationJob(store, scraper, sleep=no_sleep).run()

    assert summary["success"] is True
    assert summary["stats"]["total"] == 1
    assert summary["stats"]["pending"] == 0
    assert scraper.calls == []
    assert sheets.updated == []


def test_reconciles_pending_records(sheets, store):
    sheets.rows = [
        make_row("LC1000001", status="Entregado"),
        make_row("LC1000002", status="En tránsito", history=json.dumps([{"estado": "En tránsito"}])),
        make_row("LC1000003", status="En tránsito"),
        make_row("LC1000004", status="En bodega"),
    ]
    scraper = FakeScraper({
        "LC1000002": ScrapedStatus("LC1000002", status="Entregado", delivered_to="ANA"),
        "LC1000003": TransportError("Timeout navegando"),
        "LC1000004": ScrapedStatus("LC1000004"),  # No disponible
    })

    summary = ReconciliationJob(store, scraper, delay_seconds=2.0, sleep=no_sleep).run()

    assert scraper.calls == ["LC1000002", "LC1000003", "LC1000004"]
    stats = summary["stats"]
    assert stats == {"total": 4, "pending": 3, "scraped": 1, "updated": 1,
                     "skipped": 0, "errors": 0, "failed": 2}
    failures = {f["parcel_id"]: f["error"] for f in summary["details"]["scraping"]["failures"]}
    assert failures == {"LC1000003": "Timeout navegando", "LC1000004": "No disponible"}

    row = sheets.rows[1]
    assert row[3] == "Entregado"
    assert row[6] == "ANA"
    # cities not shown on the page keep their stored values
    assert row[4] == "QUITO"
    assert [h["estado"] for h in json.loads(row[9])] == ["En tránsito", "Entregado"]
    assert sheets.rows[3][3] == "En bodega"


def test_initial_read_failure_propagates(sheets, store):
    sheets.fail_reads = True
    with pytest.raises(TransportError):
        ReconciliationJob(store, FakeScraper({}), sleep=no_sleep).run()


def test_lock_prevents_overlapping_runs(tmp_path, sheets, store):
    sheets.rows = [make_row("LC1000001")]
    lock_path = str(tmp_path / "job.lock.json")
    held = JobLock(lock_path, lease_seconds=60)
    assert held.acquire()

    job = ReconciliationJob(store, FakeScraper({}), lock=JobLock(lock_path), sleep=no_sleep)
    summary = job.run()
    assert summary["success"] is False
    assert summary["message"] == "already running"

    held.release()
    scraper = FakeScraper({"LC1000001": ScrapedStatus("LC1000001", status="En reparto")})
    job = ReconciliationJob(store, scraper, lock=JobLock(lock_path), sleep=no_sleep)
    assert job.run()["stats"]["updated"] == 1
    assert not (tmp_path / "job.lock.json").exists()


def test_cancel_before_run_scrapes_nothing(sheets, store):
    sheets.rows = [make_row("LC1000001"), make_row("LC1000002")]
    scraper = FakeScraper({})
    job = ReconciliationJob(store, scraper, sleep=no_sleep)
    job.cancel()
    summary = job.run()
    assert scraper.calls == []
    assert summary["details"]["scraping"]["not_started"] == ["LC1000001", "LC1000002"]


def test_scrape_parcels_validates_and_applies(sheets, store):
    sheets.rows = [make_row("LC51960903")]
    scraper = FakeScraper({"LC51960903": ScrapedStatus("LC51960903", status="Entregado")})

    result = scrape_parcels([" lc51960903 ", "bad"], scraper, delay_seconds=0, store=store, sleep=no_sleep)
    assert result["total"] == 1
    assert result["successful"] == 1
    assert result["updates"]["updated"] == 1
    assert sheets.rows[0][3] == "Entregado"

    with pytest.raises(ValidationError):
        scrape_parcels([], scraper, delay_seconds=0)
    with pytest.raises(ValidationError):
        scrape_parcels(["LC1234567", "LC1234568"], scraper, delay_seconds=0, max_batch=1)


def test_long_run_keeps_renewing_its_lease(tmp_path, sheets, store):
    sheets.rows = [make_row("LC1000001"), make_row("LC1000002"), make_row("LC1000003")]
    path = str(tmp_path / "job.lock.json")
    now = [1000.0]

    def clock():
        return now[0]

    rival = JobLock(path, lease_seconds=60, clock=clock)
    rival_results = []

    class SlowScraper:
        def scrape(self, parcel_id):
            now[0] += 50
            rival_results.append(rival.acquire())
            return ScrapedStatus(parcel_id, status="En reparto")

    job = ReconciliationJob(store, SlowScraper(), lock=JobLock(path, lease_seconds=60, clock=clock),
                            sleep=no_sleep)
    summary = job.run()

    # 150 s of scraping on a 60 s lease
    assert rival_results == [False, False, False]
    assert summary["stats"]["updated"] == 3
    assert not (tmp_path / "job.lock.json").exists()


def test_cancel_applies_to_a_single_run(sheets, store):
    sheets.rows = [make_row("LC1000001")]
    scraper = FakeScraper({"LC1000001": ScrapedStatus("LC1000001", status="En reparto")})
    job = ReconciliationJob(store, scraper, sleep=no_sleep)

    job.cancel()
    assert job.run()["stats"]["scraped"] == 0
    assert job.run()["stats"]["scraped"] == 1
    assert scraper.calls == ["LC1000001"]
