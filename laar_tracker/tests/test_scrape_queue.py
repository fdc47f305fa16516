from laar_tracker.core.scrape_queue import ScrapeQueue
from laar_tracker.exceptions import TransportError
from laar_tracker.models import ScrapedStatus


class FakeTime:
    """Monotonic clock that advances only when slept on."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def clock(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def test_sequential_with_minimum_interval():
    fake = FakeTime()
    calls = []

    def scrape(parcel_id):
        calls.append((parcel_id, fake.now))
        fake.now += 0.5
        return ScrapedStatus(parcel_id=parcel_id, status="En tránsito")

    queue = ScrapeQueue(scrape, min_interval=2.0, sleep=fake.sleep, clock=fake.clock)
    outcomes = queue.run(["LC1", "LC2", "LC3"])

    assert [o.parcel_id for o in outcomes] == ["LC1", "LC2", "LC3"]
    assert all(o.success for o in outcomes)
    assert fake.sleeps == [1.5, 1.5]
    starts = [t for _, t in calls]
    assert starts == [0.0, 2.0, 4.0]


def test_failure_is_recorded_and_queue_continues():
    def scrape(parcel_id):
        if parcel_id == "LC2":
            raise TransportError("timeout")
        return ScrapedStatus(parcel_id=parcel_id, status="Entregado")

    outcomes = ScrapeQueue(scrape, min_interval=0).run(["LC1", "LC2", "LC3"])
    assert [o.success for o in outcomes] == [True, False, True]
    assert outcomes[1].error == "timeout"


def test_cancel_lets_in_flight_task_finish():
    queue = None

    def scrape(parcel_id):
        if parcel_id == "LC2":
            queue.cancel()
        return ScrapedStatus(parcel_id=parcel_id, status="En tránsito")

    queue = ScrapeQueue(scrape, min_interval=0)
    outcomes = queue.run(["LC1", "LC2", "LC3", "LC4"])

    assert [o.parcel_id for o in outcomes] == ["LC1", "LC2"]
    assert outcomes[1].success is True
    assert queue.not_started == ["LC3", "LC4"]


def test_before_each_runs_ahead_of_every_scrape():
    events = []

    def scrape(parcel_id):
        events.append(("scrape", parcel_id))
        return ScrapedStatus(parcel_id=parcel_id, status="En tránsito")

    queue = ScrapeQueue(scrape, min_interval=0, before_each=lambda p: events.append(("before", p)))
    queue.run(["LC1", "LC2"])
    assert events == [("before", "LC1"), ("scrape", "LC1"), ("before", "LC2"), ("scrape", "LC2")]
