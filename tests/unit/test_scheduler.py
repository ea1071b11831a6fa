from datetime import datetime, timedelta, timezone

import pytest

from liftwatch.services.scheduler import Scheduler


@pytest.fixture
def scheduler(source, clock, rng):
    return Scheduler(source, clock=clock, rng=rng)


class TestFirstFetch:
    """A fresh state always fetches"""

    def test_first_call_allowed(self, scheduler):
        assert scheduler.state.last_fetch_attempt_at is None
        assert scheduler.should_fetch_now() is True

    def test_first_call_ignores_operating_hours(self, source, clock, rng):
        clock.now = datetime(2026, 1, 15, 8, 0, tzinfo=timezone.utc)  # 03:00 in New York
        scheduler = Scheduler(source, clock=clock, rng=rng)
        assert scheduler.is_within_operating_hours() is False
        assert scheduler.should_fetch_now() is True

    def test_initial_interval_is_drawn(self, scheduler):
        low, high = scheduler.bounds_for_activity(False)
        assert low <= scheduler.state.next_interval <= high

    def test_cache_starts_empty(self, scheduler):
        assert scheduler.state.cache.get() == {}


class TestBackoff:
    """Randomized wait between attempts"""

    def test_blocked_until_interval_elapses(self, scheduler, clock):
        scheduler.record_attempt()
        interval = scheduler.state.next_interval

        clock.advance(seconds=interval.total_seconds() - 1)
        assert scheduler.should_fetch_now() is False

        clock.advance(seconds=2)
        assert scheduler.should_fetch_now() is True

    def test_interval_redrawn_after_every_attempt(self, scheduler):
        seen = {scheduler.state.next_interval}
        for _ in range(5):
            scheduler.record_attempt("no data: HTTP 403")
            seen.add(scheduler.state.next_interval)
        assert len(seen) == 6
        assert scheduler.state.last_outcome == "no data: HTTP 403"

    def test_record_attempt_sets_timestamp(self, scheduler, clock):
        scheduler.record_attempt()
        assert scheduler.state.last_fetch_attempt_at == clock.now


class TestActivityTiers:
    """Backoff bounds follow how often callers ask"""

    def test_bounds(self, scheduler):
        assert scheduler.bounds_for_activity(True) == (timedelta(minutes=5), timedelta(minutes=15))
        assert scheduler.bounds_for_activity(False) == (timedelta(minutes=30), timedelta(minutes=60))

    def test_close_requests_use_tight_bounds(self, scheduler, clock):
        scheduler.record_request()
        clock.advance(minutes=4)
        scheduler.record_request()
        assert scheduler.state.active is True

        for _ in range(20):
            scheduler.record_attempt()
            assert timedelta(minutes=5) <= scheduler.state.next_interval <= timedelta(minutes=15)

    def test_spread_requests_use_loose_bounds(self, scheduler, clock):
        scheduler.record_request()
        clock.advance(minutes=6)
        scheduler.record_request()
        assert scheduler.state.active is False

        for _ in range(20):
            scheduler.record_attempt()
            assert timedelta(minutes=30) <= scheduler.state.next_interval <= timedelta(minutes=60)

    def test_activity_can_lapse(self, scheduler, clock):
        scheduler.record_request()
        clock.advance(minutes=1)
        scheduler.record_request()
        assert scheduler.state.active is True
        clock.advance(hours=2)
        scheduler.record_request()
        assert scheduler.state.active is False

    def test_request_timestamp_tracked(self, scheduler, clock):
        clock.advance(minutes=3)
        scheduler.record_request()
        assert scheduler.state.last_request_at == clock.now


class TestOperatingHours:
    """Fetching only while the resort is open, in its own timezone"""

    @pytest.mark.parametrize(
        "utc_time,expected",
        [
            (datetime(2026, 1, 15, 11, 59, tzinfo=timezone.utc), False),  # 06:59 EST
            (datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc), True),  # 07:00 EST
            (datetime(2026, 1, 15, 21, 59, tzinfo=timezone.utc), True),  # 16:59 EST
            (datetime(2026, 1, 15, 22, 0, tzinfo=timezone.utc), False),  # 17:00 EST
        ],
    )
    def test_winter_window(self, scheduler, utc_time, expected):
        assert scheduler.is_within_operating_hours(utc_time) is expected

    def test_summer_offset(self, scheduler):
        """11:30 UTC is 07:30 under EDT but 06:30 under EST"""
        assert scheduler.is_within_operating_hours(datetime(2026, 7, 15, 11, 30, tzinfo=timezone.utc)) is True
        assert scheduler.is_within_operating_hours(datetime(2026, 1, 15, 11, 30, tzinfo=timezone.utc)) is False

    def test_elapsed_backoff_still_gated_by_hours(self, scheduler, clock):
        scheduler.record_attempt()
        clock.now = datetime(2026, 1, 16, 2, 0, tzinfo=timezone.utc)  # 21:00 EST
        assert scheduler.should_fetch_now() is False

        clock.now = datetime(2026, 1, 16, 14, 0, tzinfo=timezone.utc)  # 09:00 EST
        assert scheduler.should_fetch_now() is True

    def test_naive_datetime_rejected(self, scheduler):
        with pytest.raises(ValueError):
            scheduler.is_within_operating_hours(datetime(2026, 1, 15, 12, 0))
