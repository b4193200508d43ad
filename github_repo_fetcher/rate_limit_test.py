"""Unit tests for the rate limit tracker."""

import pytest

from .rate_limit import DEFAULT_REMAINING, RateLimitTracker


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def describe_RateLimitTracker():
    @pytest.fixture
    def clock():
        return FakeClock()

    @pytest.fixture
    def tracker(clock):
        return RateLimitTracker(clock=clock)

    def it_starts_with_conservative_defaults(tracker, clock):
        assert tracker.remaining == DEFAULT_REMAINING
        assert tracker.reset_at == clock.now + 3600
        assert not tracker.is_limited()

    def it_records_headers(tracker, clock):
        tracker.record_response_headers({
            "x-ratelimit-remaining": "42",
            "x-ratelimit-reset": str(int(clock.now) + 600),
        })
        assert tracker.remaining == 42
        assert tracker.reset_at == clock.now + 600

    def it_falls_back_to_defaults_when_headers_missing(tracker, clock):
        tracker.record_response_headers({"x-ratelimit-remaining": "0", "x-ratelimit-reset": "1"})
        tracker.record_response_headers({})
        assert tracker.remaining == DEFAULT_REMAINING
        assert tracker.reset_at == clock.now + 3600

    def it_treats_garbage_as_missing(tracker):
        tracker.record_response_headers({"x-ratelimit-remaining": "lots"})
        assert tracker.remaining == DEFAULT_REMAINING

    def it_never_decrements_locally(tracker):
        tracker.record_response_headers({"x-ratelimit-remaining": "5"})
        tracker.is_limited()
        tracker.time_until_reset()
        tracker.snapshot()
        assert tracker.remaining == 5

    def describe_is_limited():
        def it_is_limited_when_exhausted_before_reset(tracker, clock):
            tracker.record_response_headers({
                "x-ratelimit-remaining": "0",
                "x-ratelimit-reset": str(int(clock.now) + 60),
            })
            assert tracker.is_limited()

        def it_stops_being_limited_exactly_at_reset(tracker, clock):
            reset = int(clock.now) + 60
            tracker.record_response_headers({
                "x-ratelimit-remaining": "0",
                "x-ratelimit-reset": str(reset),
            })
            clock.now = reset - 0.001
            assert tracker.is_limited()
            clock.now = reset
            assert not tracker.is_limited()

        def it_is_not_limited_with_quota_left(tracker, clock):
            tracker.record_response_headers({
                "x-ratelimit-remaining": "1",
                "x-ratelimit-reset": str(int(clock.now) + 60),
            })
            assert not tracker.is_limited()

    def describe_time_until_reset():
        def it_counts_down(tracker, clock):
            tracker.record_response_headers({
                "x-ratelimit-remaining": "0",
                "x-ratelimit-reset": str(int(clock.now) + 90),
            })
            assert tracker.time_until_reset() == pytest.approx(90)
            clock.now += 30
            assert tracker.time_until_reset() == pytest.approx(60)

        def it_never_goes_negative(tracker, clock):
            tracker.record_response_headers({
                "x-ratelimit-remaining": "0",
                "x-ratelimit-reset": str(int(clock.now) - 10),
            })
            assert tracker.time_until_reset() == 0

    def it_takes_consistent_snapshots(tracker, clock):
        tracker.record_response_headers({
            "x-ratelimit-remaining": "0",
            "x-ratelimit-reset": str(int(clock.now) + 10),
        })
        snap = tracker.snapshot()
        assert snap.remaining == 0
        assert snap.is_limited
        assert snap.seconds_until_reset == pytest.approx(10)
        assert snap.reset_at_iso.endswith("+00:00")
