"""
Unit Tests for Rate-Limited ETA Lookups (restock_router/routing/eta.py)

Tests the sliding-window budget, throttling backoff, unavailable answers and
cancellation, all against a fake clock.
"""

import asyncio

import pytest

from restock_router.routing.eta import BackoffPolicy, RateBudget, RateLimitedEtaClient
from tests.conftest import FakeClock, FakeTravelOracle, eta_client, make_place


def _max_calls_in_any_window(times, window):
    return max(
        sum(1 for other in times if t - window < other <= t)
        for t in times
    )


# ==============================================================================
# Backoff
# ==============================================================================

class TestBackoffPolicy:

    def test_delay_doubles_per_attempt(self):
        policy = BackoffPolicy(base_seconds=0.5, max_seconds=8.0)

        assert [policy.delay(n) for n in (1, 2, 3, 4)] == [0.5, 1.0, 2.0, 4.0]

    def test_delay_is_capped(self):
        policy = BackoffPolicy(base_seconds=1.5, max_seconds=15.0)

        assert policy.delay(10) == 15.0

    def test_jitter_stays_within_bounds(self):
        policy = BackoffPolicy(base_seconds=1.0, max_seconds=100.0, jitter_seconds=0.5)

        for _ in range(20):
            assert 1.0 <= policy.delay(1) <= 1.5


# ==============================================================================
# Request Budget
# ==============================================================================

class TestRateBudget:

    def test_rejects_invalid_configuration(self):
        with pytest.raises(ValueError):
            RateBudget(limit=0)
        with pytest.raises(ValueError):
            RateBudget(limit=5, window_seconds=0)

    def test_delay_is_zero_until_limit(self, clock):
        budget = RateBudget(limit=2, window_seconds=60, clock=clock)

        assert budget.delay() == 0.0
        budget.record()
        budget.record()
        assert budget.delay() == 60.0
        assert budget.calls_in_window == 2

    def test_old_calls_leave_the_window(self, clock):
        budget = RateBudget(limit=1, window_seconds=10, clock=clock)
        budget.record()

        clock.now = 4.0
        assert budget.delay() == 6.0
        clock.now = 10.0
        assert budget.delay() == 0.0
        assert budget.calls_in_window == 0

    def test_acquire_waits_for_the_window(self, clock):
        budget = RateBudget(limit=2, window_seconds=30, clock=clock)

        async def scenario():
            for _ in range(5):
                await budget.acquire(clock.sleep)

        asyncio.run(scenario())

        assert clock.sleeps == [30.0, 30.0]
        assert clock.now == 60.0


# ==============================================================================
# ETA Client
# ==============================================================================

class TestRateLimitedEtaClient:

    def test_returns_oracle_answer(self, clock, start_time):
        oracle = FakeTravelOracle({("Shop", "A"): 600})
        client = eta_client(oracle, clock)

        eta = asyncio.run(client.travel_time(make_place("Shop"), make_place("A"), start_time))

        assert eta == 600.0
        assert client.calls_made == 1
        assert not client.hit_throttle

    def test_unavailable_route_returns_none(self, clock, start_time):
        oracle = FakeTravelOracle({})
        client = eta_client(oracle, clock)

        eta = asyncio.run(client.travel_time(make_place("Shop"), make_place("A"), start_time))

        assert eta is None
        assert clock.sleeps == []

    def test_budget_is_never_exceeded(self, start_time):
        clock = FakeClock()
        oracle = FakeTravelOracle({("Shop", "A"): 60}, clock=clock)
        client = eta_client(oracle, clock, limit=3, window=60)

        async def scenario():
            for _ in range(7):
                await client.travel_time(make_place("Shop"), make_place("A"), start_time)

        asyncio.run(scenario())

        assert oracle.call_times == [0, 0, 0, 60, 60, 60, 120]
        assert _max_calls_in_any_window(oracle.call_times, 60) <= 3

    def test_budget_holds_for_concurrent_callers(self, start_time):
        clock = FakeClock()
        oracle = FakeTravelOracle({("Shop", "A"): 60}, clock=clock)
        client = eta_client(oracle, clock, limit=2, window=60)

        async def scenario():
            await asyncio.gather(*[
                client.travel_time(make_place("Shop"), make_place("A"), start_time)
                for _ in range(6)
            ])

        asyncio.run(scenario())

        assert len(oracle.call_times) == 6
        assert _max_calls_in_any_window(oracle.call_times, 60) <= 2

    def test_throttling_is_retried_with_backoff(self, clock, start_time):
        oracle = FakeTravelOracle({("Shop", "A"): 600}, throttle_first=3)
        client = eta_client(oracle, clock)

        eta = asyncio.run(client.travel_time(make_place("Shop"), make_place("A"), start_time))

        assert eta == 600.0
        assert clock.sleeps == [0.5, 1.0, 2.0]
        assert client.throttled_wait_seconds == 3.5
        assert client.calls_made == 4

    def test_throttle_wait_respects_budget(self, clock, start_time):
        oracle = FakeTravelOracle({("Shop", "A"): 600}, throttle_first=1)
        client = eta_client(oracle, clock, limit=1, window=20)

        eta = asyncio.run(client.travel_time(make_place("Shop"), make_place("A"), start_time))

        assert eta == 600.0
        # Backoff (0.5s) is shorter than the budget window, so the budget wins
        assert clock.sleeps == [20.0]

    def test_reset_throttle_stats(self, clock, start_time):
        oracle = FakeTravelOracle({("Shop", "A"): 600}, throttle_first=1)
        client = eta_client(oracle, clock)
        asyncio.run(client.travel_time(make_place("Shop"), make_place("A"), start_time))

        client.reset_throttle_stats()

        assert client.throttled_wait_seconds == 0.0
        assert not client.hit_throttle

    def test_cancellation_stops_retrying(self, clock, start_time):
        oracle = FakeTravelOracle({}, always_throttle=True)
        client = eta_client(oracle, clock)

        async def scenario():
            task = asyncio.ensure_future(
                client.travel_time(make_place("Shop"), make_place("A"), start_time)
            )
            for _ in range(5):
                await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            return len(oracle.calls)

        calls_at_cancel = asyncio.run(scenario())

        assert calls_at_cancel >= 1
        assert len(oracle.calls) == calls_at_cancel

    def test_default_budget(self):
        client = RateLimitedEtaClient(FakeTravelOracle({}))

        assert client.budget.limit == 50
        assert client.budget.window_seconds == 60.0
