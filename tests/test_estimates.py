"""
Unit Tests for Travel Estimates (restock_router/routing/estimates.py)
"""

import asyncio
from datetime import datetime

from restock_router.routing.estimates import DEFAULT_DEPOT_LABEL, estimate_travel
from tests.conftest import FakeTravelOracle, eta_client, make_stop


def _estimate(depot, start_time, stops, etas, clock):
    oracle = FakeTravelOracle(etas)
    estimate = asyncio.run(estimate_travel(depot, stops, start_time, eta_client(oracle, clock)))
    return estimate, oracle


def test_legs_follow_the_given_order(depot, start_time, abc_stops, abc_etas, clock):
    c, a, b = abc_stops[2], abc_stops[0], abc_stops[1]

    estimate, _ = _estimate(depot, start_time, [c, a, b], abc_etas, clock)

    assert list(estimate.legs) == ["C", "A", "B"]
    assert estimate.legs["C"].from_label == DEFAULT_DEPOT_LABEL
    assert estimate.legs["A"].from_label == "C"
    assert estimate.legs["A"].eta_seconds == 480
    assert estimate.return_leg.from_label == "B"
    assert estimate.return_leg.to_label == DEFAULT_DEPOT_LABEL
    assert estimate.total_seconds == 300 + 480 + 420 + 1800
    assert estimate.finish_time == datetime(2025, 10, 13, 10, 20)


def test_leg_count_is_stop_count_plus_return(depot, start_time, abc_stops, abc_etas, clock):
    estimate, _ = _estimate(depot, start_time, abc_stops, abc_etas, clock)

    assert len(estimate.all_legs) == len(abc_stops) + 1


def test_estimate_is_idempotent(depot, start_time, abc_stops, abc_etas, clock):
    first, _ = _estimate(depot, start_time, abc_stops, abc_etas, clock)
    second, _ = _estimate(depot, start_time, abc_stops, abc_etas, clock)

    assert first == second


def test_waiting_for_opening_shifts_later_departures(depot, start_time, clock):
    stops = [make_stop("W", opening=600), make_stop("A")]
    etas = {("Shop", "W"): 600, ("W", "A"): 600, ("A", "Shop"): 600}

    estimate, oracle = _estimate(depot, start_time, stops, etas, clock)

    # Leave W at 10:20, reach A at 10:30, leave A at 10:50
    assert estimate.finish_time == datetime(2025, 10, 13, 10, 50)
    assert estimate.total_seconds == 1800


def test_unavailable_leg_is_skipped_and_walk_continues(depot, start_time, abc_stops, abc_etas, clock):
    etas = {k: v for k, v in abc_etas.items() if k != ("A", "B")}

    estimate, oracle = _estimate(depot, start_time, abc_stops, etas, clock)

    assert list(estimate.legs) == ["A", "C"]
    assert estimate.legs["C"].from_label == "A"
    assert ("A", "C") in oracle.calls
    assert estimate.return_leg.from_label == "C"


def test_unresolved_stop_is_skipped(depot, start_time, abc_etas, clock):
    stops = [make_stop("A"), make_stop("X", resolved=False), make_stop("B")]

    estimate, oracle = _estimate(depot, start_time, stops, abc_etas, clock)

    assert list(estimate.legs) == ["A", "B"]
    assert all("X" not in call for call in oracle.calls)


def test_unknown_return_leg_is_kept_without_eta(depot, start_time, clock):
    estimate, _ = _estimate(depot, start_time, [make_stop("A")], {("Shop", "A"): 600}, clock)

    assert estimate.return_leg is not None
    assert estimate.return_leg.eta_seconds is None
    assert estimate.total_seconds == 600


def test_no_answers_means_no_total(depot, start_time, abc_stops, clock):
    estimate, _ = _estimate(depot, start_time, abc_stops, {}, clock)

    assert estimate.legs == {}
    assert estimate.return_leg is None
    assert estimate.total_seconds is None
    assert estimate.finish_time == start_time


def test_empty_order(depot, start_time, clock):
    estimate, oracle = _estimate(depot, start_time, [], {}, clock)

    assert estimate.all_legs == []
    assert estimate.total_seconds is None
    assert oracle.calls == []
