"""
Tests for ground status, fast-mover latch and target band classification.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from intercept.classification import (
    Class,
    aircraft_is_on_ground,
    classify,
    is_fast_mover,
    is_potential_toi,
)
from intercept.config import DetectorConfig
from intercept.models import ON_GROUND, Snapshot, Track

NOW = datetime(2021, 11, 8, 12, 0, tzinfo=timezone.utc)


def make_track(
    cur_speed: float = 450.0,
    fast_count: int = 11,
    time_seen_fast=NOW,
    is_on_ground: bool = False,
) -> Track:
    return Track.start(
        "ae0001",
        NOW,
        (-117.0, 33.0),
        max_speed=max(cur_speed, 450.0),
        cur_speed=cur_speed,
        cur_alt=20000,
        is_on_ground=is_on_ground,
        seen=NOW,
        time_seen_fast=time_seen_fast,
        fast_count=fast_count,
    )


def test_baro_ground_marker_wins_over_geometric_altitude():
    snap = Snapshot(hex="a", geometric_altitude=35000, barometric_altitude=ON_GROUND)
    assert aircraft_is_on_ground(snap) is True


@pytest.mark.parametrize("alt, expected", [(499, True), (500, False), (501, False)])
def test_ground_by_geometric_altitude(alt, expected):
    snap = Snapshot(hex="a", geometric_altitude=alt)
    assert aircraft_is_on_ground(snap) is expected


def test_no_altitude_is_airborne():
    assert aircraft_is_on_ground(Snapshot(hex="a")) is False


def test_fast_mover_latch_window():
    assert is_fast_mover(make_track(time_seen_fast=NOW - timedelta(minutes=2, seconds=59)), NOW)
    assert not is_fast_mover(make_track(time_seen_fast=NOW - timedelta(minutes=3, seconds=1)), NOW)


def test_fast_mover_needs_more_than_ten_fast_observations():
    assert not is_fast_mover(make_track(fast_count=10), NOW)
    assert is_fast_mover(make_track(fast_count=11), NOW)


def test_fast_mover_ignores_ground_and_never_fast():
    assert not is_fast_mover(make_track(is_on_ground=True), NOW)
    assert not is_fast_mover(make_track(fast_count=0, time_seen_fast=None), NOW)


def test_fast_mover_latches_after_slowing_down():
    track = make_track(cur_speed=200.0, time_seen_fast=NOW - timedelta(minutes=1))
    assert classify(track, NOW) is Class.INTERCEPTOR


@pytest.mark.parametrize(
    "speed, expected",
    [(80.0, False), (80.01, True), (150.0, True), (249.99, True), (250.0, False)],
)
def test_target_band_is_exclusive(speed, expected):
    track = make_track(cur_speed=speed, fast_count=0, time_seen_fast=None)
    assert is_potential_toi(track) is expected


def test_target_on_ground_is_not_target():
    track = make_track(cur_speed=150.0, fast_count=0, time_seen_fast=None, is_on_ground=True)
    assert not is_potential_toi(track)
    assert classify(track, NOW) is Class.OTHER


def test_classify_other_traffic():
    airliner = make_track(cur_speed=300.0, fast_count=0, time_seen_fast=None)
    assert classify(airliner, NOW) is Class.OTHER


def test_thresholds_follow_config():
    config = DetectorConfig(target_min_speed_kts=50.0, fast_count_latch=2)
    slow = make_track(cur_speed=60.0, fast_count=0, time_seen_fast=None)
    assert is_potential_toi(slow, config)
    assert is_fast_mover(make_track(fast_count=3), NOW, config)
