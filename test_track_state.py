"""
Tests for track creation, update and the per-identifier track table.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import pytest

from intercept.errors import MissingData
from intercept.models import ON_GROUND, Snapshot
from intercept.track_state import TrackTable, create_track, update_track

T0 = datetime(2021, 11, 8, 12, 0, tzinfo=timezone.utc)


def make_snapshot(hex_id: str = "ae1234", **overrides) -> Snapshot:
    fields = dict(
        hex=hex_id,
        seen=timedelta(seconds=1),
        lon=-117.0,
        lat=33.0,
        ground_speed_knots=200.0,
        geometric_altitude=12000,
        barometric_altitude=11800,
        seen_pos=timedelta(seconds=2),
    )
    fields.update(overrides)
    return Snapshot(**fields)


def test_create_track_adjusts_timestamps():
    track = create_track(T0, make_snapshot())

    assert track.hex == "ae1234"
    assert list(track.history) == [(T0 - timedelta(seconds=2), (-117.0, 33.0))]
    assert track.max_speed == track.cur_speed == 200.0
    assert track.cur_alt == 12000
    assert track.is_on_ground is False
    assert track.time_seen_fast is None
    assert track.fast_count == 0
    assert track.seen == T0 - timedelta(seconds=1)


def test_create_fast_track_starts_fast_count():
    track = create_track(T0, make_snapshot(ground_speed_knots=500.0))

    assert track.fast_count == 1
    assert track.time_seen_fast == T0 - timedelta(seconds=2)


@pytest.mark.parametrize(
    "missing, field",
    [
        ({"lon": None}, "position"),
        ({"lat": None}, "position"),
        ({"ground_speed_knots": None}, "ground speed"),
        ({"geometric_altitude": None}, "geometric altitude"),
        ({"seen_pos": None}, "seen_pos"),
    ],
)
def test_create_track_rejects_missing_fields(missing, field):
    with pytest.raises(MissingData) as excinfo:
        create_track(T0, make_snapshot("abc123", **missing))

    assert field in str(excinfo.value)
    assert "abc123" in str(excinfo.value)


def test_table_does_not_keep_rejected_snapshot():
    table = TrackTable()
    stats = table.ingest(T0, [make_snapshot("abc123", ground_speed_knots=None)])

    assert stats.rejected == 1
    assert "abc123" not in table
    assert len(table) == 0


def test_history_keeps_last_40_in_order():
    track = create_track(T0, make_snapshot())
    inserted = [(T0 + timedelta(seconds=i), (-117.0 + i * 0.01, 33.0)) for i in range(1, 61)]
    for now, (lon, lat) in inserted:
        update_track(track, now, make_snapshot(lon=lon, lat=lat))

    assert len(track.history) == 40
    assert list(track.history) == inserted[-40:]
    assert track.oldest_coords == inserted[20]
    assert track.cur_coords == inserted[-1]


def test_max_speed_never_decreases():
    track = create_track(T0, make_snapshot(ground_speed_knots=100.0))
    previous = track.max_speed
    for i, spd in enumerate([300.0, 120.0, 450.0, 90.0, 449.0]):
        update_track(track, T0 + timedelta(seconds=i + 1), make_snapshot(ground_speed_knots=spd))
        assert track.max_speed >= previous
        assert track.max_speed >= track.cur_speed
        previous = track.max_speed

    assert track.max_speed == 450.0
    assert track.cur_speed == 449.0


def test_fast_count_increments_only_above_threshold():
    track = create_track(T0, make_snapshot(ground_speed_knots=100.0))

    update_track(track, T0 + timedelta(seconds=1), make_snapshot(ground_speed_knots=350.0))
    assert track.fast_count == 0
    assert track.time_seen_fast is None

    now = T0 + timedelta(seconds=2)
    update_track(track, now, make_snapshot(ground_speed_knots=351.0))
    assert track.fast_count == 1
    assert track.time_seen_fast == now

    update_track(track, T0 + timedelta(seconds=3), make_snapshot(ground_speed_knots=None))
    assert track.fast_count == 1
    assert track.cur_speed == 351.0


def test_update_altitude_fallbacks():
    track = create_track(T0, make_snapshot())

    update_track(track, T0, make_snapshot(geometric_altitude=None, barometric_altitude=9000))
    assert track.cur_alt == 9000

    update_track(track, T0, make_snapshot(geometric_altitude=None, barometric_altitude=ON_GROUND))
    assert track.cur_alt == 0
    assert track.is_on_ground is True

    update_track(track, T0, make_snapshot(geometric_altitude=None, barometric_altitude=None))
    assert track.cur_alt == 0
    assert track.is_on_ground is False


def test_update_sets_seen_to_now():
    track = create_track(T0, make_snapshot())
    now = T0 + timedelta(seconds=30)
    update_track(track, now, make_snapshot(seen=timedelta(seconds=10)))

    assert track.seen == now
    assert track.cur_coords[0] == now


def test_update_without_position_keeps_history(caplog):
    track = create_track(T0, make_snapshot())
    now = T0 + timedelta(seconds=5)

    with caplog.at_level(logging.WARNING):
        missing = update_track(track, now, make_snapshot(lon=None, lat=None, ground_speed_knots=400.0))

    assert isinstance(missing, MissingData)
    assert len(track.history) == 1
    assert track.cur_speed == 400.0
    assert track.fast_count == 1
    assert track.seen == now
    assert "ae1234" in caplog.text


def test_table_creates_then_updates():
    table = TrackTable()
    first = table.ingest(T0, [make_snapshot("a"), make_snapshot("b")])
    second = table.ingest(T0 + timedelta(seconds=5), [make_snapshot("a", lon=None), make_snapshot("b")])

    assert first.created == 2
    assert second.updated == 2
    assert second.missing_position == 1
    assert len(table.get("a").history) == 1
    assert len(table.get("b").history) == 2


@pytest.mark.parametrize("lon", [float("nan"), float("inf")])
def test_non_finite_position_counts_as_missing(lon):
    with pytest.raises(MissingData):
        create_track(T0, make_snapshot(lon=lon))

    track = create_track(T0, make_snapshot())
    missing = update_track(track, T0 + timedelta(seconds=5), make_snapshot(lat=float("nan"), ground_speed_knots=150.0))

    assert isinstance(missing, MissingData)
    assert len(track.history) == 1
    assert track.cur_speed == 150.0
