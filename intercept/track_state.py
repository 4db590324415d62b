from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, Iterator, Optional

from intercept.classification import aircraft_is_on_ground
from intercept.config import DEFAULT_CONFIG, DetectorConfig
from intercept.errors import MissingData
from intercept.models import Snapshot, Track, alt_number

logger = logging.getLogger(__name__)


def create_track(now: datetime, aircraft: Snapshot, config: DetectorConfig = DEFAULT_CONFIG) -> Track:
    """
    Start a track from the first snapshot of an aircraft.

    The position is stamped at now - seen_pos, when it was actually valid.
    Raises MissingData if position, ground speed, geometric altitude or
    seen_pos is absent.
    """
    position = aircraft.position
    if position is None:
        raise MissingData(aircraft.hex, "position data")
    if aircraft.ground_speed_knots is None:
        raise MissingData(aircraft.hex, "ground speed data")
    if aircraft.geometric_altitude is None:
        raise MissingData(aircraft.hex, "geometric altitude")
    if aircraft.seen_pos is None:
        raise MissingData(aircraft.hex, "seen_pos")

    spd = aircraft.ground_speed_knots
    pos_time = now - aircraft.seen_pos
    is_fast = spd > config.interceptor_min_speed_kts
    return Track.start(
        aircraft.hex,
        pos_time,
        position,
        capacity=config.history_capacity,
        max_speed=spd,
        cur_speed=spd,
        cur_alt=aircraft.geometric_altitude,
        is_on_ground=aircraft_is_on_ground(aircraft, config),
        seen=now - aircraft.seen,
        time_seen_fast=pos_time if is_fast else None,
        fast_count=1 if is_fast else 0,
    )


def update_track(
    track: Track,
    now: datetime,
    aircraft: Snapshot,
    config: DetectorConfig = DEFAULT_CONFIG,
) -> Optional[MissingData]:
    """
    Fold a new snapshot into an existing track. Never raises.

    A snapshot without a position still refreshes speed, altitude and ground
    status; only the history append is skipped. The MissingData is logged and
    returned so callers can count it.
    """
    spd = aircraft.ground_speed_knots
    if spd is not None:
        track.cur_speed = spd
        track.max_speed = max(track.max_speed, spd)
        if spd > config.interceptor_min_speed_kts:
            track.time_seen_fast = now
            track.fast_count += 1

    if aircraft.geometric_altitude is not None:
        track.cur_alt = aircraft.geometric_altitude
    elif aircraft.barometric_altitude is not None:
        track.cur_alt = alt_number(aircraft.barometric_altitude)
    else:
        track.cur_alt = 0
    track.is_on_ground = aircraft_is_on_ground(aircraft, config)
    track.seen = now

    position = aircraft.position
    if position is None:
        missing = MissingData(aircraft.hex, "position data")
        logger.warning(f"{missing}; keeping last known position")
        return missing

    # deque(maxlen=...) drops the oldest entry once full
    track.history.append((now, position))
    return None


@dataclass
class IngestStats:
    created: int = 0
    updated: int = 0
    rejected: int = 0
    missing_position: int = 0


class TrackTable:
    """
    Per-identifier track store for one processing run.

    Not thread-safe: a single consumer applies every batch in input order.
    """

    def __init__(self, config: DetectorConfig = DEFAULT_CONFIG):
        self.config = config
        self._tracks: Dict[str, Track] = {}

    def __len__(self) -> int:
        return len(self._tracks)

    def __contains__(self, hex_id: str) -> bool:
        return hex_id in self._tracks

    def __iter__(self) -> Iterator[Track]:
        return iter(self._tracks.values())

    def get(self, hex_id: str) -> Optional[Track]:
        return self._tracks.get(hex_id)

    def apply(self, now: datetime, aircraft: Snapshot, stats: Optional[IngestStats] = None) -> Optional[Track]:
        """Create or update the track for one snapshot. Returns None if rejected."""
        stats = stats if stats is not None else IngestStats()
        track = self._tracks.get(aircraft.hex)
        if track is None:
            try:
                track = create_track(now, aircraft, self.config)
            except MissingData as e:
                logger.debug(f"Skipping snapshot: {e}")
                stats.rejected += 1
                return None
            self._tracks[aircraft.hex] = track
            stats.created += 1
            return track

        if update_track(track, now, aircraft, self.config) is not None:
            stats.missing_position += 1
        stats.updated += 1
        return track

    def ingest(self, now: datetime, aircraft: Iterable[Snapshot]) -> IngestStats:
        stats = IngestStats()
        for snapshot in aircraft:
            self.apply(now, snapshot, stats)
        return stats
