"""
Aircraft Classification

Labels tracks as interceptor candidates, targets of interest or other traffic.

- Interceptor: a persistent fast mover. More than FAST_COUNT_LATCH fast
  observations, the latest one within INTERCEPTOR_TIMEOUT_MINS, airborne.
- Target: airborne with a current speed strictly inside the target band.
- Other: everything else. The speed bands do not overlap, so a track is
  never both interceptor and target.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum

from intercept.config import DEFAULT_CONFIG, DetectorConfig
from intercept.models import ON_GROUND, Snapshot, Track


class Class(str, Enum):
    INTERCEPTOR = "interceptor"
    TARGET = "target"
    OTHER = "other"


def aircraft_is_on_ground(aircraft: Snapshot, config: DetectorConfig = DEFAULT_CONFIG) -> bool:
    """Check whether an aircraft seems to be on the ground (or very close to it)."""
    if aircraft.barometric_altitude == ON_GROUND:
        return True
    return (
        aircraft.geometric_altitude is not None
        and aircraft.geometric_altitude < config.ground_altitude_ft
    )


def is_fast_mover(track: Track, now: datetime, config: DetectorConfig = DEFAULT_CONFIG) -> bool:
    if track.time_seen_fast is None:
        return False
    elapsed = now - track.time_seen_fast
    return (
        elapsed < timedelta(minutes=config.interceptor_timeout_mins)
        and track.fast_count > config.fast_count_latch
        and not track.is_on_ground
    )


def is_potential_toi(track: Track, config: DetectorConfig = DEFAULT_CONFIG) -> bool:
    return (
        config.target_min_speed_kts < track.cur_speed < config.target_max_speed_kts
        and not track.is_on_ground
    )


def classify(track: Track, now: datetime, config: DetectorConfig = DEFAULT_CONFIG) -> Class:
    if is_fast_mover(track, now, config):
        return Class.INTERCEPTOR
    if is_potential_toi(track, config):
        return Class.TARGET
    return Class.OTHER
