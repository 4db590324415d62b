from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Deque, List, Optional, Tuple, Union

from intercept.config import HISTORY_CAPACITY

# Marker used by ADS-B Exchange in place of a barometric altitude
ON_GROUND = "ground"

AltitudeOrGround = Union[int, str]
Position = Tuple[float, float]  # (lon, lat)
HistoryEntry = Tuple[datetime, Position]


def alt_number(alt: AltitudeOrGround) -> int:
    """Turn an altitude into a number, where ground is 0."""
    if alt == ON_GROUND:
        return 0
    return int(alt)


@dataclass(slots=True)
class Snapshot:
    """
    One aircraft's state in a single surveillance response.
    Every field other than hex and seen may be absent.
    """
    hex: str
    seen: timedelta = timedelta(0)
    lon: Optional[float] = None
    lat: Optional[float] = None
    ground_speed_knots: Optional[float] = None
    geometric_altitude: Optional[int] = None
    barometric_altitude: Optional[AltitudeOrGround] = None
    seen_pos: Optional[timedelta] = None

    @property
    def position(self) -> Optional[Position]:
        if self.lon is None or self.lat is None:
            return None
        # json accepts NaN and Infinity
        if not (math.isfinite(self.lon) and math.isfinite(self.lat)):
            return None
        return (self.lon, self.lat)


@dataclass
class SnapshotBatch:
    source: str
    now: datetime
    aircraft: List[Snapshot] = field(default_factory=list)


@dataclass
class Track:
    hex: str
    history: Deque[HistoryEntry]
    max_speed: float
    cur_speed: float
    cur_alt: int
    is_on_ground: bool
    seen: datetime
    # Last time the aircraft was seen faster than the interceptor speed
    time_seen_fast: Optional[datetime] = None
    # Number of updates faster than the interceptor speed
    fast_count: int = 0

    @classmethod
    def start(
        cls,
        hex_id: str,
        timestamp: datetime,
        position: Position,
        capacity: int = HISTORY_CAPACITY,
        **state,
    ) -> "Track":
        history: Deque[HistoryEntry] = deque(maxlen=capacity)
        history.append((timestamp, position))
        return cls(hex=hex_id, history=history, **state)

    @property
    def cur_coords(self) -> HistoryEntry:
        return self.history[-1]

    @property
    def oldest_coords(self) -> HistoryEntry:
        return self.history[0]

    @property
    def position(self) -> Position:
        return self.history[-1][1]

    def copy(self) -> "Track":
        return Track(
            hex=self.hex,
            history=deque(self.history, maxlen=self.history.maxlen),
            max_speed=self.max_speed,
            cur_speed=self.cur_speed,
            cur_alt=self.cur_alt,
            is_on_ground=self.is_on_ground,
            seen=self.seen,
            time_seen_fast=self.time_seen_fast,
            fast_count=self.fast_count,
        )


@dataclass(frozen=True)
class Interception:
    interceptor: Track
    target: Track
    time: datetime
    lateral_separation_ft: float
    vertical_separation_ft: int

    def to_row(self) -> dict:
        """Flat representation used for CSV export."""
        i_lon, i_lat = self.interceptor.position
        t_lon, t_lat = self.target.position
        return {
            "time": self.time.isoformat(),
            "interceptor_hex": self.interceptor.hex,
            "interceptor_lat": i_lat,
            "interceptor_lon": i_lon,
            "interceptor_alt_ft": self.interceptor.cur_alt,
            "interceptor_speed_kts": self.interceptor.cur_speed,
            "interceptor_max_speed_kts": self.interceptor.max_speed,
            "target_hex": self.target.hex,
            "target_lat": t_lat,
            "target_lon": t_lon,
            "target_alt_ft": self.target.cur_alt,
            "target_speed_kts": self.target.cur_speed,
            "lateral_separation_ft": round(self.lateral_separation_ft, 1),
            "vertical_separation_ft": self.vertical_separation_ft,
        }
