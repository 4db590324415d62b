"""
Proximity Index & Interception Matching

Each tick the current positions of all target-classified tracks are loaded
into a KD-tree over Earth-centred coordinates. Every interceptor candidate
then queries the tree for targets within the lateral threshold. The tree is
rebuilt from scratch every tick and keeps no identity across ticks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from scipy.spatial import cKDTree

from intercept.classification import is_fast_mover, is_potential_toi
from intercept.config import DEFAULT_CONFIG, DetectorConfig
from intercept.geodesy import chord_radius_ft, haversine_ft, to_ecef_ft
from intercept.models import Interception, Position, Track

logger = logging.getLogger(__name__)

# Slack added to the chord query so boundary points reach the exact haversine check
_QUERY_SLACK_FT = 1.0


@dataclass(frozen=True)
class TargetLocation:
    """A point in the index: a target's position and the track it belongs to."""
    position: Position
    track: Track


class TargetIndex:
    def __init__(self, entries: Sequence[TargetLocation]):
        self.entries = list(entries)
        self._tree: Optional[cKDTree] = None
        if self.entries:
            self._tree = cKDTree(to_ecef_ft([e.position for e in self.entries]))

    def __len__(self) -> int:
        return len(self.entries)

    def within(self, position: Position, max_distance_ft: float) -> List[Tuple[TargetLocation, float]]:
        """
        Targets within max_distance_ft of position (great-circle), nearest first.
        Ties are ordered by hex.
        """
        if self._tree is None:
            return []

        query = to_ecef_ft([position])[0]
        idxs = self._tree.query_ball_point(query, chord_radius_ft(max_distance_ft) + _QUERY_SLACK_FT)

        lon, lat = position
        hits = []
        for idx in idxs:
            entry = self.entries[idx]
            t_lon, t_lat = entry.position
            dist = haversine_ft(lat, lon, t_lat, t_lon)
            if dist <= max_distance_ft:
                hits.append((entry, dist))
        hits.sort(key=lambda hit: (hit[1], hit[0].track.hex))
        return hits


def build_target_index(tracks: Iterable[Track], config: DetectorConfig = DEFAULT_CONFIG) -> TargetIndex:
    return TargetIndex(
        [TargetLocation(position=t.position, track=t) for t in tracks if is_potential_toi(t, config)]
    )


def vertical_separation(interceptor: Track, target: Track, signed: bool = False) -> int:
    diff = interceptor.cur_alt - target.cur_alt
    return diff if signed else abs(diff)


def find_interceptions(
    tracks: Iterable[Track],
    now: datetime,
    config: DetectorConfig = DEFAULT_CONFIG,
) -> List[Interception]:
    """
    Pair every interceptor candidate with the targets near it at time now.

    Emits one Interception per qualifying pair. Interceptors are visited in
    hex order and their targets nearest first, so output order is stable.
    Tracks must not be mutated while this runs.
    """
    tracks = list(tracks)
    index = build_target_index(tracks, config)
    if not len(index):
        return []

    interceptors = sorted(
        (t for t in tracks if is_fast_mover(t, now, config)),
        key=lambda t: t.hex,
    )

    interceptions: List[Interception] = []
    for interceptor in interceptors:
        for entry, lateral_ft in index.within(interceptor.position, config.max_lateral_ft):
            target = entry.track
            vertical_ft = vertical_separation(interceptor, target, config.signed_vertical_separation)
            if config.max_vertical_ft is not None and abs(vertical_ft) > config.max_vertical_ft:
                continue
            interceptions.append(
                Interception(
                    interceptor=interceptor.copy(),
                    target=target.copy(),
                    time=now,
                    lateral_separation_ft=lateral_ft,
                    vertical_separation_ft=vertical_ft,
                )
            )

    if interceptions:
        logger.debug(
            f"{len(interceptions)} interception(s) at {now.isoformat()} "
            f"({len(interceptors)} interceptors, {len(index)} targets)"
        )
    return interceptions
