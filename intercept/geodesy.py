from __future__ import annotations

import math
from typing import Sequence, Tuple

import numpy as np

EARTH_RADIUS_KM = 6371.0
FT_PER_KM = 3280.84
EARTH_RADIUS_FT = EARTH_RADIUS_KM * FT_PER_KM


def haversine_ft(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in feet."""
    return EARTH_RADIUS_FT * angular_distance(
        math.radians(lat1), math.radians(lon1), math.radians(lat2), math.radians(lon2)
    )


def angular_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = math.sin(dlat / 2.0) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2.0) ** 2
    return 2.0 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def to_ecef_ft(positions: Sequence[Tuple[float, float]]) -> np.ndarray:
    """
    Project (lon, lat) pairs onto a sphere of Earth radius, in feet.

    Straight-line distance between projected points is the chord of the
    great-circle arc, so a chord radius from chord_radius_ft() selects exactly
    the points within a given surface distance.
    """
    coords = np.radians(np.asarray(positions, dtype=np.float64).reshape(-1, 2))
    lon = coords[:, 0]
    lat = coords[:, 1]
    cos_lat = np.cos(lat)
    xyz = np.empty((coords.shape[0], 3), dtype=np.float64)
    xyz[:, 0] = EARTH_RADIUS_FT * cos_lat * np.cos(lon)
    xyz[:, 1] = EARTH_RADIUS_FT * cos_lat * np.sin(lon)
    xyz[:, 2] = EARTH_RADIUS_FT * np.sin(lat)
    return xyz


def chord_radius_ft(surface_distance_ft: float) -> float:
    """Chord length subtending a great-circle arc of the given length."""
    # Arcs past the antipode all map to the full diameter
    half_angle = min(surface_distance_ft / (2.0 * EARTH_RADIUS_FT), math.pi / 2.0)
    return 2.0 * EARTH_RADIUS_FT * math.sin(half_angle)
