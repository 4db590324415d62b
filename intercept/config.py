from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

# Classification thresholds
INTERCEPTOR_MIN_SPEED_KTS = float(os.getenv("INTERCEPT_INTERCEPTOR_MIN_SPEED_KTS", "350"))
TARGET_MIN_SPEED_KTS = float(os.getenv("INTERCEPT_TARGET_MIN_SPEED_KTS", "80"))
TARGET_MAX_SPEED_KTS = float(os.getenv("INTERCEPT_TARGET_MAX_SPEED_KTS", "250"))
# Minutes an interceptor keeps its status after the last fast observation
INTERCEPTOR_TIMEOUT_MINS = int(os.getenv("INTERCEPT_INTERCEPTOR_TIMEOUT_MINS", "3"))
FAST_COUNT_LATCH = int(os.getenv("INTERCEPT_FAST_COUNT_LATCH", "10"))
GROUND_ALTITUDE_FT = int(os.getenv("INTERCEPT_GROUND_ALTITUDE_FT", "500"))

# Track history
HISTORY_CAPACITY = int(os.getenv("INTERCEPT_HISTORY_CAPACITY", "40"))

# Proximity matching
INTERCEPTION_MAX_LATERAL_FT = float(os.getenv("INTERCEPT_MAX_LATERAL_FT", "6076"))  # 1 NM
INTERCEPTION_MAX_VERTICAL_FT = float(os.getenv("INTERCEPT_MAX_VERTICAL_FT", "1500"))
EPISODE_GAP_SECS = int(os.getenv("INTERCEPT_EPISODE_GAP_SECS", "300"))


@dataclass(frozen=True)
class DetectorConfig:
    interceptor_min_speed_kts: float = INTERCEPTOR_MIN_SPEED_KTS
    target_min_speed_kts: float = TARGET_MIN_SPEED_KTS
    target_max_speed_kts: float = TARGET_MAX_SPEED_KTS
    interceptor_timeout_mins: int = INTERCEPTOR_TIMEOUT_MINS
    fast_count_latch: int = FAST_COUNT_LATCH
    ground_altitude_ft: int = GROUND_ALTITUDE_FT
    history_capacity: int = HISTORY_CAPACITY
    max_lateral_ft: float = INTERCEPTION_MAX_LATERAL_FT
    max_vertical_ft: Optional[float] = INTERCEPTION_MAX_VERTICAL_FT  # None disables the check
    signed_vertical_separation: bool = False
    episode_gap_secs: int = EPISODE_GAP_SECS

    def with_overrides(self, **overrides: Any) -> "DetectorConfig":
        """Return a copy with the non-None overrides applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


DEFAULT_CONFIG = DetectorConfig()


@lru_cache(maxsize=None)
def load_detector_config(path: str | Path | None = None) -> DetectorConfig:
    """
    Load a DetectorConfig from a JSON file of field overrides.

    Unknown keys raise ValueError so typos do not silently fall back to defaults.
    """
    if path is None:
        return DEFAULT_CONFIG

    cfg_path = Path(path)
    with cfg_path.open("r", encoding="utf-8") as handle:
        raw: Dict[str, Any] = json.load(handle)

    known = {f.name for f in fields(DetectorConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ValueError(f"Unknown config keys in {cfg_path}: {', '.join(unknown)}")

    # max_vertical_ft may legitimately be null in the file
    return replace(DEFAULT_CONFIG, **raw)
