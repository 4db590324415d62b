"""
ADS-B Exchange Loader

Reads ADS-B Exchange v2 API responses (plain JSON or bzip2, including
multi-stream files written by pbzip2) into SnapshotBatch objects.

Files are decoded on a thread pool, but batches are handed to the callback
one at a time and in input order, so track state is reproducible across runs.
"""

from __future__ import annotations

import bz2
import json
import logging
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Deque, Dict, Optional, Sequence, Tuple

from intercept.errors import ConcurrencyError, DecodeError
from intercept.models import ON_GROUND, Snapshot, SnapshotBatch

logger = logging.getLogger(__name__)

# Epoch values above this are milliseconds (ADSBx v2), below are seconds (readsb)
_EPOCH_MS_THRESHOLD = 1e11
PROGRESS_EVERY = 100


def _parse_now(raw: Any) -> datetime:
    value = float(raw)
    if value > _EPOCH_MS_THRESHOLD:
        value /= 1000.0
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _opt_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


def _opt_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    return int(round(float(value)))


def _opt_seconds(value: Any) -> Optional[timedelta]:
    if value is None:
        return None
    return timedelta(seconds=float(value))


def _parse_baro(value: Any):
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() == ON_GROUND:
        return ON_GROUND
    return _opt_int(value)


def parse_aircraft(entry: Dict[str, Any]) -> Snapshot:
    """Convert one entry of the `ac` array into a Snapshot."""
    return Snapshot(
        hex=str(entry["hex"]).strip().lower(),
        seen=_opt_seconds(entry.get("seen")) or timedelta(0),
        lon=_opt_float(entry.get("lon")),
        lat=_opt_float(entry.get("lat")),
        ground_speed_knots=_opt_float(entry.get("gs")),
        geometric_altitude=_opt_int(entry.get("alt_geom")),
        barometric_altitude=_parse_baro(entry.get("alt_baro")),
        seen_pos=_opt_seconds(entry.get("seen_pos")),
    )


def parse_response(source: str, payload: Any) -> SnapshotBatch:
    if not isinstance(payload, dict):
        raise DecodeError(source, "response is not a JSON object")
    if payload.get("now") is None:
        raise DecodeError(source, "response has no 'now' timestamp")
    try:
        now = _parse_now(payload["now"])
    except (TypeError, ValueError, OverflowError, OSError) as e:
        raise DecodeError(source, f"invalid 'now' timestamp: {e}") from e

    raw_aircraft = payload.get("ac")
    if raw_aircraft is None:
        raw_aircraft = payload.get("aircraft") or []
    if not isinstance(raw_aircraft, list):
        raise DecodeError(source, "'ac' is not a list")

    aircraft = []
    for entry in raw_aircraft:
        if not isinstance(entry, dict) or not entry.get("hex"):
            logger.debug(f"{source}: dropping aircraft entry without hex")
            continue
        try:
            aircraft.append(parse_aircraft(entry))
        except (TypeError, ValueError, OverflowError) as e:
            raise DecodeError(source, f"bad field in aircraft {entry.get('hex')}: {e}") from e

    return SnapshotBatch(source=source, now=now, aircraft=aircraft)


def load_adsbx_json_file(path: str) -> SnapshotBatch:
    """Load and parse one ADS-B Exchange response file."""
    try:
        if path.endswith(".bz2"):
            # bz2.open handles concatenated streams from pbzip2
            with bz2.open(path, "rt", encoding="utf-8") as handle:
                contents = handle.read()
        else:
            with open(path, "r", encoding="utf-8") as handle:
                contents = handle.read()
    except (OSError, EOFError, UnicodeDecodeError) as e:
        raise DecodeError(path, str(e)) from e

    try:
        payload = json.loads(contents)
    except json.JSONDecodeError as e:
        raise DecodeError(path, str(e)) from e
    return parse_response(path, payload)


@dataclass
class LoadStats:
    total: int = 0
    loaded: int = 0
    failed: int = 0


def for_each_adsbx_json(
    paths: Sequence[str],
    op: Callable[[SnapshotBatch], None],
    skip_json_errors: bool = False,
    max_workers: Optional[int] = None,
    progress_every: int = PROGRESS_EVERY,
    loader: Callable[[str], SnapshotBatch] = load_adsbx_json_file,
) -> LoadStats:
    """
    Decode files in parallel and call op serially, in input order.

    A DecodeError either aborts the run (re-raised) or, with skip_json_errors,
    is logged and the file skipped. Any other worker failure is raised as
    ConcurrencyError. At most 2 * max_workers files are in flight.
    """
    stats = LoadStats(total=len(paths))
    if not paths:
        return stats

    max_workers = max_workers or 4
    window = max(1, 2 * max_workers)
    pending: Deque[Tuple[str, Future]] = deque()
    remaining = iter(paths)

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="adsbx-decode") as executor:

        def _fill() -> None:
            while len(pending) < window:
                path = next(remaining, None)
                if path is None:
                    return
                pending.append((path, executor.submit(loader, path)))

        try:
            _fill()
        except RuntimeError as e:
            raise ConcurrencyError(f"Failed to schedule decode: {e}") from e

        while pending:
            path, future = pending.popleft()
            try:
                batch = future.result()
            except DecodeError as e:
                stats.failed += 1
                logger.error(f"Error reading file {path}: {e.message}")
                if not skip_json_errors:
                    for _, other in pending:
                        other.cancel()
                    raise
            except Exception as e:
                for _, other in pending:
                    other.cancel()
                raise ConcurrencyError(f"Decode worker failed on {path}: {e!r}") from e
            else:
                op(batch)
                stats.loaded += 1

            done = stats.loaded + stats.failed
            if progress_every and done % progress_every == 0:
                logger.info(f"Processed {done}/{stats.total} files")

            try:
                _fill()
            except RuntimeError as e:
                raise ConcurrencyError(f"Failed to schedule decode: {e}") from e

    logger.info(f"Processed {stats.loaded + stats.failed}/{stats.total} files ({stats.failed} failed)")
    return stats
