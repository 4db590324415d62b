"""
Interception Monitor

Replays archived ADS-B Exchange responses through the track layer and
reports interceptions: persistent fast movers closing on slow, airborne
targets of interest.

Usage:
    python interception_monitor.py data/2021-11-08/*.json.bz2
    python interception_monitor.py data/*.json --skip-json-errors --workers 8
    python interception_monitor.py data/*.json --max-lateral-ft 3000 --output hits.csv --episodes episodes.csv
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from adsbx_loader import LoadStats, for_each_adsbx_json
from intercept.classification import Class, classify
from intercept.config import DEFAULT_CONFIG, DetectorConfig, load_detector_config
from intercept.errors import InterceptError
from intercept.models import Interception, SnapshotBatch
from intercept.proximity import find_interceptions
from intercept.track_state import IngestStats, TrackTable

logger = logging.getLogger(__name__)


@dataclass
class InterceptionEpisode:
    interceptor_hex: str
    target_hex: str
    start: datetime
    end: datetime
    detections: int
    min_lateral_separation_ft: float
    vertical_separation_ft: int

    def to_row(self) -> dict:
        return {
            "interceptor_hex": self.interceptor_hex,
            "target_hex": self.target_hex,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "duration_sec": (self.end - self.start).total_seconds(),
            "detections": self.detections,
            "min_lateral_separation_ft": round(self.min_lateral_separation_ft, 1),
            "vertical_separation_ft": self.vertical_separation_ft,
        }


class InterceptionDetector:
    """
    Drives one run: each batch is a tick. Snapshots are folded into the
    track table, then interceptors are matched against targets.
    """

    def __init__(self, config: DetectorConfig = DEFAULT_CONFIG):
        self.config = config
        self.table = TrackTable(config)
        self.interceptions: List[Interception] = []
        self.ticks = 0
        self.last_tick: Optional[datetime] = None
        self.ingest_totals = IngestStats()

    def process_batch(self, batch: SnapshotBatch) -> List[Interception]:
        stats = self.table.ingest(batch.now, batch.aircraft)
        self.ticks += 1
        self.last_tick = batch.now
        self.ingest_totals.created += stats.created
        self.ingest_totals.updated += stats.updated
        self.ingest_totals.rejected += stats.rejected
        self.ingest_totals.missing_position += stats.missing_position

        found = find_interceptions(self.table, batch.now, self.config)
        for hit in found:
            logger.info(
                f"Interception at {hit.time.isoformat()}: {hit.interceptor.hex} -> {hit.target.hex} "
                f"lateral={hit.lateral_separation_ft:.0f} ft vertical={hit.vertical_separation_ft} ft"
            )
        self.interceptions.extend(found)
        return found

    def class_counts(self, now: datetime) -> Dict[Class, int]:
        counts = {c: 0 for c in Class}
        for track in self.table:
            counts[classify(track, now, self.config)] += 1
        return counts

    def run(
        self,
        paths: Sequence[str],
        skip_json_errors: bool = False,
        max_workers: Optional[int] = None,
    ) -> LoadStats:
        return for_each_adsbx_json(
            paths,
            self.process_batch,
            skip_json_errors=skip_json_errors,
            max_workers=max_workers,
        )


def merge_episodes(interceptions: Sequence[Interception], gap: timedelta) -> List[InterceptionEpisode]:
    """
    Merge per-tick interceptions of the same pair into episodes.
    A new episode starts when detections of a pair are more than gap apart.
    """
    open_episodes: Dict[Tuple[str, str], InterceptionEpisode] = {}
    episodes: List[InterceptionEpisode] = []

    for hit in sorted(interceptions, key=lambda h: (h.time, h.interceptor.hex, h.target.hex)):
        key = (hit.interceptor.hex, hit.target.hex)
        episode = open_episodes.get(key)
        if episode is not None and hit.time - episode.end <= gap:
            episode.end = hit.time
            episode.detections += 1
            if hit.lateral_separation_ft < episode.min_lateral_separation_ft:
                episode.min_lateral_separation_ft = hit.lateral_separation_ft
                episode.vertical_separation_ft = hit.vertical_separation_ft
            continue

        episode = InterceptionEpisode(
            interceptor_hex=hit.interceptor.hex,
            target_hex=hit.target.hex,
            start=hit.time,
            end=hit.time,
            detections=1,
            min_lateral_separation_ft=hit.lateral_separation_ft,
            vertical_separation_ft=hit.vertical_separation_ft,
        )
        open_episodes[key] = episode
        episodes.append(episode)

    return episodes


def interceptions_to_frame(interceptions: Sequence[Interception]) -> pd.DataFrame:
    return pd.DataFrame([hit.to_row() for hit in interceptions], columns=_INTERCEPTION_COLUMNS)


def episodes_to_frame(episodes: Sequence[InterceptionEpisode]) -> pd.DataFrame:
    return pd.DataFrame([ep.to_row() for ep in episodes], columns=_EPISODE_COLUMNS)


_INTERCEPTION_COLUMNS = [
    "time",
    "interceptor_hex", "interceptor_lat", "interceptor_lon", "interceptor_alt_ft",
    "interceptor_speed_kts", "interceptor_max_speed_kts",
    "target_hex", "target_lat", "target_lon", "target_alt_ft", "target_speed_kts",
    "lateral_separation_ft", "vertical_separation_ft",
]
_EPISODE_COLUMNS = [
    "interceptor_hex", "target_hex", "start", "end", "duration_sec",
    "detections", "min_lateral_separation_ft", "vertical_separation_ft",
]


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value!r} is not an integer")
    if number < 1:
        raise argparse.ArgumentTypeError(f"{value} must be at least 1")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Detect interceptions in archived ADS-B Exchange data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Scan a day of compressed responses
  python interception_monitor.py data/2021-11-08/*.json.bz2

  # Keep going past corrupt files, decode on 8 threads
  python interception_monitor.py data/*.json --skip-json-errors --workers 8
        """,
    )
    parser.add_argument("paths", nargs="+", help="ADS-B Exchange JSON files (optionally .bz2), in time order")
    parser.add_argument("--skip-json-errors", action="store_true", help="Skip unreadable files instead of aborting")
    parser.add_argument("--workers", type=_positive_int, default=4, help="Number of decode threads (default: 4)")
    parser.add_argument("--config", type=str, help="JSON file with DetectorConfig overrides")
    parser.add_argument("--max-lateral-ft", type=float, help="Lateral separation threshold in feet")
    parser.add_argument("--max-vertical-ft", type=float, help="Vertical separation threshold in feet")
    parser.add_argument("--signed-vertical", action="store_true", help="Report vertical separation as interceptor minus target")
    parser.add_argument("--output", type=str, default="interceptions.csv", help="CSV file for interceptions (default: interceptions.csv)")
    parser.add_argument("--episodes", type=str, help="Optional CSV file for merged interception episodes")
    parser.add_argument("--log-level", type=str, default="INFO", help="Logging level (default: INFO)")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s',
    )

    try:
        config = load_detector_config(args.config).with_overrides(
            max_lateral_ft=args.max_lateral_ft,
            max_vertical_ft=args.max_vertical_ft,
            signed_vertical_separation=True if args.signed_vertical else None,
        )
    except (OSError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    detector = InterceptionDetector(config)
    logger.info(f"Scanning {len(args.paths)} files with {args.workers} workers")

    try:
        stats = detector.run(args.paths, skip_json_errors=args.skip_json_errors, max_workers=args.workers)
    except KeyboardInterrupt:
        logger.info("Interrupted by user. Exiting...")
        return 130
    except InterceptError as e:
        logger.error(f"Aborting: {e}")
        return 1

    totals = detector.ingest_totals
    logger.info("=" * 80)
    logger.info(f"Files: {stats.loaded} loaded, {stats.failed} failed")
    logger.info(f"Tracks: {len(detector.table)} ({totals.rejected} snapshots rejected, "
                f"{totals.missing_position} updates without position)")
    logger.info(f"Interceptions: {len(detector.interceptions)}")
    if detector.last_tick is not None:
        counts = detector.class_counts(detector.last_tick)
        logger.info(", ".join(f"{c.value}: {n}" for c, n in counts.items()) + " at last tick")

    output = Path(args.output)
    interceptions_to_frame(detector.interceptions).to_csv(output, index=False)
    logger.info(f"Wrote {output}")

    if args.episodes:
        episodes = merge_episodes(detector.interceptions, timedelta(seconds=config.episode_gap_secs))
        episodes_to_frame(episodes).to_csv(args.episodes, index=False)
        logger.info(f"Wrote {len(episodes)} episodes to {args.episodes}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
