"""Command line entry point.

Usage examples:

    # Replay a recorded walk through the engine and persist the captures
    python -m territory_capture replay walk.gpx

    # Pick the closest "central station" as the mission target first
    python -m territory_capture replay walk.gpx --target "central station"

    # Inspect and spend
    python -m territory_capture profile
    python -m territory_capture upgrade 1718030000123
    python -m territory_capture build 1718030000123 bank --cost 250
"""

from __future__ import annotations

import argparse
import logging
import random
from pathlib import Path
from typing import Optional, Sequence

from . import config
from .engine import CaptureEngine, EngineConfig
from .geo_math import path_length
from .geocoding import NominatimGeocoder
from .location import TrackReplaySource, load_track
from .models import Coord
from .persistence import JsonTerritoryStore
from .profile import build_profile

LOGGER = logging.getLogger(__name__)


def _setup_logging(verbose: bool = False) -> None:
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.INFO,
            format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        )


def _parse_coord(raw: str) -> Coord:
    try:
        lat, lon = (float(part) for part in raw.split(","))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"Expected 'lat,lon' but got {raw!r}"
        ) from exc
    return Coord(lat, lon)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="territory_capture",
        description="Capture territory by walking loops around it.",
    )
    parser.add_argument(
        "--storage-dir",
        type=Path,
        default=Path(config.STORAGE_DIR),
        help="Directory holding saved snapshots (default: %(default)s)",
    )
    parser.add_argument("--key", default=config.STORAGE_KEY, help="Snapshot key")
    parser.add_argument(
        "--offline",
        action="store_true",
        default=config.GEOCODER_OFFLINE_MODE,
        help="Never call the geocoding service (fallback names only)",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    replay = sub.add_parser("replay", help="Feed a recorded track through the engine")
    replay.add_argument("track", type=Path, help=".gpx, .json or .csv track file")
    replay.add_argument(
        "--interval",
        type=float,
        default=config.REPLAY_INTERVAL_SECONDS,
        help="Seconds between replayed fixes (default: %(default)s)",
    )
    replay.add_argument(
        "--min-spacing",
        type=float,
        default=config.LOCATION_MIN_SPACING_M,
        help="Drop fixes closer than this many metres (default: %(default)s)",
    )
    replay.add_argument("--target", help="Search query selecting a mission target")
    replay.add_argument(
        "--pick",
        type=int,
        default=1,
        help="1-based search result to use as target (default: closest)",
    )
    replay.add_argument("--seed", type=int, help="Random seed for lootbox rolls")

    search = sub.add_parser("search", help="Look up candidate target locations")
    search.add_argument("query")
    search.add_argument("--near", type=_parse_coord, help="Origin as 'lat,lon'")

    sub.add_parser("profile", help="Show cash and captured territories")

    upgrade = sub.add_parser("upgrade", help="Upgrade a territory")
    upgrade.add_argument("territory_id")

    build = sub.add_parser("build", help="Build a structure on a territory")
    build.add_argument("territory_id")
    build.add_argument("structure")
    build.add_argument("--cost", type=int, default=config.BUILD_COST)

    sub.add_parser("collect", help="Collect building income")
    return parser


def _make_engine(args: argparse.Namespace, rng: random.Random | None = None) -> CaptureEngine:
    geocoder = NominatimGeocoder(offline=args.offline)
    store = JsonTerritoryStore(args.storage_dir)
    return CaptureEngine(
        EngineConfig(storage_key=args.key),
        geocoder=geocoder,
        store=store,
        rng=rng,
    )


def _print_profile(engine: CaptureEngine) -> None:
    for line in build_profile(engine.snapshot()).lines():
        print(line)


def _cmd_replay(args: argparse.Namespace) -> int:
    try:
        fixes = load_track(args.track)
    except (OSError, ValueError) as exc:
        LOGGER.error("Failed to read track '%s': %s", args.track, exc)
        return 1
    if not fixes:
        LOGGER.error("Track '%s' contains no fixes", args.track)
        return 1
    LOGGER.info("Track length %.0f m over %d fixes", path_length(fixes), len(fixes))

    rng = random.Random(args.seed) if args.seed is not None else None
    source = TrackReplaySource(
        fixes, min_spacing_m=args.min_spacing, interval_seconds=args.interval
    )
    with _make_engine(args, rng) as engine:
        if args.target:
            results = engine.search(args.target, origin=fixes[0])
            if results:
                index = min(max(args.pick, 1), len(results)) - 1
                engine.select_search_result(args.target, results[index])
        if not engine.start(source):
            return 1
        engine.wait_for_source()
        engine.wait_for_captures()
    _print_profile(engine)
    return 0


def _cmd_search(args: argparse.Namespace) -> int:
    engine = _make_engine(args)
    results = engine.search(args.query, origin=args.near)
    for position, result in enumerate(results, start=1):
        print(
            f"{position}. {result.label} - {int(result.distance_m)}m away "
            f"({result.coord.latitude:.5f},{result.coord.longitude:.5f})"
        )
    return 0 if results else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    if args.command == "replay":
        return _cmd_replay(args)
    if args.command == "search":
        return _cmd_search(args)

    with _make_engine(args) as engine:
        if args.command == "upgrade":
            result = engine.upgrade(args.territory_id)
        elif args.command == "build":
            result = engine.build(args.territory_id, args.structure, args.cost)
        elif args.command == "collect":
            print(f"Collected ${engine.collect_income()}")
            result = None
        else:
            result = None
    if result is not None:
        print(result.message)
    _print_profile(engine)
    return 0 if result is None or result.accepted else 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
