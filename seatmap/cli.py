"""Command-line entry point for the seat extraction batch tools."""
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from seatmap.config import settings
from seatmap.errors import DependencyError, ImageUnavailable, RegistryUnreadable
from seatmap.segmentation.capacity import read_capacity
from seatmap.services.batch_runner import BatchRunner, resolve_image
from seatmap.services.registry_store import RegistryStore
from seatmap.services.seat_pipeline import PipelineConfig, SeatPipeline
from seatmap.utils.logging import get_logger, setup_logging
from seatmap.utils.raster import load_raster

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="seatmap", description="Extract seat positions from room floor plans.")
    parser.add_argument("--registry", default=settings.registry_path, help="Path to registry.json.")
    parser.add_argument("--public-dir", default=settings.public_dir, help="Directory room image paths resolve against.")
    parser.add_argument("--log-level", default=None)
    parser.add_argument("--log-format", choices=["json", "console"], default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    detect = sub.add_parser("detect", help="Detect seats and write them to the registry.")
    detect.add_argument("room_id", nargs="?", default=None, help="Only process this room.")
    detect.add_argument("--debug", action="store_true", help="Write overlay and mask PNGs.")
    detect.add_argument("--debug-dir", default=settings.debug_dir)
    detect.add_argument("--no-ocr", action="store_true")
    detect.add_argument("--no-boundary", action="store_true", help="Skip masking outside the room outline.")
    detect.add_argument("--policy", choices=["closest", "union"], default=settings.selection_policy)
    detect.add_argument("--write-each", action="store_true", help="Save the registry after every room.")
    detect.add_argument("--reuse-existing", action="store_true", help="Pool stored seats with fresh detections.")
    detect.add_argument("--force", action="store_true", help="Also reprocess rooms that look curated.")

    capacity = sub.add_parser("capacity", help="Read declared capacities from room captions.")
    capacity.add_argument("--apply", action="store_true", help="Write found capacities to the registry.")
    return parser


def run_detect(args: argparse.Namespace) -> int:
    config = PipelineConfig.from_settings(settings)
    config.selection_policy = args.policy
    if args.no_ocr:
        config.ocr_enabled = False
    if args.no_boundary:
        config.mask_boundary = False

    runner = BatchRunner(
        RegistryStore(args.registry),
        pipeline=SeatPipeline(config),
        public_dir=args.public_dir,
        debug_dir=args.debug_dir if args.debug else None,
        reuse_existing=args.reuse_existing,
        force=args.force,
        write_each=args.write_each or None,
    )
    summary = asyncio.run(runner.run(args.room_id))
    buckets = summary.accuracy_buckets()
    print(
        f"{summary.succeeded} succeeded, {summary.skipped} skipped, {summary.failed} failed; "
        f"{summary.total_seats} seats; capacity exact {buckets['exact']}, "
        f"within 3 {buckets['close']}, off {buckets['off']}"
    )
    return 0


def run_capacity(args: argparse.Namespace) -> int:
    store = RegistryStore(args.registry)
    registry = store.load()
    public_dir = Path(args.public_dir)
    found = 0
    for room in registry.rooms:
        try:
            image = load_raster(resolve_image(public_dir, room.image), settings.pdf_render_dpi)
        except ImageUnavailable as exc:
            logger.warning("Room skipped", room_id=room.id, reason=str(exc))
            continue
        value = read_capacity(image)
        if value is None:
            logger.info("Capacity not found", room_id=room.id)
            continue
        found += 1
        logger.info("Capacity read", room_id=room.id, capacity=value, previous=room.capacity)
        if args.apply:
            room.capacity = value
    print(f"Capacity found for {found}/{len(registry.rooms)} rooms")
    if args.apply and found:
        store.save(registry)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level, fmt=args.log_format)

    try:
        if args.command == "capacity":
            return run_capacity(args)
        return run_detect(args)
    except RegistryUnreadable as exc:
        print(f"Registry error: {exc}", file=sys.stderr)
        return 1
    except DependencyError as exc:
        print(f"Dependency error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
