"""Async batch driver over the room registry.

Rooms share nothing, so they run concurrently (bounded by a semaphore) with
the CPU-heavy stages in worker threads. OCR shells out to tesseract and is
throttled separately. One room failing never stops the others: each room
produces a ``RoomOutcome`` and the batch reports a summary at the end.
"""
from __future__ import annotations

import asyncio
from itertools import combinations
from pathlib import Path
from typing import List, Optional, Tuple, Union

from seatmap.config import settings
from seatmap.errors import DependencyError, ImageUnavailable, OcrFailure
from seatmap.models.schemas import BatchSummary, Registry, RoomEntry, RoomOutcome, RoomStatus
from seatmap.segmentation.candidates import Candidate
from seatmap.services.registry_store import RegistryStore
from seatmap.services.seat_pipeline import PipelineConfig, SeatPipeline
from seatmap.utils.logging import get_logger
from seatmap.utils.overlay import save_debug_images
from seatmap.utils.raster import RasterImage, load_raster

logger = get_logger(__name__)

# Headroom over the tesseract subprocess timeout, which does the actual killing.
OCR_TIMEOUT_GRACE_SECONDS = 10.0


def is_curated(room: RoomEntry, min_separation: float) -> bool:
    """True when the stored seats already match capacity with no crowded pair."""
    if not room.capacity or len(room.seats) != room.capacity:
        return False
    for a, b in combinations(room.seats, 2):
        if ((a.x - b.x) ** 2 + (a.y - b.y) ** 2) ** 0.5 < min_separation:
            return False
    return True


def resolve_image(public_dir: Path, image: str) -> Path:
    """Registry image paths are site-absolute (``/maps/X.png``) under the public dir."""
    return public_dir / image.lstrip("/")


class BatchRunner:
    """Runs the seat pipeline over every (or one) room in a registry."""

    def __init__(
        self,
        store: RegistryStore,
        pipeline: Optional[SeatPipeline] = None,
        public_dir: Union[str, Path, None] = None,
        debug_dir: Union[str, Path, None] = None,
        reuse_existing: bool = False,
        force: bool = False,
        write_each: Optional[bool] = None,
    ):
        self.store = store
        self.pipeline = pipeline or SeatPipeline(PipelineConfig.from_settings(settings))
        self.public_dir = Path(public_dir or settings.public_dir)
        self.debug_dir = Path(debug_dir) if debug_dir else None
        self.reuse_existing = reuse_existing
        self.force = force
        self.write_each = settings.write_each_room if write_each is None else write_each
        self.ocr_timeout = float(self.pipeline.config.ocr.timeout_seconds) + OCR_TIMEOUT_GRACE_SECONDS

        self._room_semaphore = asyncio.Semaphore(max(1, int(settings.max_concurrent_rooms)))
        self._ocr_semaphore = asyncio.Semaphore(max(1, int(settings.ocr_max_concurrent)))
        self._write_lock = asyncio.Lock()

    async def run(self, room_id: Optional[str] = None) -> BatchSummary:
        """Process the registry. Raises RegistryUnreadable if it cannot be loaded."""
        registry = await asyncio.to_thread(self.store.load)
        if room_id is not None:
            room = registry.find(room_id)
            if room is None:
                logger.error("Room not found in registry", room_id=room_id)
                return BatchSummary(
                    outcomes=[RoomOutcome(room_id=room_id, status=RoomStatus.FAILED, reason="room not found")]
                )
            rooms = [room]
        else:
            rooms = list(registry.rooms)

        logger.info("Batch started", rooms=len(rooms), registry=str(self.store.path))
        outcomes: List[RoomOutcome] = list(
            await asyncio.gather(*(self._guarded(registry, room, targeted=room_id is not None) for room in rooms))
        )
        summary = BatchSummary(outcomes=outcomes)

        if not self.write_each and summary.succeeded:
            await asyncio.to_thread(self.store.save, registry)

        logger.info(
            "Batch finished",
            succeeded=summary.succeeded,
            skipped=summary.skipped,
            failed=summary.failed,
            total_seats=summary.total_seats,
            accuracy=summary.accuracy_buckets(),
        )
        return summary

    async def _guarded(self, registry: Registry, room: RoomEntry, targeted: bool) -> RoomOutcome:
        async with self._room_semaphore:
            try:
                return await self.process_room(registry, room, targeted)
            except DependencyError:
                raise
            except ImageUnavailable as exc:
                logger.warning("Room skipped", room_id=room.id, reason=str(exc))
                return RoomOutcome(room_id=room.id, status=RoomStatus.SKIPPED, reason=str(exc), capacity=room.capacity)
            except Exception as exc:
                logger.exception("Room failed", room_id=room.id, error=str(exc))
                return RoomOutcome(room_id=room.id, status=RoomStatus.FAILED, reason=str(exc), capacity=room.capacity)

    async def process_room(self, registry: Registry, room: RoomEntry, targeted: bool = False) -> RoomOutcome:
        config = self.pipeline.config
        if not (targeted or self.force) and is_curated(room, config.min_separation):
            logger.info("Room already curated, leaving it alone", room_id=room.id, seats=len(room.seats))
            return RoomOutcome(
                room_id=room.id,
                status=RoomStatus.SKIPPED,
                reason="curated",
                capacity=room.capacity,
                seat_count=len(room.seats),
            )

        path = resolve_image(self.public_dir, room.image)
        image = await asyncio.to_thread(load_raster, path, settings.pdf_render_dpi)

        prepared = await asyncio.to_thread(self.pipeline.prepare, image)
        blobs = await asyncio.to_thread(self.pipeline.detect_blobs, prepared.image)
        ocr_candidates, ocr_failed = await self._read_digits(room.id, prepared.image)
        existing = list(room.seats) if self.reuse_existing else []
        result = await asyncio.to_thread(
            self.pipeline.fuse_and_refine,
            prepared.image,
            blobs,
            ocr_candidates,
            room.capacity,
            existing,
            prepared.boundary_masked,
            ocr_failed,
        )

        room.seats = result.seats
        room.width = image.width
        room.height = image.height

        if self.debug_dir is not None:
            overlay = await asyncio.to_thread(save_debug_images, image, result, self.debug_dir, room.id)
            logger.debug("Overlay written", room_id=room.id, path=str(overlay))

        if self.write_each:
            async with self._write_lock:
                await asyncio.to_thread(self.store.save, registry)

        outcome = RoomOutcome(
            room_id=room.id,
            status=RoomStatus.SUCCEEDED,
            capacity=room.capacity,
            seat_count=len(result.seats),
            strategy=result.strategy,
            strategy_counts=result.strategy_counts,
            boundary_masked=result.boundary_masked,
            ocr_failed=result.ocr_failed,
            under_detected=result.under_detected,
        )
        logger.info(
            "Room processed",
            room_id=room.id,
            seats=outcome.seat_count,
            capacity=room.capacity,
            diff=outcome.capacity_diff,
            strategy=outcome.strategy,
        )
        return outcome

    async def _read_digits(self, room_id: str, image: RasterImage) -> Tuple[List[Candidate], bool]:
        """OCR candidates and whether OCR failed; failures degrade to no candidates."""
        if not self.pipeline.config.ocr_enabled:
            return [], False
        async with self._ocr_semaphore:
            try:
                candidates = await asyncio.wait_for(
                    asyncio.to_thread(self.pipeline.read_digits, image),
                    timeout=self.ocr_timeout,
                )
            except asyncio.TimeoutError:
                logger.warning("OCR timed out", room_id=room_id, timeout=self.ocr_timeout)
                return [], True
            except OcrFailure as exc:
                logger.warning("OCR failed, continuing without OCR candidates", room_id=room_id, error=str(exc))
                return [], True
        return candidates, False
