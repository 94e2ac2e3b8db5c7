"""Per-room seat extraction: masking, detection, fusion and refinement.

The stages are exposed separately so the batch driver can run the CPU-bound
ones in worker threads and gate the OCR call on its own semaphore. ``run``
chains them synchronously for single-image use.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from seatmap.config import Settings
from seatmap.errors import NoBoundaryDetected, OcrFailure
from seatmap.models.schemas import SeatRecord
from seatmap.segmentation.blob_detector import PooledBlobs, detect_pooled
from seatmap.segmentation.candidates import Candidate, CandidateSource
from seatmap.segmentation.clustering import enforce_min_separation, merge
from seatmap.segmentation.flood_fill import BoundaryConfig, mask_outside_boundary, whiteout_caption
from seatmap.segmentation.masks import BinaryMask, ClassifierConfig
from seatmap.segmentation.ocr_digits import OcrConfig, OcrDigitExtractor, OcrEngine
from seatmap.segmentation.profiles import DEFAULT_BLOB_PROFILES, get_profile
from seatmap.segmentation.refiner import (
    RefinerConfig,
    assign_ids,
    refine_with_scores,
    select_strategy,
    strategy_counts,
)
from seatmap.utils.logging import get_logger
from seatmap.utils.raster import RasterImage

logger = get_logger(__name__)


@dataclass
class PipelineConfig:
    blob_profiles: Tuple[str, ...] = DEFAULT_BLOB_PROFILES
    pool_radius: float = 30.0
    fusion_radius: float = 25.0
    min_separation: float = 30.0
    selection_policy: str = "closest"
    mask_boundary: bool = True
    mask_caption: bool = True
    ocr_enabled: bool = True
    existing_support: int = 2
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    boundary: BoundaryConfig = field(default_factory=BoundaryConfig)
    ocr: OcrConfig = field(default_factory=OcrConfig)
    refiner: RefinerConfig = field(default_factory=RefinerConfig)

    @classmethod
    def from_settings(cls, s: Settings) -> "PipelineConfig":
        return cls(
            min_separation=s.min_seat_separation,
            selection_policy=s.selection_policy,
            mask_boundary=s.boundary_masking_enabled,
            ocr_enabled=s.ocr_enabled,
            boundary=BoundaryConfig(
                min_boundary_pixels=s.boundary_min_pixels,
                close_radius=s.boundary_close_radius,
            ),
            ocr=OcrConfig(
                scale=s.ocr_scale,
                bw_threshold=s.ocr_bw_threshold,
                lang=s.ocr_lang,
                psm=s.ocr_psm,
                oem=s.ocr_oem,
                tesseract_cmd=s.ocr_tesseract_cmd,
                tessdata_dir=s.ocr_tessdata_dir,
                timeout_seconds=s.ocr_timeout_seconds,
            ),
            refiner=RefinerConfig(row_tolerance=s.row_tolerance, column_tolerance=s.column_tolerance),
        )


@dataclass
class PreparedImage:
    image: RasterImage
    boundary_masked: bool = False


@dataclass
class SeatDetectionResult:
    seats: List[SeatRecord]
    strategy: str
    strategy_counts: Dict[str, int] = field(default_factory=dict)
    boundary_masked: bool = False
    ocr_failed: bool = False
    under_detected: bool = False
    # diagnostics for the overlay
    pool: List[Candidate] = field(default_factory=list)
    ocr_candidates: List[Candidate] = field(default_factory=list)
    scored: List[Tuple[Candidate, float]] = field(default_factory=list)
    ink_mask: Optional[BinaryMask] = None


def existing_candidates(seats: Sequence[SeatRecord], support: int) -> List[Candidate]:
    """Persisted seats as candidates; they count as ``support`` detections each."""
    return [
        Candidate(x=float(s.x), y=float(s.y), weight=float(support), support=support, source=CandidateSource.EXISTING)
        for s in seats
    ]


class SeatPipeline:
    """Seat extraction for one room raster."""

    def __init__(self, config: Optional[PipelineConfig] = None, ocr_engine: Optional[OcrEngine] = None):
        self.config = config or PipelineConfig()
        self.profiles = [get_profile(name) for name in self.config.blob_profiles]
        self.extractor = OcrDigitExtractor(engine=ocr_engine, config=self.config.ocr)

    def prepare(self, image: RasterImage) -> PreparedImage:
        """Caption whiteout and boundary masking. A missing boundary is not fatal."""
        if self.config.mask_caption:
            image = whiteout_caption(image)
        if not self.config.mask_boundary:
            return PreparedImage(image=image)
        try:
            masked, _ = mask_outside_boundary(image, self.config.boundary)
        except NoBoundaryDetected as exc:
            logger.info("Boundary masking skipped", source=image.source, reason=str(exc))
            return PreparedImage(image=image)
        return PreparedImage(image=masked, boundary_masked=True)

    def detect_blobs(self, image: RasterImage) -> PooledBlobs:
        return detect_pooled(image, self.profiles, self.config.pool_radius, self.config.classifier)

    def read_digits(self, image: RasterImage) -> List[Candidate]:
        """OCR candidates. Raises OcrFailure so callers can record the degradation."""
        words = self.extractor.recognize(image)
        return self.extractor.to_candidates(words, image)

    def candidate_pools(
        self,
        blob_candidates: Sequence[Candidate],
        ocr_candidates: Sequence[Candidate],
        existing: Sequence[Candidate] = (),
    ) -> Dict[str, List[Candidate]]:
        pools: Dict[str, List[Candidate]] = {
            "ocr": list(ocr_candidates),
            "blob": list(blob_candidates),
            "union": merge(list(ocr_candidates) + list(blob_candidates), self.config.fusion_radius),
        }
        if existing:
            pools = {name: merge(pool + list(existing), self.config.pool_radius) for name, pool in pools.items()}
        return pools

    def fuse_and_refine(
        self,
        image: RasterImage,
        blobs: PooledBlobs,
        ocr_candidates: Sequence[Candidate],
        capacity: Optional[int],
        existing: Sequence[SeatRecord] = (),
        boundary_masked: bool = False,
        ocr_failed: bool = False,
    ) -> SeatDetectionResult:
        reused = existing_candidates(existing, self.config.existing_support)
        pools = self.candidate_pools(blobs.candidates, ocr_candidates, reused)
        counts = strategy_counts(pools)
        non_empty = {name: pool for name, pool in pools.items() if pool}
        strategy = select_strategy(non_empty, capacity, self.config.selection_policy) if non_empty else "union"

        chosen = enforce_min_separation(
            pools[strategy], self.config.min_separation, image.width, image.height
        )
        refined = refine_with_scores(chosen, capacity, self.config.refiner)
        seats = assign_ids(refined.kept, self.config.refiner.row_tolerance, image.width, image.height)

        under_detected = capacity is not None and capacity > 0 and len(seats) < capacity
        if under_detected:
            logger.warning(
                "Fewer seats than capacity",
                source=image.source,
                found=len(seats),
                capacity=capacity,
            )
        logger.info(
            "Seats extracted",
            source=image.source,
            strategy=strategy,
            counts=counts,
            seats=len(seats),
            capacity=capacity,
        )
        return SeatDetectionResult(
            seats=seats,
            strategy=strategy,
            strategy_counts=counts,
            boundary_masked=boundary_masked,
            ocr_failed=ocr_failed,
            under_detected=under_detected,
            pool=pools["union"],
            ocr_candidates=list(ocr_candidates),
            scored=list(zip(refined.kept, refined.scores)),
            ink_mask=blobs.ink_mask,
        )

    def run(
        self,
        image: RasterImage,
        capacity: Optional[int],
        existing: Sequence[SeatRecord] = (),
    ) -> SeatDetectionResult:
        prepared = self.prepare(image)
        blobs = self.detect_blobs(prepared.image)
        ocr_candidates: List[Candidate] = []
        ocr_failed = False
        if self.config.ocr_enabled:
            try:
                ocr_candidates = self.read_digits(prepared.image)
            except OcrFailure as exc:
                logger.warning("OCR failed, continuing without OCR candidates", source=image.source, error=str(exc))
                ocr_failed = True
        return self.fuse_and_refine(
            prepared.image,
            blobs,
            ocr_candidates,
            capacity,
            existing=existing,
            boundary_masked=prepared.boundary_masked,
            ocr_failed=ocr_failed,
        )
