"""Seat candidates and the geometric/statistical component filter."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from seatmap.segmentation.components import Component
from seatmap.utils.logging import get_logger

logger = get_logger(__name__)


class CandidateSource(str, Enum):
    BLOB = "blob"
    OCR = "ocr"
    FUSED = "fused"
    EXISTING = "existing"


@dataclass(frozen=True)
class Candidate:
    """A provisional seat position.

    ``weight`` is the number of pixels (blob) or detections merged into the
    point and drives centroid placement. ``support`` counts the detections
    (glyphs, words) behind it. ``confidence`` is only set for OCR words and
    breaks ties in dedup.
    """

    x: float
    y: float
    weight: float = 1.0
    support: int = 1
    source: CandidateSource = CandidateSource.BLOB
    confidence: Optional[float] = None
    text: Optional[str] = None
    box: Optional[Tuple[int, int, int, int]] = None

    def distance_to(self, other: "Candidate") -> float:
        return ((self.x - other.x) ** 2 + (self.y - other.y) ** 2) ** 0.5


@dataclass
class GeometryFilter:
    min_dim: int = 5
    max_dim: int = 55
    min_pixels: int = 15
    max_pixels: Optional[int] = 1500
    min_aspect: float = 0.15
    max_aspect: float = 6.0
    max_fill_ratio: Optional[float] = None
    border_margin: int = 40
    top_band: float = 0.04
    bottom_band: float = 0.90


def rejection_reason(comp: Component, geometry: GeometryFilter, width: int, height: int) -> Optional[str]:
    """Name of the first predicate ``comp`` fails, or None if it is a candidate."""
    bw = comp.width
    bh = comp.height
    if bw < geometry.min_dim or bh < geometry.min_dim:
        return "too_small"
    if bw > geometry.max_dim or bh > geometry.max_dim:
        return "too_large"
    if comp.pixel_count < geometry.min_pixels:
        return "too_few_pixels"
    if geometry.max_pixels is not None and comp.pixel_count > geometry.max_pixels:
        return "too_many_pixels"
    aspect = bw / (bh or 1)
    if aspect < geometry.min_aspect or aspect > geometry.max_aspect:
        return "aspect"
    if geometry.max_fill_ratio is not None and comp.pixel_count / comp.bbox_area > geometry.max_fill_ratio:
        return "solid"
    cx, cy = comp.center
    margin = geometry.border_margin
    if cx < margin or cx > width - margin or cy < margin or cy > height - margin:
        return "border"
    if cy > height * geometry.bottom_band or cy < height * geometry.top_band:
        return "band"
    return None


def filter_components(
    components: Iterable[Component],
    geometry: GeometryFilter,
    width: int,
    height: int,
) -> List[Candidate]:
    """Turn surviving components into candidates at their bounding-box midpoints."""
    kept: List[Candidate] = []
    rejected: Counter = Counter()
    for comp in components:
        reason = rejection_reason(comp, geometry, width, height)
        if reason:
            rejected[reason] += 1
            continue
        cx, cy = comp.center
        kept.append(
            Candidate(
                x=float(cx),
                y=float(cy),
                weight=float(comp.pixel_count),
                source=CandidateSource.BLOB,
                box=(comp.min_x, comp.min_y, comp.max_x, comp.max_y),
            )
        )
    logger.debug("Components filtered", kept=len(kept), rejected=dict(rejected))
    return kept
