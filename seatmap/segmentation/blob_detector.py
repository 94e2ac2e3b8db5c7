"""Geometry-based seat detection from dark-ink blobs."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence

from seatmap.segmentation.candidates import Candidate, filter_components
from seatmap.segmentation.clustering import merge
from seatmap.segmentation.components import label
from seatmap.segmentation.masks import BinaryMask, ClassifierConfig, dark_ink_mask
from seatmap.segmentation.morphology import dilate
from seatmap.segmentation.profiles import DetectionProfile
from seatmap.utils.logging import get_logger
from seatmap.utils.raster import RasterImage

logger = get_logger(__name__)


@dataclass
class BlobDetection:
    profile: str
    candidates: List[Candidate]
    component_count: int = 0
    blob_count: int = 0
    ink_mask: Optional[BinaryMask] = None


@dataclass
class PooledBlobs:
    candidates: List[Candidate]
    per_profile: Dict[str, int] = field(default_factory=dict)
    ink_mask: Optional[BinaryMask] = None


def detect_blobs(
    image: RasterImage,
    profile: DetectionProfile,
    classifier: Optional[ClassifierConfig] = None,
) -> BlobDetection:
    """Run one profile: ink mask, dilation, labelling, filtering, two merge passes."""
    classifier = replace(classifier or ClassifierConfig(), brightness_threshold=profile.brightness_threshold)
    ink = dark_ink_mask(image, classifier)
    grown = dilate(ink, profile.dilation_radius)
    components = label(grown)
    blobs = filter_components(components, profile.geometry, image.width, image.height)
    # tight pass joins the glyphs of one seat number, looser pass removes duplicates
    clustered = merge(blobs, profile.cluster_radius)
    candidates = merge(clustered, profile.merge_radius)
    logger.debug(
        "Blob profile finished",
        profile=profile.name,
        components=len(components),
        blobs=len(blobs),
        candidates=len(candidates),
    )
    return BlobDetection(
        profile=profile.name,
        candidates=candidates,
        component_count=len(components),
        blob_count=len(blobs),
        ink_mask=grown,
    )


def detect_pooled(
    image: RasterImage,
    profiles: Sequence[DetectionProfile],
    pool_radius: float,
    classifier: Optional[ClassifierConfig] = None,
) -> PooledBlobs:
    """Run several profiles and merge their candidates into one pool."""
    pooled: List[Candidate] = []
    per_profile: Dict[str, int] = {}
    first_mask: Optional[BinaryMask] = None
    for profile in profiles:
        result = detect_blobs(image, profile, classifier)
        per_profile[profile.name] = len(result.candidates)
        pooled.extend(result.candidates)
        if first_mask is None:
            first_mask = result.ink_mask
    if len(profiles) > 1:
        pooled = merge(pooled, pool_radius)
    logger.debug("Blob profiles pooled", per_profile=per_profile, pooled=len(pooled))
    return PooledBlobs(candidates=pooled, per_profile=per_profile, ink_mask=first_mask)
