"""Inside/outside classification against the drawn room outline."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from seatmap.errors import NoBoundaryDetected
from seatmap.segmentation.masks import (
    BinaryMask,
    ClassifierConfig,
    MaskPurpose,
    boundary_red_mask,
)
from seatmap.segmentation.morphology import dilate
from seatmap.segmentation.runs import breadth_first, encode_runs
from seatmap.utils.logging import get_logger
from seatmap.utils.raster import RasterImage

logger = get_logger(__name__)

WHITE = 255


@dataclass
class BoundaryConfig:
    min_boundary_pixels: int = 500
    close_radius: int = 3
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)


def classify_outside(boundary: BinaryMask) -> BinaryMask:
    """Mark every pixel reachable from the image border without crossing ``boundary``.

    Seeds are all border pixels that are not boundary; expansion is 4-connected.
    The boundary itself and anything it encloses stay unmarked.
    """
    free = ~boundary.data
    runs = encode_runs(free)
    seeds = (i for i in range(len(runs)) if runs.touches_border(i))
    visited = breadth_first(runs, seeds)
    outside = np.zeros(free.shape, dtype=bool)
    runs.paint((i for i, hit in enumerate(visited) if hit), outside)
    return BinaryMask(data=outside, purpose=MaskPurpose.OUTSIDE_REGION)


def mask_outside_boundary(
    image: RasterImage,
    config: Optional[BoundaryConfig] = None,
) -> Tuple[RasterImage, BinaryMask]:
    """White out everything exterior to the red room outline.

    Raises:
        NoBoundaryDetected: fewer than ``min_boundary_pixels`` red pixels
    """
    config = config or BoundaryConfig()
    boundary = boundary_red_mask(image, config.classifier)
    found = boundary.count()
    if found < config.min_boundary_pixels:
        raise NoBoundaryDetected(found, config.min_boundary_pixels)

    closed = dilate(boundary, config.close_radius, purpose=MaskPurpose.BOUNDARY)
    outside = classify_outside(closed)
    pixels = np.array(image.pixels)
    pixels[outside.data] = WHITE
    logger.debug(
        "Outside region masked",
        source=image.source,
        boundary_pixels=found,
        outside_pixels=outside.count(),
    )
    return image.with_pixels(pixels), outside


def whiteout_caption(
    image: RasterImage,
    y_start_ratio: float = 0.90,
    x_end_ratio: float = 0.40,
) -> RasterImage:
    """Paint the bottom-left caption block (room / building label) white."""
    if y_start_ratio >= 1.0 or x_end_ratio <= 0.0:
        return image
    y_start = int(np.floor(image.height * y_start_ratio))
    x_end = int(np.floor(image.width * x_end_ratio))
    pixels = np.array(image.pixels)
    pixels[y_start:, :x_end] = WHITE
    return image.with_pixels(pixels)
