"""Binary masks and the per-pixel classifier.

Two predicates drive everything downstream: "is this pixel part of the red room
outline" and "is this pixel dark ink (seat numbers, icons)". The scalar form
documents the contract; the array form is what the pipeline calls on whole
rasters.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from seatmap.utils.raster import RasterImage


class MaskPurpose(str, Enum):
    BOUNDARY = "boundary"
    DARK_INK = "dark-ink"
    OUTSIDE_REGION = "outside-region"
    DILATED = "dilated"


class PixelClass(str, Enum):
    BACKGROUND = "background"
    BOUNDARY_RED = "boundaryRed"
    DARK_INK = "darkInk"


@dataclass(frozen=True)
class BinaryMask:
    """Read-only H x W boolean grid tagged with the stage that produced it."""

    data: np.ndarray
    purpose: MaskPurpose

    def __post_init__(self) -> None:
        if self.data.ndim != 2:
            raise ValueError(f"mask must be 2-D, got shape {self.data.shape}")
        if self.data.dtype != np.bool_:
            object.__setattr__(self, "data", self.data.astype(bool))
        self.data.setflags(write=False)

    @classmethod
    def build(cls, data: np.ndarray, purpose: MaskPurpose) -> "BinaryMask":
        return cls(data=np.array(data, dtype=bool, copy=True), purpose=purpose)

    @classmethod
    def empty(cls, width: int, height: int, purpose: MaskPurpose) -> "BinaryMask":
        return cls(data=np.zeros((height, width), dtype=bool), purpose=purpose)

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    def count(self) -> int:
        return int(np.count_nonzero(self.data))

    def __getitem__(self, item):
        return self.data[item]


@dataclass
class ClassifierConfig:
    darkness_floor: int = 60
    red_min: int = 100
    red_ratio_min: float = 0.45
    green_cap: int = 180
    brightness_threshold: float = 50.0


def is_boundary_red(r: int, g: int, b: int, config: Optional[ClassifierConfig] = None) -> bool:
    config = config or ClassifierConfig()
    total = int(r) + int(g) + int(b)
    if total < config.darkness_floor or total <= 0:
        return False
    if r < config.red_min:
        return False
    if r / total < config.red_ratio_min:
        return False
    return g <= config.green_cap and b <= config.green_cap


def is_dark_ink(r: int, g: int, b: int, config: Optional[ClassifierConfig] = None) -> bool:
    config = config or ClassifierConfig()
    if is_boundary_red(r, g, b, config):
        return False
    return (int(r) + int(g) + int(b)) / 3.0 <= config.brightness_threshold


def classify_pixel(r: int, g: int, b: int, config: Optional[ClassifierConfig] = None) -> PixelClass:
    config = config or ClassifierConfig()
    if is_boundary_red(r, g, b, config):
        return PixelClass.BOUNDARY_RED
    if is_dark_ink(r, g, b, config):
        return PixelClass.DARK_INK
    return PixelClass.BACKGROUND


def _channels(image: RasterImage):
    px = image.pixels.astype(np.int32)
    return px[..., 0], px[..., 1], px[..., 2]


def boundary_red_mask(image: RasterImage, config: Optional[ClassifierConfig] = None) -> BinaryMask:
    config = config or ClassifierConfig()
    r, g, b = _channels(image)
    total = r + g + b
    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = np.where(total > 0, r / np.maximum(total, 1), 0.0)
    data = (
        (total >= config.darkness_floor)
        & (total > 0)
        & (r >= config.red_min)
        & (ratio >= config.red_ratio_min)
        & (g <= config.green_cap)
        & (b <= config.green_cap)
    )
    return BinaryMask(data=data, purpose=MaskPurpose.BOUNDARY)


def dark_ink_mask(image: RasterImage, config: Optional[ClassifierConfig] = None) -> BinaryMask:
    config = config or ClassifierConfig()
    r, g, b = _channels(image)
    dark = (r + g + b) <= config.brightness_threshold * 3.0
    red = boundary_red_mask(image, config).data
    return BinaryMask(data=dark & ~red, purpose=MaskPurpose.DARK_INK)
