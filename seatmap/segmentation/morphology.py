"""Disk dilation for binary masks."""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

import numpy as np

try:
    import cv2  # type: ignore
except Exception:  # pragma: no cover - optional dependency
    cv2 = None

from seatmap.errors import DependencyError
from seatmap.segmentation.masks import BinaryMask, MaskPurpose


def _require_cv() -> None:
    if cv2 is None:
        raise DependencyError("OpenCV is required (pip install opencv-python-headless).")


@lru_cache(maxsize=16)
def disk_kernel(radius: int) -> np.ndarray:
    """Structuring element with every offset where dx*dx + dy*dy <= radius*radius."""
    if radius < 0:
        raise ValueError("radius must be non-negative")
    offsets = np.arange(-radius, radius + 1)
    dy, dx = np.meshgrid(offsets, offsets, indexing="ij")
    kernel = ((dx * dx + dy * dy) <= radius * radius).astype(np.uint8)
    kernel.setflags(write=False)
    return kernel


def dilate(mask: BinaryMask, radius: int, purpose: Optional[MaskPurpose] = None) -> BinaryMask:
    """Turn on every pixel within Euclidean ``radius`` of an "on" input pixel.

    Pixels beyond the image edge count as "off", so a stroke touching the border
    grows inward only.
    """
    _require_cv()
    purpose = purpose or MaskPurpose.DILATED
    if radius <= 0 or not mask.data.any():
        return BinaryMask.build(mask.data, purpose)
    src = mask.data.astype(np.uint8)
    out = cv2.dilate(
        src,
        np.array(disk_kernel(radius)),
        iterations=1,
        borderType=cv2.BORDER_CONSTANT,
        borderValue=0,
    )
    return BinaryMask(data=out.astype(bool), purpose=purpose)
