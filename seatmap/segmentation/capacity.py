"""Declared seating capacity from the caption block of a room drawing."""
from __future__ import annotations

import re
from dataclasses import replace
from typing import Optional

import numpy as np
from PIL import Image

from seatmap.errors import OcrFailure
from seatmap.segmentation.ocr_digits import OcrConfig, OcrEngine, TesseractEngine
from seatmap.utils.logging import get_logger
from seatmap.utils.raster import RasterImage

logger = get_logger(__name__)

CAPACITY_RE = re.compile(r"CAPACITY\s*[:;|]\s*(\d+)", re.IGNORECASE)
SEAT_FALLBACK_RE = re.compile(r"SEAT\w*\s+\w*\s*[:;|]?\s*(\d+)", re.IGNORECASE)

CAPTION_Y_START = 0.85
CAPTION_X_END = 0.70
CAPTION_THRESHOLD = 128

# general text layout, no whitelist: the caption is words, not seat numbers
CAPTION_OCR = OcrConfig(scale=1, psm=3, whitelist=None)


def parse_capacity_text(text: str) -> Optional[int]:
    """Capacity from OCR text such as ``SEATING CAPACITY: 42``, or None."""
    match = CAPACITY_RE.search(text) or SEAT_FALLBACK_RE.search(text)
    if not match:
        return None
    return int(match.group(1))


def caption_crop(image: RasterImage, threshold: int = CAPTION_THRESHOLD) -> Image.Image:
    """Bottom 15% x left 70% of the raster, binarised on luminance."""
    y0 = int(np.floor(image.height * CAPTION_Y_START))
    x1 = int(np.floor(image.width * CAPTION_X_END))
    crop = image.pixels[y0:, :x1].astype(np.float32)
    gray = 0.299 * crop[..., 0] + 0.587 * crop[..., 1] + 0.114 * crop[..., 2]
    return Image.fromarray(np.where(gray < threshold, 0, 255).astype(np.uint8))


def read_capacity(image: RasterImage, engine: Optional[OcrEngine] = None) -> Optional[int]:
    """OCR the caption block and parse the capacity; None when absent or OCR fails."""
    engine = engine or TesseractEngine(replace(CAPTION_OCR))
    try:
        words = engine.recognize(caption_crop(image))
    except OcrFailure as exc:
        logger.warning("Caption OCR failed", source=image.source, error=str(exc))
        return None
    text = " ".join(word.text for word in words)
    capacity = parse_capacity_text(text)
    logger.debug("Caption read", source=image.source, text=text, capacity=capacity)
    return capacity
