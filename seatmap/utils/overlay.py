"""Diagnostic images for reviewing a room's detection."""
from __future__ import annotations

import re
from pathlib import Path
from typing import Tuple

import numpy as np
from PIL import Image, ImageDraw

from seatmap.segmentation.masks import BinaryMask
from seatmap.utils.raster import RasterImage

POOL_COLOR: Tuple[int, int, int] = (150, 150, 150)
OCR_COLOR: Tuple[int, int, int] = (0, 90, 255)
SEAT_FILL: Tuple[int, int, int] = (0, 200, 0)
SEAT_OUTLINE: Tuple[int, int, int] = (0, 100, 0)
SCORE_COLOR: Tuple[int, int, int] = (200, 0, 0)
SEAT_RADIUS = 18
POOL_RADIUS = 14


def safe_name(room_id: str) -> str:
    return re.sub(r"[^a-zA-Z0-9_-]", "_", room_id)


def save_overlay(image: RasterImage, result, out_path: Path) -> None:
    """Pool (grey), OCR word boxes (blue), kept seats (green, with ids), refiner scores (red)."""
    overlay = image.to_pil()
    draw = ImageDraw.Draw(overlay)
    for cand in result.pool:
        if cand.box is not None:
            draw.rectangle(list(cand.box), outline=POOL_COLOR, width=1)
        draw.ellipse(
            [cand.x - POOL_RADIUS, cand.y - POOL_RADIUS, cand.x + POOL_RADIUS, cand.y + POOL_RADIUS],
            outline=POOL_COLOR,
            width=2,
        )
    for cand in result.ocr_candidates:
        if cand.box is not None:
            draw.rectangle(list(cand.box), outline=OCR_COLOR, width=2)
    for seat in result.seats:
        draw.ellipse(
            [seat.x - SEAT_RADIUS, seat.y - SEAT_RADIUS, seat.x + SEAT_RADIUS, seat.y + SEAT_RADIUS],
            fill=SEAT_FILL,
            outline=SEAT_OUTLINE,
            width=3,
        )
        draw.text((seat.x - 6, seat.y - 6), seat.id, fill=(255, 255, 255))
    for cand, score in result.scored:
        draw.text((cand.x + SEAT_RADIUS + 2, cand.y - SEAT_RADIUS), f"{score:.0f}", fill=SCORE_COLOR)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    overlay.save(out_path, format="PNG")


def save_mask(mask: BinaryMask, out_path: Path) -> None:
    """Mask pixels black on white."""
    pixels = np.where(mask.data, 0, 255).astype(np.uint8)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(pixels).save(out_path, format="PNG")


def save_debug_images(image: RasterImage, result, debug_dir: Path, room_id: str) -> Path:
    name = safe_name(room_id)
    overlay_path = debug_dir / f"{name}_overlay.png"
    save_overlay(image, result, overlay_path)
    if result.ink_mask is not None:
        save_mask(result.ink_mask, debug_dir / f"{name}_mask.png")
    return overlay_path
