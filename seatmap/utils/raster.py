"""Raster loading for room floor plans.

Rooms reference either an already rendered PNG/JPG or the source PDF. PDFs are
rendered once (first page) through pdf2image; everything downstream works on an
immutable RGB array.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from seatmap.errors import DependencyError, ImageUnavailable
from seatmap.utils.logging import get_logger

logger = get_logger(__name__)

SUPPORTED_EXTENSIONS = {'.png', '.jpg', '.jpeg', '.pdf'}


@dataclass(frozen=True)
class RasterImage:
    """Read-only H x W x 3 uint8 RGB raster."""

    pixels: np.ndarray
    source: str = ""

    def __post_init__(self) -> None:
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 3:
            raise ValueError(f"expected an HxWx3 array, got shape {self.pixels.shape}")
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"expected uint8 samples, got {self.pixels.dtype}")
        self.pixels.setflags(write=False)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @classmethod
    def from_pil(cls, image: Image.Image, source: str = "") -> "RasterImage":
        # RGBA is flattened onto white so transparent margins read as background
        if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
            rgba = image.convert("RGBA")
            background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
            image = Image.alpha_composite(background, rgba)
        rgb = np.array(image.convert("RGB"), dtype=np.uint8)
        return cls(pixels=rgb, source=source)

    @classmethod
    def from_array(cls, pixels: np.ndarray, source: str = "") -> "RasterImage":
        return cls(pixels=np.array(pixels, dtype=np.uint8, copy=True), source=source)

    def to_pil(self) -> Image.Image:
        return Image.fromarray(np.array(self.pixels))

    def with_pixels(self, pixels: np.ndarray) -> "RasterImage":
        """Derive a new raster (same source tag) from modified samples."""
        return RasterImage.from_array(pixels, source=self.source)


def render_pdf_page(path: Path, dpi: int) -> Image.Image:
    """Render the first page of a PDF."""
    try:
        from pdf2image import convert_from_path
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise DependencyError("pdf2image is required for PDF input.") from exc

    images = convert_from_path(str(path), dpi=dpi, fmt="png", first_page=1, last_page=1)
    if not images:
        raise ImageUnavailable(str(path), "PDF conversion produced no images")
    return images[0]


def load_raster(path: Union[str, Path], dpi: int = 300) -> RasterImage:
    """Load a room raster from disk.

    Raises:
        ImageUnavailable: if the file is missing, unsupported or undecodable
    """
    path = Path(path)
    ext = path.suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise ImageUnavailable(str(path), f"unsupported format {ext or '<none>'}")
    if not path.is_file():
        raise ImageUnavailable(str(path), "file not found")

    if ext == ".pdf":
        logger.info("Rendering PDF page", path=str(path), dpi=dpi)
        try:
            image = render_pdf_page(path, dpi)
        except (DependencyError, ImageUnavailable):
            raise
        except Exception as exc:
            raise ImageUnavailable(str(path), str(exc)) from exc
        return RasterImage.from_pil(image, source=str(path))

    try:
        with Image.open(path) as image:
            image.load()
            return RasterImage.from_pil(image, source=str(path))
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageUnavailable(str(path), str(exc)) from exc
