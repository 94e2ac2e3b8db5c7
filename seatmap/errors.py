"""Error taxonomy for the seat extraction pipeline."""
from typing import Optional


class SeatMapError(RuntimeError):
    """Base class for pipeline errors."""


class DependencyError(SeatMapError):
    """Raised when optional CV/OCR dependencies are missing."""


class NoBoundaryDetected(SeatMapError):
    """Too few boundary-coloured pixels to attempt the outside fill."""

    def __init__(self, found: int, required: int) -> None:
        super().__init__(f"no boundary detected ({found} boundary pixels, need {required})")
        self.found = found
        self.required = required


class ImageUnavailable(SeatMapError):
    """The room's source raster is missing or unreadable."""

    def __init__(self, path: str, reason: Optional[str] = None) -> None:
        message = f"image unavailable: {path}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.path = path


class OcrFailure(SeatMapError):
    """The OCR engine failed or timed out for one image."""


class RegistryUnreadable(SeatMapError):
    """The room registry could not be read or parsed."""
