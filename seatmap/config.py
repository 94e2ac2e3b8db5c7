"""Configuration management for the seat extraction pipeline."""
from pathlib import Path
from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

# Get project root directory
PROJECT_ROOT = Path(__file__).parent.parent


class Settings(BaseSettings):
    """Process settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        env_prefix="SEATMAP_",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    environment: str = "development"
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "console"

    # Registry / assets (relative paths resolve against the working directory)
    registry_path: str = "src/data/registry.json"
    public_dir: str = "public"
    debug_dir: str = "public/maps/debug"
    pdf_render_dpi: int = 300

    # Batch parallelism. Rooms share no state, OCR is the only slow collaborator.
    max_concurrent_rooms: int = 4
    write_each_room: bool = False

    # OCR (tesseract CLI, digits only, sparse text)
    ocr_enabled: bool = True
    ocr_tesseract_cmd: str = "tesseract"
    ocr_tessdata_dir: Optional[str] = None
    ocr_lang: str = "eng"
    ocr_psm: int = 11
    ocr_oem: int = 1
    ocr_scale: int = 2
    ocr_bw_threshold: int = 180
    ocr_timeout_seconds: float = 60.0
    ocr_max_concurrent: int = 2

    # Boundary masking
    boundary_masking_enabled: bool = True
    boundary_min_pixels: int = 500
    boundary_close_radius: int = 3

    # Refinement
    selection_policy: Literal["closest", "union"] = "closest"
    row_tolerance: float = 35.0
    column_tolerance: float = 30.0
    min_seat_separation: float = 30.0


# Global settings instance
settings = Settings()
