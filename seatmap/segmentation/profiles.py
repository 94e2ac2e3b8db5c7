"""Named detection and strategy profiles.

Historical detector variants differ only in thresholds, so each one is a
profile here rather than a separate code path.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict

from seatmap.segmentation.candidates import GeometryFilter


@dataclass
class DetectionProfile:
    name: str
    brightness_threshold: float = 50.0
    dilation_radius: int = 2
    geometry: GeometryFilter = field(default_factory=GeometryFilter)
    cluster_radius: float = 45.0
    merge_radius: float = 40.0


@dataclass(frozen=True)
class StrategyProfile:
    name: str
    use_blob: bool
    use_ocr: bool


_GLYPH = DetectionProfile(name="glyph")

DETECTION_PROFILES: Dict[str, DetectionProfile] = {
    # digit glyphs of printed seat numbers
    "glyph": _GLYPH,
    "glyph-sensitive": replace(_GLYPH, name="glyph-sensitive", brightness_threshold=65.0),
    "glyph-large": replace(
        _GLYPH,
        name="glyph-large",
        geometry=replace(_GLYPH.geometry, max_dim=70, max_pixels=2000),
    ),
    "glyph-wide-cluster": replace(
        _GLYPH, name="glyph-wide-cluster", cluster_radius=55.0, merge_radius=50.0
    ),
    "glyph-relaxed": replace(
        _GLYPH,
        name="glyph-relaxed",
        brightness_threshold=60.0,
        geometry=replace(_GLYPH.geometry, max_dim=65),
        cluster_radius=50.0,
    ),
    # whole seat icons (chair outline + number merged by a wider dilation)
    "icon": DetectionProfile(
        name="icon",
        brightness_threshold=119.0,
        dilation_radius=4,
        geometry=GeometryFilter(
            min_dim=20,
            max_dim=120,
            min_pixels=400,
            max_pixels=None,
            min_aspect=0.4,
            max_aspect=2.5,
            max_fill_ratio=0.85,
            border_margin=30,
            top_band=0.0,
            bottom_band=0.92,
        ),
        cluster_radius=50.0,
        merge_radius=50.0,
    ),
}

# Pooled by the blob strategy; their candidates are merged before refinement
DEFAULT_BLOB_PROFILES = (
    "glyph",
    "glyph-sensitive",
    "glyph-large",
    "glyph-wide-cluster",
    "glyph-relaxed",
)

STRATEGIES: Dict[str, StrategyProfile] = {
    "ocr": StrategyProfile(name="ocr", use_blob=False, use_ocr=True),
    "blob": StrategyProfile(name="blob", use_blob=True, use_ocr=False),
    "union": StrategyProfile(name="union", use_blob=True, use_ocr=True),
}

# Tie order when two strategies are equally close to capacity
STRATEGY_ORDER = ("ocr", "blob", "union")


def get_profile(name: str) -> DetectionProfile:
    try:
        return DETECTION_PROFILES[name]
    except KeyError:
        known = ", ".join(sorted(DETECTION_PROFILES))
        raise ValueError(f"Unknown detection profile {name!r} (known: {known})") from None
