"""Seat-number localisation with Tesseract.

Only digit positions matter, not transcription quality: the (boundary-masked)
raster is upsampled, hard-binarised and sent through the tesseract CLI in
sparse-text mode with a digits-only whitelist. Each word box holding a digit
becomes a candidate at its centre, scaled back to the original resolution.
"""
from __future__ import annotations

import os
import re
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from typing import List, Optional, Protocol

import numpy as np
from PIL import Image

from seatmap.errors import OcrFailure
from seatmap.segmentation.candidates import Candidate, CandidateSource
from seatmap.segmentation.clustering import dedupe_by_confidence
from seatmap.utils.logging import get_logger
from seatmap.utils.raster import RasterImage

logger = get_logger(__name__)

DIGIT_RE = re.compile(r"\d")


@dataclass
class OcrConfig:
    scale: int = 2
    bw_threshold: int = 180
    lang: str = "eng"
    psm: int = 11
    oem: int = 1
    tesseract_cmd: str = "tesseract"
    tessdata_dir: Optional[str] = None
    timeout_seconds: float = 60.0
    whitelist: Optional[str] = "0123456789"
    border_margin: int = 50
    top_band: float = 0.04
    bottom_band: float = 0.90
    max_word_width: int = 100
    max_word_height: int = 60
    dedup_radius: float = 20.0


@dataclass(frozen=True)
class OcrWord:
    text: str
    left: int
    top: int
    width: int
    height: int
    conf: float

    @property
    def center(self):
        return (self.left + self.width / 2.0, self.top + self.height / 2.0)


class OcrEngine(Protocol):
    def recognize(self, image: Image.Image) -> List[OcrWord]:
        ...


def parse_tesseract_tsv(tsv: str) -> List[OcrWord]:
    """Word rows of tesseract's TSV output (level 5, non-empty text, conf >= 0)."""
    lines = [ln for ln in tsv.splitlines() if ln.strip()]
    if not lines:
        return []
    header = lines[0].split("\t")
    idx = {name: i for i, name in enumerate(header)}
    required = {"text", "conf", "left", "top", "width", "height"}
    if not required.issubset(idx):
        return []

    words: List[OcrWord] = []
    for row in lines[1:]:
        parts = row.split("\t")
        if len(parts) != len(header):
            continue
        text = parts[idx["text"]].strip()
        if not text:
            continue
        try:
            conf = float(parts[idx["conf"]])
        except ValueError:
            conf = -1.0
        if conf < 0:
            continue
        try:
            words.append(
                OcrWord(
                    text=text,
                    left=int(parts[idx["left"]]),
                    top=int(parts[idx["top"]]),
                    width=int(parts[idx["width"]]),
                    height=int(parts[idx["height"]]),
                    conf=conf,
                )
            )
        except ValueError:
            continue
    return words


class TesseractEngine:
    """Runs the tesseract CLI and parses its TSV output."""

    def __init__(self, config: Optional[OcrConfig] = None) -> None:
        self.config = config or OcrConfig()

    def command(self, image_path: str) -> List[str]:
        cfg = self.config
        cmd = [
            cfg.tesseract_cmd,
            image_path,
            "stdout",
            "-l",
            cfg.lang,
            "--oem",
            str(cfg.oem),
            "--psm",
            str(cfg.psm),
        ]
        if cfg.whitelist:
            cmd += ["-c", f"tessedit_char_whitelist={cfg.whitelist}"]
        cmd.append("tsv")
        return cmd

    def recognize(self, image: Image.Image) -> List[OcrWord]:
        cfg = self.config
        if shutil.which(cfg.tesseract_cmd) is None:
            raise OcrFailure(f"tesseract binary not found: {cfg.tesseract_cmd}")

        with tempfile.NamedTemporaryFile(suffix=".png") as tmp:
            image.save(tmp.name, format="PNG")
            env = os.environ.copy()
            if cfg.tessdata_dir:
                env["TESSDATA_PREFIX"] = cfg.tessdata_dir
            try:
                result = subprocess.run(
                    self.command(tmp.name),
                    check=True,
                    capture_output=True,
                    text=True,
                    timeout=cfg.timeout_seconds,
                    env=env,
                )
            except subprocess.TimeoutExpired as exc:
                raise OcrFailure(f"tesseract timed out after {cfg.timeout_seconds}s") from exc
            except subprocess.CalledProcessError as exc:
                stderr = (exc.stderr or "").strip().splitlines()
                detail = stderr[-1] if stderr else f"exit code {exc.returncode}"
                raise OcrFailure(f"tesseract failed: {detail}") from exc
            except OSError as exc:
                raise OcrFailure(f"tesseract could not be started: {exc}") from exc
        return parse_tesseract_tsv(result.stdout)


def prepare_for_ocr(image: RasterImage, scale: int, threshold: int) -> Image.Image:
    """Luminance-threshold to pure black/white, then nearest-neighbour upsample."""
    px = image.pixels.astype(np.float32)
    gray = 0.299 * px[..., 0] + 0.587 * px[..., 1] + 0.114 * px[..., 2]
    bw = np.where(gray < threshold, 0, 255).astype(np.uint8)
    out = Image.fromarray(bw)
    scale = max(1, int(scale))
    if scale > 1:
        out = out.resize((image.width * scale, image.height * scale), resample=Image.Resampling.NEAREST)
    return out


def words_to_candidates(
    words: List[OcrWord],
    width: int,
    height: int,
    config: OcrConfig,
) -> List[Candidate]:
    """Digit-bearing words as candidates in original-resolution pixels."""
    scale = max(1, int(config.scale))
    candidates: List[Candidate] = []
    for word in words:
        if not DIGIT_RE.search(word.text):
            continue
        cx, cy = word.center
        x = round(cx / scale)
        y = round(cy / scale)
        bw = round(word.width / scale)
        bh = round(word.height / scale)
        if x <= config.border_margin or x >= width - config.border_margin:
            continue
        if y <= height * config.top_band or y >= height * config.bottom_band:
            continue
        if bw >= config.max_word_width or bh >= config.max_word_height:
            continue
        candidates.append(
            Candidate(
                x=float(x),
                y=float(y),
                weight=1.0,
                source=CandidateSource.OCR,
                confidence=word.conf,
                text=word.text,
                box=(x - bw // 2, y - bh // 2, x + bw // 2, y + bh // 2),
            )
        )
    return dedupe_by_confidence(candidates, config.dedup_radius)


class OcrDigitExtractor:
    """Digit candidates for one raster; engine failures degrade to no candidates."""

    def __init__(self, engine: Optional[OcrEngine] = None, config: Optional[OcrConfig] = None) -> None:
        self.config = config or OcrConfig()
        self.engine = engine or TesseractEngine(self.config)

    def recognize(self, image: RasterImage) -> List[OcrWord]:
        """Raw engine words (upsampled coordinates). Raises OcrFailure."""
        prepared = prepare_for_ocr(image, self.config.scale, self.config.bw_threshold)
        try:
            return list(self.engine.recognize(prepared))
        except OcrFailure:
            raise
        except Exception as exc:
            raise OcrFailure(str(exc)) from exc

    def to_candidates(self, words: List[OcrWord], image: RasterImage) -> List[Candidate]:
        return words_to_candidates(words, image.width, image.height, self.config)

    def extract_digits(self, image: RasterImage) -> List[Candidate]:
        try:
            words = self.recognize(image)
        except OcrFailure as exc:
            logger.warning("OCR failed, continuing without OCR candidates", source=image.source, error=str(exc))
            return []
        candidates = self.to_candidates(words, image)
        logger.debug("OCR digits extracted", source=image.source, words=len(words), candidates=len(candidates))
        return candidates
