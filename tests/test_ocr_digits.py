from typing import List

import numpy as np
import pytest

from seatmap.errors import OcrFailure
from seatmap.segmentation.candidates import CandidateSource
from seatmap.segmentation.ocr_digits import (
    OcrConfig,
    OcrDigitExtractor,
    OcrWord,
    TesseractEngine,
    parse_tesseract_tsv,
    prepare_for_ocr,
    words_to_candidates,
)
from seatmap.utils.raster import RasterImage

TSV = "\n".join(
    [
        "level\tpage_num\tblock_num\tpar_num\tline_num\tword_num\tleft\ttop\twidth\theight\tconf\ttext",
        "1\t1\t0\t0\t0\t0\t0\t0\t2000\t2000\t-1\t",
        "5\t1\t1\t1\t1\t1\t400\t400\t40\t32\t91.5\t12",
        "5\t1\t1\t1\t1\t2\t600\t400\t20\t32\t95\t ",
        "5\t1\t2\t1\t1\t1\t900\t700\t20\t30\t80\t7",
        "5\t1\t2\t1\t1\t2\t950\t700\t20\t30\tnot-a-number\t8",
    ]
)


class FakeEngine:
    def __init__(self, words: List[OcrWord]):
        self.words = words
        self.seen = []

    def recognize(self, image):
        self.seen.append(image)
        return list(self.words)


class BrokenEngine:
    def __init__(self, exc: Exception):
        self.exc = exc

    def recognize(self, image):
        raise self.exc


def _blank(width: int = 1000, height: int = 1000) -> RasterImage:
    return RasterImage.from_array(np.full((height, width, 3), 255, dtype=np.uint8), source="blank.png")


def test_parse_tesseract_tsv_keeps_scored_words() -> None:
    words = parse_tesseract_tsv(TSV)
    assert [w.text for w in words] == ["12", "7"]
    assert words[0] == OcrWord(text="12", left=400, top=400, width=40, height=32, conf=91.5)


def test_parse_tesseract_tsv_tolerates_garbage() -> None:
    assert parse_tesseract_tsv("") == []
    assert parse_tesseract_tsv("no\theader\there") == []


def test_words_map_back_to_original_resolution() -> None:
    word = OcrWord(text="12", left=400, top=400, width=40, height=32, conf=91.5)
    [cand] = words_to_candidates([word], 1000, 1000, OcrConfig())
    assert (cand.x, cand.y) == (210.0, 208.0)
    assert cand.source == CandidateSource.OCR
    assert cand.confidence == 91.5
    assert cand.text == "12"


@pytest.mark.parametrize(
    "word",
    [
        OcrWord(text="AB", left=400, top=400, width=40, height=32, conf=90),
        OcrWord(text="3", left=60, top=400, width=20, height=32, conf=90),
        OcrWord(text="3", left=1900, top=400, width=20, height=32, conf=90),
        OcrWord(text="3", left=400, top=40, width=20, height=32, conf=90),
        OcrWord(text="3", left=400, top=1820, width=20, height=32, conf=90),
        OcrWord(text="123456", left=400, top=400, width=220, height=32, conf=90),
        OcrWord(text="3", left=400, top=400, width=20, height=130, conf=90),
    ],
)
def test_post_filters_drop_words(word: OcrWord) -> None:
    assert words_to_candidates([word], 1000, 1000, OcrConfig()) == []


def test_nearby_words_keep_highest_confidence() -> None:
    words = [
        OcrWord(text="1", left=400, top=400, width=20, height=30, conf=60),
        OcrWord(text="11", left=410, top=402, width=30, height=30, conf=95),
        OcrWord(text="12", left=700, top=400, width=30, height=30, conf=70),
    ]
    cands = words_to_candidates(words, 1000, 1000, OcrConfig())
    assert sorted(c.text for c in cands) == ["11", "12"]


def test_prepare_for_ocr_binarises_and_upsamples() -> None:
    pixels = np.full((20, 30, 3), 200, dtype=np.uint8)
    pixels[5, 5] = (100, 100, 100)
    prepared = prepare_for_ocr(RasterImage.from_array(pixels), scale=2, threshold=180)
    assert prepared.mode == "L"
    assert prepared.size == (60, 40)
    arr = np.array(prepared)
    assert set(np.unique(arr)) == {0, 255}
    assert arr[10, 10] == 0 and arr[11, 11] == 0
    assert arr[0, 0] == 255


def test_extractor_uses_engine_and_filters() -> None:
    engine = FakeEngine(parse_tesseract_tsv(TSV))
    extractor = OcrDigitExtractor(engine=engine)
    cands = extractor.extract_digits(_blank())
    assert len(engine.seen) == 1
    assert engine.seen[0].size == (2000, 2000)
    assert sorted((c.x, c.y) for c in cands) == [(210.0, 208.0), (455.0, 358.0)]


def test_extractor_degrades_to_no_candidates() -> None:
    extractor = OcrDigitExtractor(engine=BrokenEngine(OcrFailure("boom")))
    assert extractor.extract_digits(_blank()) == []


def test_unexpected_engine_errors_become_ocr_failures() -> None:
    extractor = OcrDigitExtractor(engine=BrokenEngine(RuntimeError("segfault")))
    with pytest.raises(OcrFailure):
        extractor.recognize(_blank())


def test_tesseract_command_line() -> None:
    cmd = TesseractEngine(OcrConfig(lang="eng", psm=11, oem=1)).command("/tmp/x.png")
    assert cmd[:3] == ["tesseract", "/tmp/x.png", "stdout"]
    assert cmd[cmd.index("--psm") + 1] == "11"
    assert "tessedit_char_whitelist=0123456789" in cmd
    assert cmd[-1] == "tsv"


def test_missing_tesseract_binary_is_an_ocr_failure() -> None:
    engine = TesseractEngine(OcrConfig(tesseract_cmd="seatmap-no-such-tesseract"))
    with pytest.raises(OcrFailure):
        engine.recognize(_blank(20, 20).to_pil())
