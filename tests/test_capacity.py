import numpy as np
import pytest

from seatmap.errors import OcrFailure
from seatmap.segmentation.capacity import caption_crop, parse_capacity_text, read_capacity
from seatmap.segmentation.ocr_digits import OcrWord
from seatmap.utils.raster import RasterImage


@pytest.mark.parametrize(
    "text,expected",
    [
        ("ROOM 2-1\nSEATING CAPACITY: 42", 42),
        ("seating capacity ; 18", 18),
        ("CAPACITY| 7 persons", 7),
        ("SEATS TOTAL 30", 30),
        ("Room 2-1 first floor", None),
        ("", None),
    ],
)
def test_parse_capacity_text(text: str, expected) -> None:
    assert parse_capacity_text(text) == expected


def test_capacity_label_wins_over_fallback() -> None:
    assert parse_capacity_text("SEATS ROW 3 CAPACITY: 36") == 36


class CaptionEngine:
    def __init__(self, words):
        self.words = words
        self.sizes = []

    def recognize(self, image):
        self.sizes.append(image.size)
        return [OcrWord(text=t, left=0, top=0, width=10, height=10, conf=90.0) for t in self.words]


class FailingEngine:
    def recognize(self, image):
        raise OcrFailure("tesseract exited 1")


def _image() -> RasterImage:
    return RasterImage.from_array(np.full((200, 100, 3), 255, dtype=np.uint8))


def test_read_capacity_ocrs_caption_block() -> None:
    engine = CaptionEngine(["SEATING", "CAPACITY:", "40"])
    assert read_capacity(_image(), engine) == 40
    assert engine.sizes == [(70, 30)]


def test_read_capacity_returns_none_on_failure() -> None:
    assert read_capacity(_image(), FailingEngine()) is None
    assert read_capacity(_image(), CaptionEngine(["LECTURE", "HALL"])) is None


def test_caption_crop_is_binarised() -> None:
    pixels = np.full((200, 100, 3), 255, dtype=np.uint8)
    pixels[190, 10] = (100, 100, 100)
    crop = np.array(caption_crop(RasterImage.from_array(pixels)))
    assert crop.shape == (30, 70)
    assert crop[20, 10] == 0
    assert set(np.unique(crop)) == {0, 255}
