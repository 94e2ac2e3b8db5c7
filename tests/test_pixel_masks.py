import numpy as np
import pytest

from seatmap.segmentation.masks import (
    BinaryMask,
    ClassifierConfig,
    MaskPurpose,
    PixelClass,
    boundary_red_mask,
    classify_pixel,
    dark_ink_mask,
    is_boundary_red,
    is_dark_ink,
)
from seatmap.segmentation.morphology import dilate, disk_kernel
from seatmap.utils.raster import RasterImage


def _white(width: int, height: int) -> np.ndarray:
    return np.full((height, width, 3), 255, dtype=np.uint8)


@pytest.mark.parametrize(
    "rgb,expected",
    [
        ((200, 30, 30), PixelClass.BOUNDARY_RED),
        ((130, 10, 10), PixelClass.BOUNDARY_RED),
        ((0, 0, 0), PixelClass.DARK_INK),
        ((40, 40, 40), PixelClass.DARK_INK),
        ((90, 10, 10), PixelClass.DARK_INK),
        ((150, 150, 150), PixelClass.BACKGROUND),
        ((255, 255, 255), PixelClass.BACKGROUND),
        ((200, 190, 30), PixelClass.BACKGROUND),
    ],
)
def test_classify_pixel(rgb, expected) -> None:
    assert classify_pixel(*rgb) == expected


def test_red_pixels_are_never_dark_ink() -> None:
    # dark enough to pass the brightness test, but red wins
    assert is_boundary_red(130, 10, 10)
    assert not is_dark_ink(130, 10, 10)


def test_brightness_threshold_is_configurable() -> None:
    assert not is_dark_ink(60, 60, 60)
    assert is_dark_ink(60, 60, 60, ClassifierConfig(brightness_threshold=65))


def test_array_masks_agree_with_scalar_predicates() -> None:
    pixels = _white(10, 10)
    pixels[3, 2] = (0, 0, 0)
    pixels[5, 5] = (130, 10, 10)
    pixels[7, 1] = (200, 30, 30)
    image = RasterImage.from_array(pixels)

    ink = dark_ink_mask(image)
    red = boundary_red_mask(image)

    assert ink.purpose == MaskPurpose.DARK_INK
    assert red.purpose == MaskPurpose.BOUNDARY
    assert ink.count() == 1 and ink[3, 2]
    assert red.count() == 2 and red[5, 5] and red[7, 1]
    for y in range(10):
        for x in range(10):
            r, g, b = (int(v) for v in pixels[y, x])
            assert bool(ink[y, x]) == is_dark_ink(r, g, b)
            assert bool(red[y, x]) == is_boundary_red(r, g, b)


def test_masks_are_read_only() -> None:
    mask = BinaryMask.empty(4, 3, MaskPurpose.DARK_INK)
    assert (mask.width, mask.height) == (4, 3)
    with pytest.raises(ValueError):
        mask.data[0, 0] = True


@pytest.mark.parametrize("radius", [0, 1, 3, 7])
def test_dilating_empty_mask_stays_empty(radius: int) -> None:
    mask = BinaryMask.empty(20, 15, MaskPurpose.DARK_INK)
    assert dilate(mask, radius).count() == 0


@pytest.mark.parametrize("radius", [1, 2, 4, 6])
def test_dilating_single_pixel_gives_disk(radius: int) -> None:
    size = 21
    data = np.zeros((size, size), dtype=bool)
    data[10, 10] = True
    out = dilate(BinaryMask.build(data, MaskPurpose.DARK_INK), radius)

    ys, xs = np.mgrid[0:size, 0:size]
    expected = (xs - 10) ** 2 + (ys - 10) ** 2 <= radius * radius
    assert out.purpose == MaskPurpose.DILATED
    assert np.array_equal(out.data, expected)


def test_disk_kernel_radius_two_has_thirteen_cells() -> None:
    assert int(disk_kernel(2).sum()) == 13


def test_dilation_does_not_wrap_at_edges() -> None:
    data = np.zeros((8, 8), dtype=bool)
    data[0, 0] = True
    out = dilate(BinaryMask.build(data, MaskPurpose.DARK_INK), 1)
    assert out.count() == 3
    assert out[0, 0] and out[0, 1] and out[1, 0]
    assert not out[7, 7] and not out[0, 7]
