"""4-connected component labelling.

The same routine serves large seat-icon blobs and tiny digit glyphs; only the
input mask and the downstream filter thresholds change.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from seatmap.segmentation.masks import BinaryMask
from seatmap.segmentation.runs import RowRuns, encode_runs


@dataclass
class Component:
    id: int
    min_x: int
    min_y: int
    max_x: int
    max_y: int
    pixel_count: int

    @property
    def width(self) -> int:
        """Bounding-box extent as ``max_x - min_x``."""
        return self.max_x - self.min_x

    @property
    def height(self) -> int:
        return self.max_y - self.min_y

    @property
    def bbox_area(self) -> int:
        return (self.width + 1) * (self.height + 1)

    @property
    def center(self) -> Tuple[int, int]:
        return (
            int(round(self.min_x + self.width / 2)),
            int(round(self.min_y + self.height / 2)),
        )


@dataclass(frozen=True)
class LabelResult:
    labels: np.ndarray
    components: List[Component]


def _label_runs(runs: RowRuns) -> Tuple[List[int], List[Component]]:
    run_label = [0] * len(runs)
    components: List[Component] = []

    for seed in range(len(runs)):
        if run_label[seed]:
            continue
        comp_id = len(components) + 1
        run_label[seed] = comp_id
        row = runs.rows[seed]
        comp = Component(
            id=comp_id,
            min_x=runs.starts[seed],
            min_y=row,
            max_x=runs.ends[seed] - 1,
            max_y=row,
            pixel_count=0,
        )
        stack = [seed]
        while stack:
            current = stack.pop()
            row = runs.rows[current]
            start = runs.starts[current]
            end = runs.ends[current]
            comp.pixel_count += end - start
            if start < comp.min_x:
                comp.min_x = start
            if end - 1 > comp.max_x:
                comp.max_x = end - 1
            if row < comp.min_y:
                comp.min_y = row
            if row > comp.max_y:
                comp.max_y = row
            for nxt in runs.neighbours(current):
                if not run_label[nxt]:
                    run_label[nxt] = comp_id
                    stack.append(nxt)
        components.append(comp)
    return run_label, components


def label_components(mask: BinaryMask) -> LabelResult:
    """Label 4-connected "on" regions of ``mask``.

    Ids start at 1 in order of each component's first pixel in row-major scan
    order; 0 in ``labels`` means background.
    """
    runs = encode_runs(mask.data)
    run_label, components = _label_runs(runs)
    labels = np.zeros(mask.data.shape, dtype=np.int32)
    for i, comp_id in enumerate(run_label):
        labels[runs.rows[i], runs.starts[i]:runs.ends[i]] = comp_id
    return LabelResult(labels=labels, components=components)


def label(mask: BinaryMask) -> List[Component]:
    """Components of ``mask`` without the label image."""
    _, components = _label_runs(encode_runs(mask.data))
    return components
