"""Greedy centroid merging of nearby candidates.

``merge`` is one deterministic pass, not density clustering: candidates are
visited in (y, x) order, each unmerged candidate absorbs every other unmerged
candidate closer than ``radius`` to it, and the group collapses to its
weighted centroid. It is re-applied with different radii at different stages.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Optional, Sequence

import numpy as np

from seatmap.segmentation.candidates import Candidate, CandidateSource


def reading_key(candidate: Candidate):
    return (candidate.y, candidate.x)


def _union_box(group: Sequence[Candidate]):
    boxes = [c.box for c in group if c.box is not None]
    if not boxes:
        return None
    return (
        min(b[0] for b in boxes),
        min(b[1] for b in boxes),
        max(b[2] for b in boxes),
        max(b[3] for b in boxes),
    )


def centroid(group: Sequence[Candidate], source: Optional[CandidateSource] = None) -> Candidate:
    """Weighted centroid of ``group`` carrying the summed weight."""
    if len(group) == 1 and source is None:
        return group[0]
    total = sum(c.weight for c in group)
    if total > 0:
        x = sum(c.x * c.weight for c in group) / total
        y = sum(c.y * c.weight for c in group) / total
    else:
        x = sum(c.x for c in group) / len(group)
        y = sum(c.y for c in group) / len(group)

    if source is None:
        sources = {c.source for c in group}
        source = group[0].source if len(sources) == 1 else CandidateSource.FUSED
    scored = [c for c in group if c.confidence is not None]
    best = max(scored, key=lambda c: c.confidence) if scored else None
    return Candidate(
        x=x,
        y=y,
        weight=total,
        support=sum(c.support for c in group),
        source=source,
        confidence=best.confidence if best else None,
        text=best.text if best else group[0].text,
        box=_union_box(group),
    )


def merge(
    candidates: Iterable[Candidate],
    radius: float,
    source: Optional[CandidateSource] = None,
) -> List[Candidate]:
    """Greedy single-link merge; points at distance >= ``radius`` stay distinct."""
    ordered = sorted(candidates, key=reading_key)
    used = [False] * len(ordered)
    merged: List[Candidate] = []
    for i, anchor in enumerate(ordered):
        if used[i]:
            continue
        used[i] = True
        group = [anchor]
        for j in range(i + 1, len(ordered)):
            if used[j]:
                continue
            if anchor.distance_to(ordered[j]) < radius:
                group.append(ordered[j])
                used[j] = True
        merged.append(centroid(group, source))
    return merged


def dedupe_by_confidence(candidates: Iterable[Candidate], radius: float) -> List[Candidate]:
    """Like ``merge`` but keeps the most confident member instead of averaging."""
    ordered = sorted(candidates, key=reading_key)
    used = [False] * len(ordered)
    kept: List[Candidate] = []
    for i, anchor in enumerate(ordered):
        if used[i]:
            continue
        used[i] = True
        best = anchor
        for j in range(i + 1, len(ordered)):
            if used[j] or anchor.distance_to(ordered[j]) >= radius:
                continue
            used[j] = True
            if (ordered[j].confidence or 0.0) > (best.confidence or 0.0):
                best = ordered[j]
        kept.append(best)
    return kept


def pixel_position(value: float, size: Optional[int] = None) -> int:
    """Nearest whole pixel, clamped to ``[0, size)`` when ``size`` is given."""
    pos = int(round(value))
    if size is not None:
        pos = min(max(pos, 0), size - 1)
    return pos


def snap_to_pixel(candidate: Candidate, width: Optional[int] = None, height: Optional[int] = None) -> Candidate:
    return replace(candidate, x=float(pixel_position(candidate.x, width)), y=float(pixel_position(candidate.y, height)))


def enforce_min_separation(
    candidates: Iterable[Candidate],
    min_separation: float,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> List[Candidate]:
    """Merge the closest pair while any two candidates are closer than ``min_separation``.

    Unlike ``merge`` this iterates to a fixed point. Positions, merged
    centroids included, are snapped to whole pixels inside the image before
    distances are measured, so the guarantee survives rounding to seat records.
    """
    points = sorted((snap_to_pixel(c, width, height) for c in candidates), key=reading_key)
    if min_separation <= 0:
        return points
    while len(points) > 1:
        xy = np.array([[c.x, c.y] for c in points], dtype=float)
        diff = xy[:, None, :] - xy[None, :, :]
        dist = np.sqrt((diff ** 2).sum(axis=2))
        np.fill_diagonal(dist, np.inf)
        flat = int(np.argmin(dist))
        i, j = divmod(flat, len(points))
        if dist[i, j] >= min_separation:
            break
        i, j = min(i, j), max(i, j)
        combined = snap_to_pixel(centroid([points[i], points[j]]), width, height)
        points = [p for k, p in enumerate(points) if k not in (i, j)]
        points.append(combined)
        points.sort(key=reading_key)
    return points
