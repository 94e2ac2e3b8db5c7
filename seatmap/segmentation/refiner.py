"""Capacity-aware pruning, strategy selection and reading-order ids.

The refiner converges a noisy candidate pool onto a room's declared capacity.
Each round scores every candidate by how regular its neighbourhood looks
(neighbours at roughly the typical seat pitch, other seats in the same row
and column), drops the single worst one, and rescores, because the median
pitch shifts as outliers leave.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from seatmap.models.schemas import SeatRecord
from seatmap.segmentation.candidates import Candidate
from seatmap.segmentation.clustering import pixel_position, reading_key
from seatmap.segmentation.profiles import STRATEGY_ORDER
from seatmap.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RefinerConfig:
    row_tolerance: float = 35.0
    column_tolerance: float = 30.0
    neighbour_count: int = 5
    good_ratio_min: float = 0.5
    good_ratio_max: float = 2.5
    clutter_ratio: float = 0.3
    neighbour_reward: float = 10.0
    clutter_penalty: float = 20.0
    off_pitch_penalty: float = 5.0
    nearest_clutter_penalty: float = 40.0
    row_bonus: float = 3.0
    column_bonus: float = 2.0
    support_cap: int = 3
    support_bonus: float = 2.0
    default_pitch: float = 80.0
    isolated_score: float = -1000.0


@dataclass
class RefineResult:
    kept: List[Candidate]
    removed: List[Candidate] = field(default_factory=list)
    scores: List[float] = field(default_factory=list)
    median_pitch: Optional[float] = None


def _distance_matrix(points: Sequence[Candidate]) -> np.ndarray:
    xy = np.array([[c.x, c.y] for c in points], dtype=float).reshape(-1, 2)
    diff = xy[:, None, :] - xy[None, :, :]
    dist = np.sqrt((diff ** 2).sum(axis=2))
    np.fill_diagonal(dist, np.inf)
    return dist


def median_pitch(dist: np.ndarray, default: float) -> float:
    """Median nearest-neighbour distance (upper median), ``default`` when undefined."""
    n = dist.shape[0]
    if n < 2:
        return default
    nearest = np.sort(dist.min(axis=1))
    value = float(nearest[n // 2])
    return value if value > 0 and np.isfinite(value) else default


def score_candidates(
    points: Sequence[Candidate],
    config: Optional[RefinerConfig] = None,
    dist: Optional[np.ndarray] = None,
) -> Tuple[np.ndarray, float]:
    """Spatial-regularity score per candidate, plus the median pitch it used."""
    config = config or RefinerConfig()
    n = len(points)
    if n == 0:
        return np.zeros(0), config.default_pitch
    if dist is None:
        dist = _distance_matrix(points)
    pitch = median_pitch(dist, config.default_pitch)
    if n == 1:
        return np.array([config.isolated_score]), pitch

    k = min(config.neighbour_count, n - 1)
    nearest = np.sort(dist, axis=1)[:, :k]
    ratios = nearest / pitch
    good = (ratios >= config.good_ratio_min) & (ratios <= config.good_ratio_max)
    clutter = ratios < config.clutter_ratio
    per_neighbour = np.where(
        good,
        config.neighbour_reward,
        np.where(clutter, -config.clutter_penalty, -config.off_pitch_penalty),
    )
    scores = per_neighbour.sum(axis=1)
    scores -= np.where(nearest[:, 0] < pitch * config.clutter_ratio, config.nearest_clutter_penalty, 0.0)

    xs = np.array([c.x for c in points], dtype=float)
    ys = np.array([c.y for c in points], dtype=float)
    dy = np.abs(ys[:, None] - ys[None, :])
    dx = np.abs(xs[:, None] - xs[None, :])
    same_row = dy <= config.row_tolerance
    np.fill_diagonal(same_row, False)
    same_col = (dx <= config.column_tolerance) & (dy > config.row_tolerance)
    scores += same_row.sum(axis=1) * config.row_bonus
    scores += same_col.sum(axis=1) * config.column_bonus

    support = np.array([min(max(int(c.support), 1), config.support_cap) for c in points], dtype=float)
    scores += support * config.support_bonus
    return scores, pitch


def refine_with_scores(
    candidates: Sequence[Candidate],
    capacity: Optional[int],
    config: Optional[RefinerConfig] = None,
) -> RefineResult:
    """Prune ``candidates`` one at a time until ``capacity`` remain.

    Pools that are already at or below capacity, or rooms with unknown
    capacity, come back unchanged: missing seats are never fabricated.
    """
    config = config or RefinerConfig()
    points = sorted(candidates, key=reading_key)
    if capacity is None or capacity <= 0 or len(points) <= capacity:
        scores, pitch = score_candidates(points, config)
        return RefineResult(kept=points, scores=scores.tolist(), median_pitch=pitch)

    full = _distance_matrix(points)
    active = list(range(len(points)))
    removed: List[Candidate] = []
    while True:
        sub = full[np.ix_(active, active)]
        scores, pitch = score_candidates([points[i] for i in active], config, dist=sub)
        if len(active) <= capacity:
            break
        worst = int(np.argmin(scores))
        removed.append(points[active[worst]])
        del active[worst]

    logger.debug("Refined candidates", before=len(points), after=len(active), capacity=capacity)
    return RefineResult(
        kept=[points[i] for i in active],
        removed=removed,
        scores=scores.tolist(),
        median_pitch=pitch,
    )


def refine(
    candidates: Sequence[Candidate],
    capacity: Optional[int],
    config: Optional[RefinerConfig] = None,
) -> List[Candidate]:
    return refine_with_scores(candidates, capacity, config).kept


def select_strategy(
    pools: Mapping[str, Sequence[Candidate]],
    capacity: Optional[int],
    policy: str = "closest",
) -> str:
    """Pick the strategy whose raw pool size is closest to ``capacity``.

    Ties go to the earlier name in ``STRATEGY_ORDER``. With policy ``union``,
    or when capacity is unknown, the union pool is used whenever present.
    """
    names = [name for name in STRATEGY_ORDER if name in pools]
    names += sorted(name for name in pools if name not in STRATEGY_ORDER)
    if not names:
        raise ValueError("no candidate pools to choose from")
    if policy not in ("closest", "union"):
        raise ValueError(f"Unknown selection policy: {policy}")
    if policy == "union" or capacity is None or capacity <= 0:
        return "union" if "union" in pools else names[-1]
    return min(names, key=lambda name: (abs(len(pools[name]) - capacity), names.index(name)))


def reading_order(candidates: Sequence[Candidate], row_tolerance: float) -> List[Candidate]:
    """Row-major order: rows grouped by |dy| <= tolerance from the row's first point, x ascending within."""
    by_y = sorted(candidates, key=reading_key)
    assigned = [False] * len(by_y)
    ordered: List[Candidate] = []
    for i, anchor in enumerate(by_y):
        if assigned[i]:
            continue
        assigned[i] = True
        row = [anchor]
        for j in range(i + 1, len(by_y)):
            if not assigned[j] and abs(by_y[j].y - anchor.y) <= row_tolerance:
                assigned[j] = True
                row.append(by_y[j])
        row.sort(key=lambda c: c.x)
        ordered.extend(row)
    return ordered


def assign_ids(
    candidates: Sequence[Candidate],
    row_tolerance: float,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> List[SeatRecord]:
    """Final seat records with sequential string ids starting at "1"."""
    seats: List[SeatRecord] = []
    for i, cand in enumerate(reading_order(candidates, row_tolerance), start=1):
        seats.append(SeatRecord(id=str(i), x=pixel_position(cand.x, width), y=pixel_position(cand.y, height)))
    return seats


def strategy_counts(pools: Mapping[str, Sequence[Candidate]]) -> Dict[str, int]:
    return {name: len(pool) for name, pool in pools.items()}
