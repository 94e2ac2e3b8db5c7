import random

import pytest

from seatmap.segmentation.candidates import Candidate
from seatmap.segmentation.refiner import (
    RefinerConfig,
    assign_ids,
    reading_order,
    refine,
    refine_with_scores,
    score_candidates,
    select_strategy,
)


def _grid(rows: int = 5, cols: int = 8, spacing: int = 100, origin: int = 200):
    return [
        Candidate(x=float(origin + c * spacing), y=float(origin + r * spacing))
        for r in range(rows)
        for c in range(cols)
    ]


def _outliers(count: int, seed: int):
    # Off the grid's rows and columns. Points between grid seats can outscore
    # border seats, so removal order is only asserted for these.
    rng = random.Random(seed)
    return [
        Candidate(x=float(rng.randint(1300, 2500)), y=float(rng.randint(1000, 2200)))
        for _ in range(count)
    ]


@pytest.mark.parametrize("seed", [1, 7, 42])
def test_refine_converges_on_capacity_and_drops_outliers(seed: int) -> None:
    grid = _grid()
    outliers = _outliers(5, seed)

    result = refine_with_scores(grid + outliers, capacity=40)

    assert len(result.kept) == 40
    assert {(c.x, c.y) for c in result.kept} == {(c.x, c.y) for c in grid}
    assert {(c.x, c.y) for c in result.removed} == {(c.x, c.y) for c in outliers}
    assert result.median_pitch == pytest.approx(100.0)


def test_refine_on_exact_match_is_identity() -> None:
    grid = _grid()
    refined = refine(grid, capacity=40)
    assert sorted((c.x, c.y) for c in refined) == sorted((c.x, c.y) for c in grid)


def test_refine_never_fabricates_seats() -> None:
    grid = _grid(rows=2, cols=5)
    assert len(refine(grid, capacity=20)) == 10


@pytest.mark.parametrize("capacity", [None, 0])
def test_unknown_capacity_returns_pool(capacity) -> None:
    pool = _grid() + _outliers(3, 3)
    assert len(refine(pool, capacity=capacity)) == 43


def test_misaligned_point_is_removed_first() -> None:
    grid = _grid(rows=3, cols=4)
    # off-pitch and in no row of the grid
    intruder = Candidate(x=215.0, y=245.0)
    refined = refine(grid + [intruder], capacity=12)
    assert intruder not in refined
    assert len(refined) == 12


def test_lone_point_scores_isolated() -> None:
    scores, pitch = score_candidates([Candidate(x=10.0, y=10.0)])
    assert scores.tolist() == [RefinerConfig().isolated_score]
    assert pitch == 80.0


def test_support_adds_capped_bonus() -> None:
    plain = [Candidate(x=float(x), y=100.0) for x in (100, 200, 300)]
    backed = [plain[0], Candidate(x=200.0, y=100.0, support=10), plain[2]]
    base, _ = score_candidates(plain)
    boosted, _ = score_candidates(backed)
    assert boosted[1] - base[1] == pytest.approx(4.0)


def test_reading_order_example() -> None:
    seats = assign_ids(
        [Candidate(x=15.0, y=300.0), Candidate(x=200.0, y=102.0), Candidate(x=10.0, y=100.0)],
        row_tolerance=35,
    )
    assert [(s.id, s.x, s.y) for s in seats] == [("1", 10, 100), ("2", 200, 102), ("3", 15, 300)]


def test_rows_group_by_first_point_of_row() -> None:
    points = [Candidate(x=100.0, y=100.0), Candidate(x=50.0, y=130.0), Candidate(x=10.0, y=160.0)]
    ordered = reading_order(points, row_tolerance=35)
    # 160 is within 35 of 130 but not of the row anchor at 100
    assert [(c.x, c.y) for c in ordered] == [(50.0, 130.0), (100.0, 100.0), (10.0, 160.0)]


def test_assign_ids_rounds_and_clamps() -> None:
    seats = assign_ids([Candidate(x=99.6, y=49.4), Candidate(x=-2.0, y=10.0)], 35, width=100, height=50)
    assert [(s.x, s.y) for s in seats] == [(0, 10), (99, 49)]


def test_select_strategy_closest_with_order_ties() -> None:
    pools = {
        "ocr": [Candidate(x=float(i), y=0.0) for i in range(38)],
        "blob": [Candidate(x=float(i), y=0.0) for i in range(42)],
        "union": [Candidate(x=float(i), y=0.0) for i in range(50)],
    }
    assert select_strategy(pools, 40) == "ocr"
    assert select_strategy(pools, 41) == "blob"
    assert select_strategy(pools, 47) == "union"
    assert select_strategy(pools, 40, policy="union") == "union"
    assert select_strategy(pools, None) == "union"


def test_select_strategy_rejects_unknown_policy() -> None:
    with pytest.raises(ValueError):
        select_strategy({"blob": []}, 10, policy="largest")
