from __future__ import annotations

import math
import random

import pytest

from relq.core.grammar import AGGREGATE_KINDS, WindowFunctionKind
from relq.engine.aggregates import (
    ExtremeAccumulator,
    accumulator_for,
    aggregate_frames,
    recompute,
    slide,
)


def _monotone_bounds(rng: random.Random, n: int) -> list[tuple[int, int]]:
    lo = hi = 0
    out = []
    for _ in range(n):
        lo = min(n, lo + rng.randint(0, 1))
        hi = min(n, max(hi, lo) + rng.randint(0, 2))
        out.append((lo, hi))
    return out


@pytest.mark.parametrize("kind", sorted(AGGREGATE_KINDS, key=lambda k: k.value))
def test_slide_matches_recompute(kind: WindowFunctionKind) -> None:
    rng = random.Random(616)
    for _ in range(25):
        n = rng.randint(0, 30)
        values = [None if rng.random() < 0.2 else rng.randint(-5, 5) for _ in range(n)]
        bounds = _monotone_bounds(rng, n)
        assert slide(values, bounds, accumulator_for(kind)) == recompute(
            values, bounds, lambda: accumulator_for(kind)
        )


def test_null_semantics() -> None:
    values = [None, None, 4]
    bounds = [(0, 1), (0, 2), (0, 3)]
    assert aggregate_frames(WindowFunctionKind.SUM, values, bounds) == [None, None, 4]
    assert aggregate_frames(WindowFunctionKind.COUNT, values, bounds) == [0, 0, 1]
    assert aggregate_frames(WindowFunctionKind.AVG, values, bounds) == [None, None, 4.0]


def test_max_deque_drops_dominated_values() -> None:
    acc = ExtremeAccumulator(maximum=True)
    for i, v in enumerate([1, 3, 2]):
        acc.add(i, v)
    assert [v for _, v in acc.window] == [3, 2]
    acc.remove(0, 1)
    assert acc.result() == 3
    acc.remove(1, 3)
    assert acc.result() == 2


def test_empty_frames_yield_null_or_zero() -> None:
    assert aggregate_frames(WindowFunctionKind.MIN, [1, 2], [(1, 0), (2, 2)]) == [None, None]
    assert aggregate_frames(WindowFunctionKind.COUNT, [1, 2], [(1, 1), (2, 2)]) == [0, 0]


def test_non_monotone_bounds_fall_back_to_recompute() -> None:
    values = [5, 1, 3]
    bounds = [(1, 3), (0, 1), (0, 3)]
    with pytest.raises(ValueError):
        slide(values, bounds, accumulator_for(WindowFunctionKind.SUM))
    assert aggregate_frames(WindowFunctionKind.SUM, values, bounds) == [4, 5, 9]


def test_accumulator_for_rejects_non_aggregates() -> None:
    with pytest.raises(ValueError):
        accumulator_for(WindowFunctionKind.RANK)


@pytest.mark.parametrize("kind", [WindowFunctionKind.SUM, WindowFunctionKind.AVG])
def test_float_slide_matches_exact_frame_sums(kind: WindowFunctionKind) -> None:
    rng = random.Random(2020)
    for _ in range(25):
        n = rng.randint(1, 30)
        values = [rng.choice([1e20, -1e20, 1e16, 0.1, 0.2, 0.3, rng.uniform(-1e3, 1e3)]) for _ in range(n)]
        bounds = _monotone_bounds(rng, n)
        slid = slide(values, bounds, accumulator_for(kind))
        assert slid == recompute(values, bounds, lambda: accumulator_for(kind))
        for (lo, hi), got in zip(bounds, slid):
            frame = values[lo:max(lo, hi)]
            if not frame:
                assert got is None
            elif kind is WindowFunctionKind.SUM:
                assert got == math.fsum(frame)


def test_float_sums_do_not_keep_rounding_error() -> None:
    bounds = [(0, 1), (0, 2), (1, 3)]
    assert aggregate_frames(WindowFunctionKind.SUM, [1e20, 1.0, 1.0], bounds) == [1e20, 1e20, 2.0]
    single = [(0, 1), (1, 2), (2, 3)]
    assert aggregate_frames(WindowFunctionKind.SUM, [0.1, 0.2, 0.3], single) == [0.1, 0.2, 0.3]
    assert aggregate_frames(WindowFunctionKind.AVG, [1e20, 1.0, 3.0], bounds) == [1e20, 5e19, 2.0]


def test_integer_sums_stay_integers() -> None:
    out = aggregate_frames(WindowFunctionKind.SUM, [2, 3, 4], [(0, 2), (1, 3)])
    assert out == [5, 7]
    assert all(type(v) is int for v in out)


def test_non_finite_floats() -> None:
    values = [math.inf, 1.0, -math.inf, 2.0]
    bounds = [(0, 1), (0, 2), (1, 3), (2, 4), (3, 4)]
    assert aggregate_frames(WindowFunctionKind.SUM, values, bounds) == [math.inf, math.inf, -math.inf, -math.inf, 2.0]
    assert math.isnan(aggregate_frames(WindowFunctionKind.SUM, values, [(0, 3)])[0])
    assert math.isnan(aggregate_frames(WindowFunctionKind.AVG, [1.0, math.nan], [(0, 2)])[0])
