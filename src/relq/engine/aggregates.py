"""
Frame accumulators for windowed aggregates.

Overview
- Each accumulator keeps a running aggregate that rows enter (``add``) as the frame
  end advances and leave (``remove``) as the frame start advances.
- ``slide()`` drives an accumulator over per-row half-open frame bounds. When both
  bounds are non-decreasing (always true for ROWS and RANGE frames over an arranged
  partition) total cost is linear in the partition size.
- ``recompute()`` evaluates every frame from scratch. It is the fallback when bounds
  are not monotone and the reference that ``slide()`` must agree with.

Null handling (SQL semantics)
- Nulls never contribute to sum/avg/min/max and are not counted by COUNT(column).
- COUNT(*) counts every row (callers pass a non-null marker per row).
- sum/avg/min/max of a frame with no non-null values is None; count is 0.

Notes
- MIN/MAX use a monotonic deque: values that can never again be the extreme are
  discarded on insert, so removals only ever touch the deque's head.
- SUM/AVG over floats are exact until result(), which rounds once; integer sums stay
  integers.
"""

from __future__ import annotations

import math
from collections import Counter, deque
from collections.abc import Callable, Sequence
from fractions import Fraction
from typing import Any

from ..core.grammar import WindowFunctionKind
from ..core.typing import Scalar
from .arrange import sort_value

__all__ = [
    "Accumulator",
    "SumAccumulator",
    "CountAccumulator",
    "AvgAccumulator",
    "ExtremeAccumulator",
    "accumulator_for",
    "slide",
    "recompute",
    "aggregate_frames",
]


class Accumulator:
    """Base running aggregate; subclasses override add/remove/result."""

    def add(self, index: int, value: Scalar) -> None:
        raise NotImplementedError

    def remove(self, index: int, value: Scalar) -> None:
        raise NotImplementedError

    def result(self) -> Any:
        raise NotImplementedError


class SumAccumulator(Accumulator):
    """
    Running SUM.

    Float inputs are held as exact fractions and rounded once in result(), so sliding
    a frame gives the same value as summing it from scratch. Non-finite floats are
    counted apart and decide the result when present.
    """

    def __init__(self) -> None:
        self.total: int | Fraction = 0
        self.count = 0
        self.floats = 0
        self.nonfinite: Counter[str] = Counter()

    def _apply(self, value: Scalar, sign: int) -> None:
        if isinstance(value, float):
            self.floats += sign
            if not math.isfinite(value):
                self.nonfinite[repr(value)] += sign
                return
            value = Fraction(value)
        self.total += sign * value  # type: ignore[operator]

    def add(self, index: int, value: Scalar) -> None:
        if value is not None:
            self._apply(value, 1)
            self.count += 1

    def remove(self, index: int, value: Scalar) -> None:
        if value is not None:
            self._apply(value, -1)
            self.count -= 1

    def _special(self) -> float | None:
        if self.nonfinite["nan"] or (self.nonfinite["inf"] and self.nonfinite["-inf"]):
            return math.nan
        if self.nonfinite["inf"]:
            return math.inf
        if self.nonfinite["-inf"]:
            return -math.inf
        return None

    def result(self) -> Any:
        if not self.count:
            return None
        if not self.floats:
            return int(self.total)
        special = self._special()
        return float(self.total) if special is None else special


class CountAccumulator(Accumulator):
    def __init__(self) -> None:
        self.count = 0

    def add(self, index: int, value: Scalar) -> None:
        if value is not None:
            self.count += 1

    def remove(self, index: int, value: Scalar) -> None:
        if value is not None:
            self.count -= 1

    def result(self) -> Any:
        return self.count


class AvgAccumulator(SumAccumulator):
    def result(self) -> Any:
        if not self.count:
            return None
        special = self._special() if self.floats else None
        if special is not None:
            return special
        return float(Fraction(self.total) / self.count)


class ExtremeAccumulator(Accumulator):
    """
    Sliding MIN (or MAX) over a monotone window.

    Invariant: deque values are strictly increasing (MIN) or strictly decreasing (MAX)
    from head to tail, and indices increase; the head is the current extreme.
    """

    def __init__(self, *, maximum: bool) -> None:
        self.maximum = maximum
        self.window: deque[tuple[int, Any]] = deque()

    def _dominates(self, new: Any, old: Any) -> bool:
        new, old = sort_value(new), sort_value(old)
        return new >= old if self.maximum else new <= old

    def add(self, index: int, value: Scalar) -> None:
        if value is None:
            return
        while self.window and self._dominates(value, self.window[-1][1]):
            self.window.pop()
        self.window.append((index, value))

    def remove(self, index: int, value: Scalar) -> None:
        if self.window and self.window[0][0] == index:
            self.window.popleft()

    def result(self) -> Any:
        return self.window[0][1] if self.window else None


_FACTORIES: dict[WindowFunctionKind, Callable[[], Accumulator]] = {
    WindowFunctionKind.SUM: SumAccumulator,
    WindowFunctionKind.COUNT: CountAccumulator,
    WindowFunctionKind.AVG: AvgAccumulator,
    WindowFunctionKind.MIN: lambda: ExtremeAccumulator(maximum=False),
    WindowFunctionKind.MAX: lambda: ExtremeAccumulator(maximum=True),
}


def accumulator_for(kind: WindowFunctionKind) -> Accumulator:
    """Return a fresh accumulator for an aggregate kind."""
    try:
        return _FACTORIES[kind]()
    except KeyError:
        raise ValueError(f"{kind.value} is not an aggregate") from None


def _is_monotone(bounds: Sequence[tuple[int, int]]) -> bool:
    prev_lo, prev_hi = 0, 0
    for lo, hi in bounds:
        hi = max(lo, hi)
        if lo < prev_lo or hi < prev_hi:
            return False
        prev_lo, prev_hi = lo, hi
    return True


def slide(
    values: Sequence[Scalar],
    bounds: Sequence[tuple[int, int]],
    acc: Accumulator,
) -> list[Any]:
    """
    Evaluate one aggregate per row by sliding a single accumulator.

    Args:
        values (Sequence[Scalar]): Aggregated values in arrangement order.
        bounds (Sequence[tuple[int, int]]): Half-open [lo, hi) frame per row; both ends
            must be non-decreasing. A frame with hi <= lo is empty.
        acc (Accumulator): Fresh accumulator.

    Returns:
        list[Any]: acc.result() for every row's frame.

    Raises:
        ValueError: If the bounds are not monotone.
    """
    out: list[Any] = []
    added = 0
    removed = 0
    for lo, hi in bounds:
        hi = max(hi, lo)
        if lo < removed or hi < added:
            raise ValueError("frame bounds must be non-decreasing to slide")
        while added < hi:
            acc.add(added, values[added])
            added += 1
        while removed < lo:
            acc.remove(removed, values[removed])
            removed += 1
        out.append(acc.result())
    return out


def recompute(
    values: Sequence[Scalar],
    bounds: Sequence[tuple[int, int]],
    factory: Callable[[], Accumulator],
) -> list[Any]:
    """Evaluate every frame from scratch (O(rows x frame width))."""
    out: list[Any] = []
    for lo, hi in bounds:
        acc = factory()
        for i in range(lo, max(lo, hi)):
            acc.add(i, values[i])
        out.append(acc.result())
    return out


def aggregate_frames(
    kind: WindowFunctionKind,
    values: Sequence[Scalar],
    bounds: Sequence[tuple[int, int]],
) -> list[Any]:
    """
    Aggregate values over per-row frames, sliding when the bounds allow it.

    Examples:
        >>> from relq.core.grammar import WindowFunctionKind as K
        >>> aggregate_frames(K.SUM, [1, 2, 3, 4], [(0, 1), (0, 2), (1, 3), (2, 4)])
        [1, 3, 5, 7]
        >>> aggregate_frames(K.MAX, [3, None, 1], [(0, 2), (1, 3), (2, 3)])
        [3, 1, 1]
    """
    if _is_monotone(bounds):
        return slide(values, bounds, accumulator_for(kind))
    return recompute(values, bounds, lambda: accumulator_for(kind))
