r"""
bootci.bins
===========
Equal-width histogram binning used by the goodness-of-fit diagnostics.

:class:`Intervals` partitions :math:`[\text{begin}, \text{end}]` into ``number``
intervals of equal width

.. math::

   [b, b + w),\; [b + w, b + 2w),\; \ldots,\; [b + (n-1)w, e]

where only the last interval is closed on both ends, so the sample maximum is
always counted. :class:`Bins` assigns every value of a sample to one interval
and derives the normalised density ``count / total / width``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable

import numpy as np
from numpy.typing import ArrayLike

from . import descriptive
from .exceptions import InvalidStateError

__all__ = ["Intervals", "Bins"]


@dataclass(frozen=True)
class Intervals:
    r"""
    Partition of :math:`[\text{begin}, \text{end}]` into ``number`` equal-width intervals.

    Parameters
    ----------
    begin, end : float
        Finite bounds with ``begin < end``.
    number : int
        Positive interval count.

    Examples
    --------
    >>> iv = Intervals(1.0, 4.0, 2)
    >>> iv.width
    1.5
    >>> iv.index(4.0)
    1
    """

    begin: float
    end: float
    number: int

    def __post_init__(self) -> None:
        if not (math.isfinite(self.begin) and math.isfinite(self.end)):
            raise ValueError(f"begin = {self.begin} and end = {self.end} must be finite")
        if not self.begin < self.end:
            raise ValueError(f"begin = {self.begin} must be < end = {self.end}")
        if isinstance(self.number, bool) or int(self.number) != self.number or self.number <= 0:
            raise ValueError(f"number = {self.number} must be a positive integer")
        object.__setattr__(self, "number", int(self.number))
        if not (self.width > 0.0 and math.isfinite(self.width)):
            raise InvalidStateError(f"interval width {self.width} is not a positive number")

    @property
    def width(self) -> float:
        return (self.end - self.begin) / self.number

    @classmethod
    def from_width(cls, values: ArrayLike, offset: float, width: float) -> "Intervals":
        r"""
        Intervals of the given ``width`` aligned on ``offset + i * width``.

        The first boundary is the largest aligned point ``<= min(values)`` and the
        last the smallest aligned point ``>= max(values)``. When both coincide
        (all values sit on one boundary) a single interval is used.
        """
        if not math.isfinite(offset):
            raise ValueError(f"offset = {offset} must be finite")
        if not (math.isfinite(width) and width > 0.0):
            raise ValueError(f"width = {width} must be a positive number")
        lo, hi = descriptive.min_max(values)

        mark1 = math.floor((lo - offset) / width)
        mark2 = math.ceil((hi - offset) / width)
        if mark2 == mark1:
            mark2 = mark1 + 1
        begin = offset + mark1 * width
        end = offset + mark2 * width
        # offset + k * width can round one ulp past a value sitting on a boundary
        for _ in range(2):
            if begin > lo:
                mark1 -= 1
                begin = offset + mark1 * width
            if end < hi:
                mark2 += 1
                end = offset + mark2 * width
        if not (begin <= lo and hi <= end):
            raise InvalidStateError(
                f"aligned range [{begin}, {end}] does not cover [{lo}, {hi}] with width {width}"
            )
        return cls(begin, end, int(mark2 - mark1))

    @classmethod
    def spanning(cls, values: ArrayLike, number: int) -> "Intervals":
        """``number`` intervals from ``min(values)`` to ``max(values)``."""
        lo, hi = descriptive.min_max(values)
        return cls(lo, hi, number)

    def boundary(self, i: int) -> float:
        """Lower boundary of interval ``i``."""
        if not 0 <= i < self.number:
            raise ValueError(f"i = {i} is outside [0, {self.number})")
        return self.begin + i * self.width

    def boundaries(self) -> np.ndarray:
        """Lower boundaries of every interval."""
        return self.begin + np.arange(self.number) * self.width

    def index(self, value: float) -> int:
        r"""
        Index of the interval holding ``value``.

        Raises
        ------
        ValueError
            If ``value`` is not finite or lies outside :math:`[\text{begin}, \text{end}]`.
        InvalidStateError
            If rounding pushed the index past the last interval by more than one.
        """
        if not math.isfinite(value):
            raise ValueError(f"value = {value} must be finite")
        if not self.begin <= value <= self.end:
            raise ValueError(f"value = {value} is outside [{self.begin}, {self.end}]")
        return int(self._indices(np.array([value], dtype=float))[0])

    def _indices(self, values: np.ndarray) -> np.ndarray:
        idx = np.floor((values - self.begin) / self.width).astype(np.int64)
        # the closed last interval and floating point error both land on `number`
        idx[idx == self.number] = self.number - 1
        if (idx > self.number).any():
            raise InvalidStateError(f"bin index {idx.max()} exceeds {self.number - 1}; {self}")
        return idx


class Bins:
    r"""
    Occupancy counts of a sample over equal-width :class:`Intervals`.

    Use one of the constructors:

    - :meth:`with_width`: explicit width aligned on an offset
    - :meth:`spanning`: a given number of intervals from min to max
    - :meth:`between`: explicit ``[begin, end]`` and count

    Examples
    --------
    >>> bins = Bins.with_width(np.arange(0.0, 101.0, 10.0), offset=0.0, width=10.0)
    >>> bins.counts.tolist()
    [1, 1, 1, 1, 1, 1, 1, 1, 1, 2]
    """

    def __init__(self, values: ArrayLike, intervals: Intervals):
        arr = descriptive.check_numbers(values)
        lo, hi = float(arr.min()), float(arr.max())
        if lo < intervals.begin or hi > intervals.end:
            raise ValueError(
                f"values span [{lo}, {hi}], outside the intervals [{intervals.begin}, {intervals.end}]"
            )
        self.intervals = intervals
        self.bounds = intervals.boundaries()
        self.counts = np.bincount(intervals._indices(arr), minlength=intervals.number).astype(np.int64)
        self.bounds.flags.writeable = False
        self.counts.flags.writeable = False

    @classmethod
    def with_width(cls, values: ArrayLike, offset: float, width: float) -> "Bins":
        return cls(values, Intervals.from_width(values, offset, width))

    @classmethod
    def spanning(cls, values: ArrayLike, number: int) -> "Bins":
        return cls(values, Intervals.spanning(values, number))

    @classmethod
    def between(cls, values: ArrayLike, begin: float, end: float, number: int) -> "Bins":
        return cls(values, Intervals(begin, end, number))

    @property
    def width(self) -> float:
        return self.intervals.width

    @property
    def bounds_mid(self) -> np.ndarray:
        """Midpoint of every interval."""
        return self.bounds + self.width / 2.0

    @property
    def count_total(self) -> int:
        return int(self.counts.sum())

    @property
    def pdf(self) -> np.ndarray:
        r"""Observed density :math:`c_i / N / w`; integrates to one over the intervals."""
        return self.counts / self.count_total / self.width

    def theory_pdf(self, cdf: Callable[[np.ndarray], np.ndarray]) -> np.ndarray:
        r"""
        Expected density per interval under a distribution with the given ``cdf``.

        Uses the exact interval probability :math:`(F(x + w) - F(x)) / w` rather than
        the density at the midpoint, so it compares directly with :attr:`pdf`.
        """
        lo = np.asarray(cdf(self.bounds), dtype=float)
        hi = np.asarray(cdf(self.bounds + self.width), dtype=float)
        return (hi - lo) / self.width

    def __str__(self) -> str:
        iv = self.intervals
        return "\n".join(
            [
                f"intervals = begin {iv.begin}, end {iv.end}, number {iv.number}, width {iv.width}",
                f"bounds = {np.array2string(self.bounds, separator=', ')}",
                f"bounds_mid = {np.array2string(self.bounds_mid, separator=', ')}",
                f"count_total = {self.count_total}",
                f"counts = {np.array2string(self.counts, separator=', ')}",
                f"pdf = {np.array2string(self.pdf, separator=', ')}",
            ]
        )
