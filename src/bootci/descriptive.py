r"""
bootci.descriptive
==================
Descriptive statistics primitives used by the estimators and the bootstrap engine.

This module defines:

- input validation: :func:`check_numbers`
- location and spread: :func:`mean`, :func:`sst`, :func:`variance`, :func:`sd`
- order statistics: :func:`quantile`, :func:`median`, :func:`min_max`
- serial correlation: :func:`autocovariance`, :func:`autocorrelation`
- row-wise variants (:func:`mean_rows`, :func:`sst_rows`, :func:`quantile_rows`)
  that score many bootstrap resamples in one vectorised call.

All functions accept any 1-D sequence that :func:`numpy.asarray` converts to
floats. Invalid input raises :class:`ValueError`; results that a correct
computation can never produce raise :class:`~bootci.exceptions.InvalidStateError`.

Notes
-----
The sum of squares uses the compensated two-pass algorithm

.. math::
   \mathrm{SST} = \sum_i (x_i - m)^2 - \frac{1}{n}\Big(\sum_i (x_i - m)\Big)^2,

whose second term cancels most of the rounding error in :math:`m`.
"""

from __future__ import annotations

import math
from typing import NamedTuple, Optional, Sequence, Union

import numpy as np

from .exceptions import InvalidStateError

__all__ = [
    "check_numbers",
    "total",
    "min_max",
    "mean",
    "sst",
    "variance",
    "sd",
    "quantile",
    "median",
    "autocovariance",
    "autocorrelation",
    "Autocorrelation",
    "mean_rows",
    "sst_rows",
    "quantile_rows",
]

ArrayLike = Union[Sequence[float], np.ndarray]

# Relative size of a negative SST that is still attributed to rounding.
_SST_ROUNDING_RTOL = 1e-12

# Two-sided 95% normal critical value used for the autocorrelation band.
_Z_95 = 1.96


def check_numbers(numbers: ArrayLike, infinity_bad: bool = True) -> np.ndarray:
    r"""
    Validate ``numbers`` and return it as a 1-D float array.

    Parameters
    ----------
    numbers : sequence of float
        Values to check.
    infinity_bad : bool, default True
        Also reject infinite elements.

    Returns
    -------
    ndarray
        ``numbers`` converted with :func:`numpy.asarray` (no copy when already a
        float array).

    Raises
    ------
    ValueError
        If ``numbers`` is not 1-D, is empty, or has a NaN (or infinite) element.
    """
    arr = np.asarray(numbers, dtype=float)
    if arr.ndim != 1:
        raise ValueError(f"numbers must be 1-D, got shape {arr.shape}")
    if arr.size == 0:
        raise ValueError("numbers is empty")
    bad = np.isnan(arr) if not infinity_bad else ~np.isfinite(arr)
    if bad.any():
        i = int(np.flatnonzero(bad)[0])
        raise ValueError(f"numbers[{i}] = {arr[i]} is not allowed")
    return arr


def total(numbers: ArrayLike) -> float:
    """Correctly rounded sum of ``numbers`` (:func:`math.fsum`)."""
    arr = check_numbers(numbers)
    return math.fsum(arr)


def min_max(numbers: ArrayLike) -> tuple[float, float]:
    r"""
    Smallest and largest element of ``numbers`` in a single call.

    Raises
    ------
    ValueError
        If ``numbers`` is empty or contains NaN.
    """
    arr = check_numbers(numbers, infinity_bad=False)
    return float(arr.min()), float(arr.max())


def mean(numbers: ArrayLike) -> float:
    r"""
    Arithmetic mean :math:`\bar x = \frac{1}{n}\sum_i x_i`.

    The sum is accumulated with :func:`math.fsum` and the quotient is refined once
    with the mean of the residuals, so a constant sequence returns its value
    exactly.

    Returns
    -------
    float
        Never NaN; infinite only when the sum overflows.

    Raises
    ------
    ValueError
        If ``numbers`` is empty or contains a non-finite value.

    Examples
    --------
    >>> mean([47, 64, 23, 71, 38, 64, 55, 41, 59, 48])
    51.0
    """
    arr = check_numbers(numbers)
    n = arr.size
    try:
        result = math.fsum(arr) / n
    except OverflowError:
        with np.errstate(over="ignore"):
            result = float(np.sum(arr)) / n
    if math.isfinite(result):
        with np.errstate(over="ignore", invalid="ignore"):
            correction = math.fsum(arr - result) / n
        if math.isfinite(correction):
            result += correction
    if math.isnan(result):
        raise InvalidStateError("calculated a NaN mean from finite values; this should never happen")
    return result


def sst(numbers: ArrayLike, mean_value: Optional[float] = None) -> float:
    r"""
    Total sum of squares about ``mean_value`` using compensated summation.

    Parameters
    ----------
    numbers : sequence of float
        Sample values.
    mean_value : float, optional
        Mean to measure deviations from; computed with :func:`mean` when omitted.

    Returns
    -------
    float
        :math:`\ge 0`, possibly ``inf``; never NaN.

    Raises
    ------
    ValueError
        If ``numbers`` is invalid or ``mean_value`` is NaN.
    InvalidStateError
        If the result is negative beyond rounding error or NaN.
    """
    arr = check_numbers(numbers)
    if mean_value is None:
        mean_value = mean(arr)
    elif math.isnan(mean_value):
        raise ValueError("mean is NaN")
    diff = arr - mean_value
    sum2 = float(np.dot(diff, diff))
    sumc = float(diff.sum())
    result = sum2 - (sumc * sumc / arr.size)
    if math.isnan(result):
        raise InvalidStateError("calculated a NaN sum of squares from finite values")
    if result < 0:
        if result >= -_SST_ROUNDING_RTOL * sum2:
            return 0.0
        raise InvalidStateError(f"calculated sst = {result} < 0; this should never happen")
    return result


def variance(numbers: ArrayLike, mean_value: Optional[float] = None, biased: bool = True) -> float:
    r"""
    Sample variance.

    ``biased=True`` (the default) divides by :math:`n`, which has the lower
    mean squared error. ``biased=False`` divides by :math:`n-1`, the form that
    classical Student-:math:`t` and chi-square interval theory expects.

    Raises
    ------
    ValueError
        If ``numbers`` is invalid, or ``biased=False`` with a single value.
    """
    arr = check_numbers(numbers)
    n = arr.size
    if not biased and n < 2:
        raise ValueError("the unbiased variance needs at least 2 values")
    denominator = n if biased else n - 1
    return sst(arr, mean_value) / denominator


def sd(numbers: ArrayLike, mean_value: Optional[float] = None, biased: bool = True) -> float:
    """Standard deviation, the square root of :func:`variance`."""
    return math.sqrt(variance(numbers, mean_value, biased))


def quantile(sorted_numbers: ArrayLike, k: int, q: int) -> float:
    r"""
    The ``k``-th ``q``-quantile of an ascending sample.

    Uses the weighted-average (linear interpolation) estimator: with
    :math:`h = (n-1)k/q`, :math:`j = \lfloor h \rfloor`,

    .. math::
       Q = x_{(j)} + (h - j)\,(x_{(j+1)} - x_{(j)}).

    A single-element sample returns its element for any ``k`` and ``q``.

    Parameters
    ----------
    sorted_numbers : sequence of float
        Sample sorted ascending. The function checks the order but never sorts.
    k, q : int
        Requires ``1 <= k < q`` and ``q >= 2``.

    Raises
    ------
    ValueError
        If the sample is empty, contains NaN, is unsorted, or ``k``/``q`` are invalid.

    Examples
    --------
    >>> quantile([1.0, 2.0, 3.0, 4.0], 1, 4)
    1.75
    """
    arr = check_numbers(sorted_numbers, infinity_bad=False)
    if arr.size > 1:
        bad = np.flatnonzero(arr[1:] < arr[:-1])
        if bad.size:
            i = int(bad[0])
            raise ValueError(f"sort failure: numbers[{i}] = {arr[i]} > numbers[{i + 1}] = {arr[i + 1]}")
    if k < 1:
        raise ValueError(f"k = {k} < 1")
    if q < 2:
        raise ValueError(f"q = {q} < 2")
    if k >= q:
        raise ValueError(f"k = {k} >= q = {q}")

    if arr.size == 1:
        return float(arr[0])

    index = (arr.size - 1) * (k / q)
    j = int(math.floor(index))
    g = index - j
    if g == 0.0:
        return float(arr[j])
    return float(arr[j] + g * (arr[j + 1] - arr[j]))


def median(sorted_numbers: ArrayLike) -> float:
    """Median of an ascending sample; identical to ``quantile(sorted_numbers, 1, 2)``."""
    return quantile(sorted_numbers, 1, 2)


def autocovariance(numbers: ArrayLike) -> np.ndarray:
    r"""
    Biased autocovariance function for lags :math:`0, \dots, n-2`.

    .. math::
       c_k = \frac{1}{n}\sum_{i=0}^{n-k-1} (x_i - \bar x)(x_{i+k} - \bar x).

    Only roughly the first :math:`n/4` lags are trustworthy, and series shorter
    than about 50 values give unreliable estimates; neither condition is checked.

    Raises
    ------
    ValueError
        If ``numbers`` has fewer than 2 values or non-finite values.
    InvalidStateError
        If any lag evaluates to a non-finite value.
    """
    arr = check_numbers(numbers)
    n = arr.size
    if n < 2:
        raise ValueError("autocovariance needs at least 2 values")
    d = arr - mean(arr)
    c = np.empty(n - 1, dtype=float)
    for k in range(n - 1):
        c[k] = float(np.dot(d[: n - k], d[k:])) / n
    if not np.isfinite(c).all():
        k = int(np.flatnonzero(~np.isfinite(c))[0])
        raise InvalidStateError(f"c[{k}] is {c[k]}")
    return c


class Autocorrelation(NamedTuple):
    r"""
    Autocorrelation function with its approximate 95% band.

    Attributes
    ----------
    acf : ndarray
        :math:`r_k = c_k / c_0` (``acf[0] == 1``).
    lower, upper : ndarray
        Band :math:`-1/n \pm 1.96\,\mathrm{se}_k` using the large-lag standard
        error; both equal 1 at lag 0.
    """

    acf: np.ndarray
    lower: np.ndarray
    upper: np.ndarray


def autocorrelation(numbers: ArrayLike) -> Autocorrelation:
    r"""
    Autocorrelation function of ``numbers`` with large-lag confidence bands.

    The large-lag standard error assumes a stationary Gaussian series:

    .. math::
       \mathrm{se}_k = \sqrt{\frac{1}{n}\Big(1 + 2\sum_{i=1}^{k-1} r_i^2\Big)}.

    Raises
    ------
    ValueError
        If ``numbers`` has fewer than 2 values or non-finite values.
    InvalidStateError
        If the series is constant (zero variance) or a result is non-finite.
    """
    c = autocovariance(numbers)
    n = c.size + 1
    with np.errstate(divide="ignore", invalid="ignore"):
        r = c / c[0]
    if not np.isfinite(r).all():
        raise InvalidStateError(f"autocorrelation is undefined (c[0] = {c[0]})")
    r[0] = 1.0

    sq = r * r
    sq[0] = 0.0
    cum = np.cumsum(sq)
    llse = np.zeros_like(r)
    llse[1:] = np.sqrt((1.0 + 2.0 * cum[:-1]) / n)

    mean_r = -1.0 / n
    lower = mean_r - _Z_95 * llse
    upper = mean_r + _Z_95 * llse
    lower[0] = upper[0] = 1.0
    return Autocorrelation(r, lower, upper)


# ---------------------------------------------------------------------------
# Row-wise variants: each row of a 2-D array is one resample.
# ---------------------------------------------------------------------------


def mean_rows(rows: np.ndarray) -> np.ndarray:
    """Mean of every row, with the same residual correction as :func:`mean`."""
    m = rows.mean(axis=1)
    return m + (rows - m[:, None]).mean(axis=1)


def sst_rows(rows: np.ndarray, means: Optional[np.ndarray] = None) -> np.ndarray:
    """Compensated sum of squares of every row (see :func:`sst`)."""
    if means is None:
        means = mean_rows(rows)
    diff = rows - means[:, None]
    sum2 = np.einsum("ij,ij->i", diff, diff)
    sumc = diff.sum(axis=1)
    out = sum2 - sumc * sumc / rows.shape[1]
    tiny = (out < 0) & (out >= -_SST_ROUNDING_RTOL * sum2)
    out[tiny] = 0.0
    if (out < 0).any():
        raise InvalidStateError(f"calculated sst = {out.min()} < 0; this should never happen")
    return out


def quantile_rows(sorted_rows: np.ndarray, k: int, q: int) -> np.ndarray:
    """:func:`quantile` of every row of an array whose rows are sorted ascending."""
    if k < 1 or q < 2 or k >= q:
        raise ValueError(f"invalid quantile k = {k}, q = {q}")
    n = sorted_rows.shape[1]
    if n == 1:
        return sorted_rows[:, 0].copy()
    index = (n - 1) * (k / q)
    j = int(math.floor(index))
    g = index - j
    if g == 0.0:
        return sorted_rows[:, j].copy()
    return sorted_rows[:, j] + g * (sorted_rows[:, j + 1] - sorted_rows[:, j])
