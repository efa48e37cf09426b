r"""
bootci.utils
============
Numeric helpers shared by the bootstrap engine and the diagnostics.

The standard normal distribution comes from :data:`scipy.stats.norm`, which is
accurate to near machine precision over the whole real line, including the far
tails the BCa adjustment visits.
"""

from __future__ import annotations

import math

import numpy as np
from scipy.stats import norm
from scipy.stats import t as student_t

__all__ = [
    "normal_cdf",
    "normal_ppf",
    "z_crit",
    "t_crit",
    "round_half_up",
]


def normal_cdf(x: float) -> float:
    r"""
    Standard normal cumulative distribution :math:`\Phi(x)`.

    Infinite arguments are accepted: :math:`\Phi(-\infty) = 0`, :math:`\Phi(\infty) = 1`.

    Raises
    ------
    ValueError
        If ``x`` is NaN.
    """
    if math.isnan(x):
        raise ValueError("x is NaN")
    return float(norm.cdf(x))


def normal_ppf(p: float) -> float:
    r"""
    Standard normal quantile :math:`\Phi^{-1}(p)`.

    Saturates to :math:`\mp\infty` at ``p = 0`` and ``p = 1``.

    Raises
    ------
    ValueError
        If ``p`` is NaN or outside :math:`[0, 1]`.
    """
    if math.isnan(p) or not (0.0 <= p <= 1.0):
        raise ValueError(f"p = {p} is not a probability")
    return float(norm.ppf(p))


def z_crit(confidence: float) -> float:
    r"""
    Two-sided normal critical value :math:`z_{1-\alpha/2}` for ``confidence``.

    Examples
    --------
    >>> round(z_crit(0.95), 3)
    1.96
    """
    if not 0.0 < confidence < 1.0:
        raise ValueError("confidence must be in (0,1)")
    return float(norm.ppf(0.5 + confidence / 2.0))


def t_crit(confidence: float, df: int) -> float:
    r"""
    Two-sided Student-:math:`t` critical value with ``df`` degrees of freedom.
    """
    if not 0.0 < confidence < 1.0:
        raise ValueError("confidence must be in (0,1)")
    if df < 1:
        raise ValueError("df must be >= 1")
    return float(student_t.ppf(0.5 + confidence / 2.0, df))


def round_half_up(x: float | np.ndarray) -> int | np.ndarray:
    r"""
    Round to the nearest integer with halves going up (``floor(x + 0.5)``).

    Python's :func:`round` uses banker's rounding; resample indices are computed
    with the classic half-up convention instead.

    Examples
    --------
    >>> round_half_up(2.5), round_half_up(-2.5)
    (3, -2)
    """
    if isinstance(x, np.ndarray):
        return np.floor(x + 0.5).astype(np.int64)
    return int(math.floor(x + 0.5))
