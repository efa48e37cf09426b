r"""
bootci.bootstrap
================
Bootstrap confidence intervals for arbitrary estimators.

This module defines:

- :class:`CIMethod`: the interval flavor (percentile or BCa).
- :class:`BootstrapContext`: a typed, explicit configuration object for a run.
- :class:`Estimate`: an immutable point estimate with its confidence interval.
- :class:`Bootstrap`: the engine. Construction does all the work: it resamples
  the data, scores every estimator, and freezes one :class:`Estimate` per
  estimator for later queries.

Two interval methods are available. The percentile method reads the
:math:`\alpha/2` and :math:`1-\alpha/2` order statistics of the bootstrap
distribution. The bias-corrected and accelerated (BCa) method shifts those
percentiles by a bias term :math:`b` (from the share of resampled scores below
the point estimate) and an acceleration term :math:`a` (from the jackknife),
following Efron & Tibshirani, *An Introduction to the Bootstrap*, ch. 14.

See Also
--------
bootci.backends
    Strategies that decide where the resamples are scored.
bootci.diagnostics
    Coverage experiments and comparisons with exact intervals.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional, Union

import numpy as np

from . import descriptive
from .backends import BACKEND_NAMES, create_backend
from .estimators import DEFAULT_ESTIMATORS, Estimator, supports_batch
from .exceptions import InvalidStateError
from .utils import normal_cdf, normal_ppf, round_half_up

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

__all__ = [
    "CIMethod",
    "BootstrapContext",
    "Estimate",
    "Bootstrap",
]

# Bias proportion is kept off 0 and 1 so that b stays finite.
_PROP_EPS = 1e-12
# Largest leave-one-out matrix scored in one batch call.
_JACKKNIFE_CELLS = 2_000_000


class CIMethod(str, Enum):
    r"""
    Supported bootstrap confidence-interval flavors.

    Attributes
    ----------
    percentile : str
        Read the interval directly off the sorted bootstrap distribution.
    bca : str
        Use the bias-corrected and accelerated (BCa) adjustment.
    """

    percentile = "percentile"
    bca = "bca"


@dataclass
class BootstrapContext:
    r"""
    Shared, explicit configuration for a bootstrap run.

    Attributes
    ----------
    n_resamples : int, default 100_000
        Number of bootstrap resamples :math:`B`.
    confidence : float, default 0.95
        Confidence level in :math:`(0, 1)`.
    method : {"percentile", "bca"}, default "bca"
        Interval flavor.
    rng : int or numpy.random.SeedSequence, optional
        Seed for reproducibility. ``None`` draws fresh OS entropy.
    backend : {"sequential", "thread", "process"}, default "sequential"
        Where the resamples are scored.
    n_workers : int, optional
        Worker count for the parallel backends (defaults to the CPU count).
    block_size : int, default 5_000
        Resamples per block. Each block owns an independent RNG stream.

    Notes
    -----
    The context is immutable by convention at runtime; prefer :meth:`with_overrides`
    to construct a modified copy with a small set of changed fields.

    Examples
    --------
    >>> ctx = BootstrapContext(n_resamples=10_000, confidence=0.9, rng=42)
    >>> round(ctx.alpha, 2)
    0.1
    >>> ctx.with_overrides(method="percentile").method
    <CIMethod.percentile: 'percentile'>
    """

    n_resamples: int = 100_000
    confidence: float = 0.95
    method: CIMethod = CIMethod.bca
    rng: Optional[Union[int, np.random.SeedSequence]] = None
    backend: str = "sequential"
    n_workers: Optional[int] = None
    block_size: int = 5_000

    def with_overrides(self, **changes) -> "BootstrapContext":
        r"""
        Return a shallow copy with selected fields replaced.

        Parameters
        ----------
        **changes :
            Field overrides passed to :func:`dataclasses.replace`.

        Returns
        -------
        BootstrapContext
            Modified (and re-validated) copy.
        """
        return replace(self, **changes)

    @property
    def alpha(self) -> float:
        r"""Total tail probability :math:`\alpha = 1 - \text{confidence}`."""
        return 1.0 - self.confidence

    def get_seed_sequence(self) -> np.random.SeedSequence:
        r"""
        Return a fresh :class:`~numpy.random.SeedSequence` built from :attr:`rng`.

        A caller-supplied sequence is copied rather than spawned from, so the
        same context always reproduces the same resamples.
        """
        if isinstance(self.rng, np.random.SeedSequence):
            return np.random.SeedSequence(
                self.rng.entropy, spawn_key=self.rng.spawn_key, pool_size=self.rng.pool_size
            )
        if self.rng is None:
            return np.random.SeedSequence()
        return np.random.SeedSequence(int(self.rng))

    def __post_init__(self) -> None:
        r"""
        Validate field ranges.

        Raises
        ------
        ValueError
            If any field is outside its allowed range.
        """
        if isinstance(self.n_resamples, bool) or int(self.n_resamples) != self.n_resamples:
            raise ValueError("n_resamples must be an integer")
        if self.n_resamples < 1:
            raise ValueError("n_resamples must be > 0")
        if math.isnan(self.confidence) or not (0.0 < self.confidence < 1.0):
            raise ValueError("confidence must be in (0,1)")
        try:
            self.method = CIMethod(self.method)
        except ValueError:
            raise ValueError(f"method must be 'percentile' or 'bca', got '{self.method}'") from None
        if self.rng is not None and not isinstance(self.rng, (int, np.integer, np.random.SeedSequence)):
            raise ValueError("rng must be an int, a numpy SeedSequence or None")
        if isinstance(self.rng, (int, np.integer)) and self.rng < 0:
            raise ValueError("rng seed must be non-negative")
        if self.backend not in BACKEND_NAMES:
            raise ValueError(f"backend must be one of {BACKEND_NAMES}, got '{self.backend}'")
        if self.n_workers is not None and self.n_workers <= 0:
            raise ValueError("n_workers must be positive")
        if self.block_size <= 0:
            raise ValueError("block_size must be > 0")


@dataclass(frozen=True)
class Estimate:
    r"""
    A point estimate and its confidence interval.

    Attributes
    ----------
    point : float
        Estimator evaluated on the original sample.
    lower, upper : float
        Interval bounds. Both may be NaN together (no interval known), never
        just one of them.
    confidence : float
        Confidence level in :math:`(0, 1)`.

    Examples
    --------
    >>> e = Estimate(point=5.0, lower=4.0, upper=6.5, confidence=0.95)
    >>> e.width
    2.5
    >>> e.contains(6.0)
    True
    """

    point: float
    lower: float
    upper: float
    confidence: float = 0.95

    def __post_init__(self) -> None:
        if math.isnan(self.lower) != math.isnan(self.upper):
            raise ValueError("lower and upper must both be NaN or both be numbers")
        if self.lower > self.upper:
            raise ValueError(f"lower = {self.lower} > upper = {self.upper}")
        if math.isnan(self.confidence) or not (0.0 < self.confidence < 1.0):
            raise ValueError("confidence must be in (0,1)")

    @property
    def width(self) -> float:
        """``upper - lower`` (NaN when the bounds are unknown)."""
        return self.upper - self.lower

    def contains(self, value: float) -> bool:
        """True when ``lower <= value <= upper``."""
        if math.isnan(value):
            raise ValueError("value is NaN")
        return self.lower <= value <= self.upper

    def __str__(self) -> str:
        return f"{self.point:.6g} CI = [{self.lower:.6g}, {self.upper:.6g}]"


def _ensure_ctx(ctx: Any) -> BootstrapContext:
    """Accept a :class:`BootstrapContext`, a mapping of its fields, or ``None``."""
    if ctx is None:
        return BootstrapContext()
    if isinstance(ctx, BootstrapContext):
        return ctx
    if isinstance(ctx, Mapping):
        return BootstrapContext(**dict(ctx))
    raise TypeError("ctx must be a BootstrapContext, a mapping or None")


def _check_estimators(estimators: Iterable[Estimator]) -> tuple[Estimator, ...]:
    ests = tuple(estimators)
    if not ests:
        raise ValueError("at least one estimator is required")
    seen: set[str] = set()
    for est in ests:
        name = getattr(est, "name", None)
        if not isinstance(name, str) or not name.strip():
            raise ValueError(f"estimator {est!r} has a blank or missing name")
        if not callable(getattr(est, "calculate", None)):
            raise ValueError(f"estimator '{name}' has no calculate method")
        if name in seen:
            raise ValueError(f"duplicate estimator name '{name}'")
        seen.add(name)
    return ests


def _leave_one_out(n: int) -> np.ndarray:
    r"""Index matrix whose row ``i`` lists ``0..n-1`` without ``i``."""
    cols = np.arange(n - 1)[None, :]
    return cols + (cols >= np.arange(n)[:, None])


def _jackknife(estimator: Estimator, sample: np.ndarray) -> np.ndarray:
    r"""
    Leave-one-out values :math:`\hat\theta_{(i)}` of ``estimator`` on ``sample``.
    """
    n = sample.size
    if supports_batch(estimator) and n * (n - 1) <= _JACKKNIFE_CELLS:
        rows = sample[_leave_one_out(n)]
        rows.flags.writeable = False
        return np.asarray(estimator.calculate_batch(rows), dtype=float)  # type: ignore[attr-defined]
    out = np.empty(n, dtype=float)
    for i in range(n):
        held_out = np.delete(sample, i)
        held_out.flags.writeable = False
        out[i] = float(estimator.calculate(held_out))
    return out


def _acceleration(jack: np.ndarray) -> float:
    r"""
    Jackknife acceleration :math:`a = \sum d^3 / (6 (\sum d^2)^{3/2})`.

    Uses :math:`d_i = \bar\theta_{(\cdot)} - \hat\theta_{(i)}`. A zero spread
    gives :math:`a = 0`, i.e. a bias-corrected interval without acceleration.
    """
    if not np.all(np.isfinite(jack)):
        raise InvalidStateError("jackknife produced non-finite values")
    d = descriptive.mean(jack) - jack
    sum2 = math.fsum(d * d)
    if sum2 == 0.0:
        logger.debug("Zero jackknife spread; using a = 0")
        return 0.0
    return math.fsum(d * d * d) / (6.0 * sum2**1.5)


def _bca_proportion(b: float, a: float, z: float) -> float:
    r"""Adjusted percentile :math:`\Phi(b + (b+z)/(1 - a(b+z)))`."""
    num = b + z
    den = 1.0 - a * num
    if den <= 0.0:
        return 1.0 if num > 0.0 else 0.0
    return normal_cdf(b + num / den)


def _order_index(p: float, n_resamples: int) -> int:
    """Half-up rounded index ``p * B`` clamped into ``[0, B-1]``."""
    return min(max(round_half_up(p * n_resamples), 0), n_resamples - 1)


class Bootstrap:
    r"""
    Bootstrap confidence intervals for one sample and a set of estimators.

    All computation happens in the constructor; afterwards the object is an
    immutable store of :class:`Estimate` values that may be queried from any
    thread.

    Parameters
    ----------
    sample : array_like
        One-dimensional, non-empty, all finite. Copied on entry.
    n_resamples : int, optional
        Number of resamples :math:`B` (overrides ``ctx``).
    confidence : float, optional
        Confidence level in :math:`(0, 1)` (overrides ``ctx``).
    estimators : iterable of Estimator, optional
        Statistics to estimate; defaults to mean, median and sd.
    ctx : BootstrapContext or mapping, optional
        Full configuration. Keyword ``overrides`` replace its fields.
    progress_callback : callable, optional
        ``f(completed, total)`` called as resample blocks finish.
    **overrides :
        Any :class:`BootstrapContext` field (``method``, ``rng``, ``backend`` ...).

    Raises
    ------
    ValueError
        On an invalid sample, configuration or estimator set.
    InvalidStateError
        If an estimator yields NaN on the sample or a resample.

    Examples
    --------
    >>> x = np.random.default_rng(0).normal(5.0, 2.0, 200)
    >>> boot = Bootstrap(x, n_resamples=2_000, rng=42)
    >>> est = boot.get_estimate("mean")
    >>> est.lower <= est.point <= est.upper
    True
    """

    def __init__(
        self,
        sample: Any,
        n_resamples: Optional[int] = None,
        confidence: Optional[float] = None,
        estimators: Optional[Iterable[Estimator]] = None,
        *,
        ctx: Any = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
        **overrides: Any,
    ):
        if n_resamples is not None:
            overrides["n_resamples"] = n_resamples
        if confidence is not None:
            overrides["confidence"] = confidence
        base = _ensure_ctx(ctx)
        self._ctx = base.with_overrides(**overrides) if overrides else base

        arr = np.array(descriptive.check_numbers(sample), dtype=float, copy=True)
        arr.flags.writeable = False
        self._sample = arr
        self._estimators = _check_estimators(DEFAULT_ESTIMATORS if estimators is None else estimators)

        self._scores: dict[str, np.ndarray] = {}
        self._estimates: dict[str, Estimate] = {}
        self._run(progress_callback)

    # ------------------------------------------------------------------ #
    # computation
    # ------------------------------------------------------------------ #

    def _run(self, progress_callback: Optional[Callable[[int, int], None]]) -> None:
        ctx = self._ctx
        B = int(ctx.n_resamples)
        seed_seq = ctx.get_seed_sequence()
        backend = create_backend(ctx.backend, ctx.n_workers)
        logger.info(
            "Computing %d bootstrap resamples of %d values for %d estimators (%s backend)",
            B,
            self._sample.size,
            len(self._estimators),
            ctx.backend,
        )
        logger.debug("Seed entropy: %s", seed_seq.entropy)

        scores = backend.run(self._sample, self._estimators, B, seed_seq, ctx.block_size, progress_callback)

        logger.debug("Sorting bootstrap distributions")
        for est, row in zip(self._estimators, scores):
            if np.isnan(row).any():
                raise InvalidStateError(f"estimator '{est.name}' produced NaN on a resample")
            sorted_row = np.sort(row)
            sorted_row.flags.writeable = False
            self._scores[est.name] = sorted_row

        logger.debug("Calculating %s intervals", ctx.method.value)
        for est in self._estimators:
            self._estimates[est.name] = self._interval(est, self._scores[est.name])

    def _interval(self, estimator: Estimator, scores: np.ndarray) -> Estimate:
        point = float(estimator.calculate(self._sample))
        if math.isnan(point):
            raise InvalidStateError(f"estimator '{estimator.name}' produced NaN on the sample")
        conf = self._ctx.confidence
        B = scores.size

        if self._ctx.method == CIMethod.percentile:
            alpha = (1.0 - conf) / 2.0
            i_lo = _order_index(alpha, B)
            i_hi = _order_index(1.0 - alpha, B)
            return Estimate(point, float(scores[i_lo]), float(scores[i_hi]), conf)

        if self._sample.size == 1:
            return Estimate(point, point, point, conf)

        z1 = normal_ppf((1.0 - conf) / 2.0)
        z2 = -z1
        prop = int(np.count_nonzero(scores < point)) / B
        b = normal_ppf(min(max(prop, _PROP_EPS), 1.0 - _PROP_EPS))
        a = _acceleration(_jackknife(estimator, self._sample))
        logger.debug("BCa '%s': b = %.6g, a = %.6g", estimator.name, b, a)

        i_lo = _order_index(_bca_proportion(b, a, z1), B)
        i_hi = _order_index(_bca_proportion(b, a, z2), B)
        return Estimate(point, float(scores[i_lo]), float(scores[i_hi]), conf)

    # ------------------------------------------------------------------ #
    # queries
    # ------------------------------------------------------------------ #

    def get_estimate(self, estimator: Union[str, Estimator]) -> Estimate:
        r"""
        Return the :class:`Estimate` for an estimator or its name.

        Raises
        ------
        ValueError
            If no estimator of that name took part in the run.
        TypeError
            If ``estimator`` is neither a string nor has a ``name``.
        """
        if isinstance(estimator, str):
            name = estimator
        else:
            name = getattr(estimator, "name", None)
            if not isinstance(name, str):
                raise TypeError(f"expected an estimator or its name, got {type(estimator).__name__}")
        try:
            return self._estimates[name]
        except KeyError:
            raise ValueError(f"unknown estimator '{name}'") from None

    def resampled_scores(self, name: str) -> np.ndarray:
        """Sorted bootstrap distribution of estimator ``name`` (read-only)."""
        if name not in self._scores:
            raise ValueError(f"unknown estimator '{name}'")
        return self._scores[name]

    def __getitem__(self, estimator: Union[str, Estimator]) -> Estimate:
        return self.get_estimate(estimator)

    def __contains__(self, estimator: object) -> bool:
        name = estimator if isinstance(estimator, str) else getattr(estimator, "name", None)
        return name in self._estimates

    @property
    def estimates(self) -> dict[str, Estimate]:
        """Copy of the ``name -> Estimate`` mapping, in estimator order."""
        return dict(self._estimates)

    @property
    def estimator_names(self) -> tuple[str, ...]:
        return tuple(e.name for e in self._estimators)

    @property
    def sample(self) -> np.ndarray:
        """The original sample (read-only)."""
        return self._sample

    @property
    def n_resamples(self) -> int:
        return int(self._ctx.n_resamples)

    @property
    def confidence(self) -> float:
        return float(self._ctx.confidence)

    @property
    def method(self) -> CIMethod:
        return self._ctx.method

    @property
    def context(self) -> BootstrapContext:
        """Configuration the run used."""
        return self._ctx

    def summary(self) -> str:
        r"""
        Multi-line, human-readable report of every estimate.

        Examples
        --------
        >>> print(Bootstrap([1.0, 2.0, 3.0], n_resamples=100, rng=1).summary())  # doctest: +SKIP
        Bootstrap: n = 3, B = 100, 95% bca
          mean   2 CI = [1.33333, 2.66667]
          ...
        """
        width = max(len(n) for n in self.estimator_names)
        lines = [
            f"Bootstrap: n = {self._sample.size}, B = {self.n_resamples}, "
            f"{100.0 * self.confidence:g}% {self.method.value}"
        ]
        for name, est in self._estimates.items():
            lines.append(f"  {name.ljust(width)}  {est}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"Bootstrap(n={self._sample.size}, n_resamples={self.n_resamples}, "
            f"confidence={self.confidence}, method='{self.method.value}', "
            f"estimators={list(self.estimator_names)})"
        )
