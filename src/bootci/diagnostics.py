r"""
bootci.diagnostics
==================
Empirical checks of bootstrap confidence intervals against known distributions.

This module defines:

- :class:`Distribution` and three reference populations
  (:class:`GaussianStandard`, :class:`CauchyStandard`, :class:`ExponentialStandard`)
  with their true parameters and, where theory provides one, an exact interval.
- :func:`determine_coverage`: repeat the bootstrap on fresh samples and count how
  often each interval contains the true value.
- :func:`compare_with_theory`: measure how much the bootstrap and exact intervals
  overlap.
- :func:`precision_of_coverage`: how many trials a coverage estimate needs.
- :func:`gaussian_fit`: normality statistics and a histogram against the normal
  density, e.g. for inspecting a bootstrap distribution.
"""

from __future__ import annotations

import logging
import math
import warnings
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence, Union

import numpy as np
from numpy.typing import ArrayLike
from scipy.stats import anderson, binom, chi2, kstest, norm

from . import descriptive
from .bins import Bins
from .bootstrap import Bootstrap, CIMethod, Estimate
from .estimators import DEFAULT_ESTIMATORS, Estimator, EstimatorKind, estimator_kind
from .utils import t_crit

logger = logging.getLogger(__name__)

__all__ = [
    "Distribution",
    "GaussianStandard",
    "CauchyStandard",
    "ExponentialStandard",
    "CoverageMetrics",
    "TheoryComparison",
    "determine_coverage",
    "compare_with_theory",
    "precision_of_coverage",
    "GaussianFit",
    "gaussian_fit",
]

_NAN_PAIR = (math.nan, math.nan)


# ---------------------------------------------------------------------------
# Reference distributions
# ---------------------------------------------------------------------------


class Distribution(ABC):
    r"""
    A population with known parameters used to test interval coverage.

    Subclasses provide :meth:`generate`, the true ``mean``/``median``/``sd``
    (NaN when undefined) and optionally exact intervals for the mean and sd.
    The median interval is distribution-free and shared by all subclasses.
    """

    name: str = "distribution"
    mean: float = math.nan
    median: float = math.nan
    sd: float = math.nan

    @abstractmethod
    def generate(self, n: int, rng: np.random.Generator) -> np.ndarray:
        """Draw ``n`` independent values."""

    def true_value(self, kind: Union[EstimatorKind, str]) -> float:
        """True population value for an estimator kind; NaN for custom estimators."""
        kind = EstimatorKind(kind)
        if kind == EstimatorKind.mean:
            return self.mean
        if kind == EstimatorKind.median:
            return self.median
        if kind == EstimatorKind.sd:
            return self.sd
        return math.nan

    def theory_estimate(self, kind: Union[EstimatorKind, str], sample: ArrayLike, confidence: float) -> Estimate:
        r"""
        Exact confidence interval for ``kind`` computed from ``sample``.

        The bounds are NaN when no theory is available (undefined parameter,
        custom estimator, or a sample too small for the formula).
        """
        kind = EstimatorKind(kind)
        arr = descriptive.check_numbers(sample)
        if kind == EstimatorKind.mean:
            point = descriptive.mean(arr)
            lower, upper = self._mean_interval(arr, confidence)
        elif kind == EstimatorKind.median:
            point = descriptive.median(np.sort(arr))
            lower, upper = self._median_interval(arr, confidence)
        elif kind == EstimatorKind.sd:
            point = descriptive.sd(arr, biased=False) if arr.size > 1 else 0.0
            lower, upper = self._sd_interval(arr, confidence)
        else:
            point, (lower, upper) = math.nan, _NAN_PAIR
        return Estimate(point, lower, upper, confidence)

    def _mean_interval(self, sample: np.ndarray, confidence: float) -> tuple[float, float]:
        return _NAN_PAIR

    def _sd_interval(self, sample: np.ndarray, confidence: float) -> tuple[float, float]:
        return _NAN_PAIR

    @staticmethod
    def _median_interval(sample: np.ndarray, confidence: float) -> tuple[float, float]:
        r"""
        Binomial order-statistic interval :math:`[x_{(j)}, x_{(n-j+1)}]`.

        Valid for any continuous population. ``j`` is the largest rank whose
        two-sided binomial tail stays within :math:`\alpha`, so the interval is
        conservative (coverage at least ``confidence``).
        """
        n = sample.size
        j = int(binom.ppf((1.0 - confidence) / 2.0, n, 0.5))
        if j < 1:
            return _NAN_PAIR
        s = np.sort(sample)
        return float(s[j - 1]), float(s[n - j])

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class GaussianStandard(Distribution):
    """Standard normal population (mean 0, sd 1)."""

    name = "GaussianStandard"
    mean = 0.0
    median = 0.0
    sd = 1.0

    def generate(self, n: int, rng: np.random.Generator) -> np.ndarray:
        return rng.standard_normal(n)

    def _mean_interval(self, sample: np.ndarray, confidence: float) -> tuple[float, float]:
        # Student t interval with the unbiased sd
        n = sample.size
        if n < 2:
            return _NAN_PAIR
        m = descriptive.mean(sample)
        delta = t_crit(confidence, n - 1) * descriptive.sd(sample, m, biased=False) / math.sqrt(n)
        return m - delta, m + delta

    def _sd_interval(self, sample: np.ndarray, confidence: float) -> tuple[float, float]:
        n = sample.size
        if n < 2:
            return _NAN_PAIR
        df = n - 1
        s = descriptive.sd(sample, biased=False)
        half_alpha = (1.0 - confidence) / 2.0
        lower = s * math.sqrt(df / chi2.ppf(1.0 - half_alpha, df))
        upper = s * math.sqrt(df / chi2.ppf(half_alpha, df))
        return float(lower), float(upper)


class CauchyStandard(Distribution):
    """Standard Cauchy population; mean and sd do not exist."""

    name = "CauchyStandard"
    median = 0.0

    def generate(self, n: int, rng: np.random.Generator) -> np.ndarray:
        return rng.standard_cauchy(n)


class ExponentialStandard(Distribution):
    """Exponential population with rate 1 (mean 1, median ln 2, sd 1)."""

    name = "ExponentialStandard"
    mean = 1.0
    median = math.log(2.0)
    sd = 1.0

    def generate(self, n: int, rng: np.random.Generator) -> np.ndarray:
        return rng.standard_exponential(n)

    def _mean_interval(self, sample: np.ndarray, confidence: float) -> tuple[float, float]:
        r"""Exact interval from :math:`2\sum x / \theta \sim \chi^2_{2n}`."""
        df = 2 * sample.size
        two_sum = 2.0 * descriptive.total(sample)
        half_alpha = (1.0 - confidence) / 2.0
        return float(two_sum / chi2.ppf(1.0 - half_alpha, df)), float(two_sum / chi2.ppf(half_alpha, df))


# ---------------------------------------------------------------------------
# Coverage and comparison accumulators
# ---------------------------------------------------------------------------


@dataclass
class CoverageMetrics:
    r"""
    Where the true value fell relative to a series of intervals.

    Attributes
    ----------
    n_less, n_in, n_greater : int
        True value below, inside, or above the interval.
    n_nan : int
        Trials whose true value is undefined.
    """

    n_less: int = 0
    n_in: int = 0
    n_greater: int = 0
    n_nan: int = 0

    def include(self, estimate: Estimate, true_value: float) -> None:
        if math.isnan(true_value):
            self.n_nan += 1
        elif true_value < estimate.lower:
            self.n_less += 1
        elif true_value <= estimate.upper:
            self.n_in += 1
        else:
            self.n_greater += 1

    @property
    def n_total(self) -> int:
        return self.n_less + self.n_in + self.n_greater + self.n_nan

    @property
    def frac_less(self) -> float:
        return self.n_less / self.n_total if self.n_total else math.nan

    @property
    def frac_in(self) -> float:
        """Empirical coverage."""
        return self.n_in / self.n_total if self.n_total else math.nan

    @property
    def frac_greater(self) -> float:
        return self.n_greater / self.n_total if self.n_total else math.nan

    @property
    def defined(self) -> bool:
        return self.n_nan == 0 and self.n_total > 0

    def __str__(self) -> str:
        if not self.defined:
            return f"UNDEFINED: {self.n_nan} of {self.n_total} true values are NaN"
        return f"in = {self.frac_in:.4f} (less = {self.frac_less:.4f}, greater = {self.frac_greater:.4f})"


def _fraction_inside(inner: Estimate, outer: Estimate) -> float:
    """Share of ``inner``'s interval that lies inside ``outer``'s (0 when disjoint)."""
    if inner.width == 0.0:
        return 1.0 if outer.lower <= inner.lower <= outer.upper else 0.0
    overlap = min(inner.upper, outer.upper) - max(inner.lower, outer.lower)
    return max(overlap, 0.0) / inner.width


@dataclass
class TheoryComparison:
    r"""
    Average overlap between bootstrap intervals and exact theory intervals.

    Attributes
    ----------
    n_trials : int
        Pairs included.
    sum_bs_in_theory, sum_theory_in_bs : float
        Running sums of the per-trial overlap fractions.
    undefined : bool
        Set once any theory interval had NaN bounds.
    """

    n_trials: int = 0
    sum_bs_in_theory: float = 0.0
    sum_theory_in_bs: float = 0.0
    undefined: bool = False

    def include(self, bootstrap: Estimate, theory: Estimate) -> None:
        self.n_trials += 1
        if math.isnan(theory.lower):
            self.undefined = True
            return
        self.sum_bs_in_theory += _fraction_inside(bootstrap, theory)
        self.sum_theory_in_bs += _fraction_inside(theory, bootstrap)

    @property
    def frac_bs_in_theory(self) -> float:
        if self.undefined or not self.n_trials:
            return math.nan
        return self.sum_bs_in_theory / self.n_trials

    @property
    def frac_theory_in_bs(self) -> float:
        if self.undefined or not self.n_trials:
            return math.nan
        return self.sum_theory_in_bs / self.n_trials

    @property
    def verdict(self) -> str:
        """One of ``good``, ``fair``, ``poor``, ``bad``, ``disaster`` or ``undefined``."""
        a, b = self.frac_bs_in_theory, self.frac_theory_in_bs
        if math.isnan(a):
            return "undefined"
        worst = min(a, b)
        if worst >= 0.75:
            return "good"
        if worst >= 0.5:
            return "fair"
        if worst >= 0.25:
            return "poor"
        if worst > 0.0:
            return "bad"
        return "disaster"

    def __str__(self) -> str:
        if self.verdict == "undefined":
            return "undefined: the theory interval has NaN bounds"
        if self.verdict == "disaster":
            return "disaster: the bootstrap interval never overlaps the theory interval"
        return (
            f"{self.verdict}: on average {100 * self.frac_bs_in_theory:.1f}% of the bootstrap interval lies "
            f"inside the theory interval and {100 * self.frac_theory_in_bs:.1f}% of the theory interval "
            f"lies inside the bootstrap interval"
        )


# ---------------------------------------------------------------------------
# Trial drivers
# ---------------------------------------------------------------------------


def _trials(
    distribution: Distribution,
    sample_length: int,
    n_trials: int,
    estimators: Sequence[Estimator],
    n_resamples: int,
    confidence: float,
    method: Union[CIMethod, str],
    seed: Optional[int],
    n_workers: Optional[int],
) -> Iterator[tuple[np.ndarray, Bootstrap]]:
    r"""
    Run ``n_trials`` independent (sample, bootstrap) experiments on a thread pool.

    Each trial owns a spawned child seed, split again into one stream for the
    sample and one for the resampling, so results do not depend on scheduling.
    """
    if sample_length < 1:
        raise ValueError("sample_length must be >= 1")
    if n_trials < 1:
        raise ValueError("n_trials must be >= 1")
    children = np.random.SeedSequence(seed).spawn(n_trials)

    def _one(ss: np.random.SeedSequence) -> tuple[np.ndarray, Bootstrap]:
        data_ss, boot_ss = ss.spawn(2)
        sample = distribution.generate(sample_length, np.random.default_rng(data_ss))
        boot = Bootstrap(
            sample,
            n_resamples=n_resamples,
            confidence=confidence,
            estimators=estimators,
            method=method,
            rng=boot_ss,
            block_size=max(n_resamples, 1),
        )
        return sample, boot

    logger.info(
        "Running %d trials of %s with n = %d, B = %d", n_trials, distribution.name, sample_length, n_resamples
    )
    with ThreadPoolExecutor(max_workers=n_workers) as ex:
        futs = [ex.submit(_one, ss) for ss in children]
        for f in as_completed(futs):
            yield f.result()


def determine_coverage(
    distribution: Distribution,
    sample_length: int,
    n_trials: int,
    *,
    estimators: Optional[Sequence[Estimator]] = None,
    n_resamples: int = 1_000,
    confidence: float = 0.95,
    method: Union[CIMethod, str] = CIMethod.bca,
    seed: Optional[int] = None,
    n_workers: Optional[int] = None,
) -> dict[str, CoverageMetrics]:
    r"""
    Empirical coverage of bootstrap intervals for each estimator.

    Parameters
    ----------
    distribution : Distribution
        Population to sample from.
    sample_length : int
        Size of every generated sample.
    n_trials : int
        Number of independent samples (and bootstraps).
    estimators : sequence of Estimator, optional
        Defaults to mean, median and sd.
    n_resamples : int, default 1_000
        Resamples per bootstrap.
    confidence : float, default 0.95
        Nominal confidence level.
    method : {"percentile", "bca"}, default "bca"
        Interval flavor.
    seed : int, optional
        Root seed for reproducible experiments.
    n_workers : int, optional
        Thread-pool size (``None`` uses the executor default).

    Returns
    -------
    dict of str to CoverageMetrics
        Keyed by estimator name. ``frac_in`` close to ``confidence`` means the
        intervals are well calibrated; estimators of undefined parameters
        (e.g. the Cauchy mean) report ``UNDEFINED``.

    Examples
    --------
    >>> cov = determine_coverage(GaussianStandard(), 50, 200, n_resamples=500, seed=1)  # doctest: +SKIP
    >>> print(cov["mean"])  # doctest: +SKIP
    in = 0.9450 (less = 0.0300, greater = 0.0250)
    """
    ests = tuple(DEFAULT_ESTIMATORS if estimators is None else estimators)
    metrics = {e.name: CoverageMetrics() for e in ests}
    truth = {e.name: distribution.true_value(estimator_kind(e)) for e in ests}
    for _, boot in _trials(
        distribution, sample_length, n_trials, ests, n_resamples, confidence, method, seed, n_workers
    ):
        for name, est in boot.estimates.items():
            metrics[name].include(est, truth[name])
    for name, m in metrics.items():
        logger.debug("Coverage %s/%s: %s", distribution.name, name, m)
    return metrics


def compare_with_theory(
    distribution: Distribution,
    sample_length: int,
    n_trials: int,
    *,
    estimators: Optional[Sequence[Estimator]] = None,
    n_resamples: int = 1_000,
    confidence: float = 0.95,
    method: Union[CIMethod, str] = CIMethod.bca,
    seed: Optional[int] = None,
    n_workers: Optional[int] = None,
) -> dict[str, TheoryComparison]:
    r"""
    Average overlap between bootstrap intervals and exact theory intervals.

    Parameters are as for :func:`determine_coverage`.

    Returns
    -------
    dict of str to TheoryComparison
        Keyed by estimator name.
    """
    ests = tuple(DEFAULT_ESTIMATORS if estimators is None else estimators)
    results = {e.name: TheoryComparison() for e in ests}
    kinds = {e.name: estimator_kind(e) for e in ests}
    for sample, boot in _trials(
        distribution, sample_length, n_trials, ests, n_resamples, confidence, method, seed, n_workers
    ):
        for name, est in boot.estimates.items():
            results[name].include(est, distribution.theory_estimate(kinds[name], sample, confidence))
    return results


def precision_of_coverage(n_trials: int, p: float, q: float) -> float:
    r"""
    Relative precision of a coverage estimate from ``n_trials`` trials.

    The number of trials whose interval covers the truth is
    :math:`N \sim \mathrm{Binomial}(n, p)`. Returns the width of the central
    ``q`` interval of :math:`N` divided by its mean :math:`np`; a coverage of
    ``p`` is then pinned down to about this relative precision with probability
    ``q``.

    Examples
    --------
    >>> precision_of_coverage(10_000, 0.95, 0.95) < precision_of_coverage(100, 0.95, 0.95)
    True
    """
    if n_trials < 1:
        raise ValueError("n_trials must be >= 1")
    if not 0.0 < p <= 1.0:
        raise ValueError("p must be in (0,1]")
    if not 0.0 < q < 1.0:
        raise ValueError("q must be in (0,1)")
    mean = n_trials * p
    beta = (1.0 - q) / 2.0
    central = float(binom.ppf(1.0 - beta, n_trials, p) - binom.ppf(beta, n_trials, p))
    if math.isnan(central) and mean > 5 and n_trials * (1.0 - p) > 5:
        sigma = math.sqrt(n_trials * p * (1.0 - p))
        central = float(norm.ppf(1.0 - beta, mean, sigma) - norm.ppf(beta, mean, sigma))
    return central / mean


# ---------------------------------------------------------------------------
# Normality of a set of numbers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GaussianFit:
    r"""
    How well a set of numbers matches the normal distribution with its own mean and sd.

    Attributes
    ----------
    mean, sd : float
        Sample mean and unbiased sd used for the reference normal.
    anderson_darling : float
        Anderson-Darling statistic (:func:`scipy.stats.anderson`).
    ks_statistic, ks_pvalue : float
        Kolmogorov-Smirnov test against the fitted normal (:func:`scipy.stats.kstest`).
    bounds_mid, pdf_observed, pdf_theory : ndarray
        Histogram midpoints with the observed and the expected density.
    """

    mean: float
    sd: float
    anderson_darling: float
    ks_statistic: float
    ks_pvalue: float
    bounds_mid: np.ndarray
    pdf_observed: np.ndarray
    pdf_theory: np.ndarray

    def __str__(self) -> str:
        return (
            f"mean = {self.mean:.6g}, sd = {self.sd:.6g}, A2 = {self.anderson_darling:.4g}, "
            f"KS = {self.ks_statistic:.4g} (p = {self.ks_pvalue:.4g})"
        )


def gaussian_fit(numbers: ArrayLike, n_bins: int = 20) -> GaussianFit:
    r"""
    Compare ``numbers`` with the normal distribution of the same mean and sd.

    Parameters
    ----------
    numbers : array_like
        At least two finite, not all equal, values.
    n_bins : int, default 20
        Histogram intervals spanning min to max.

    Returns
    -------
    GaussianFit
    """
    arr = descriptive.check_numbers(numbers)
    if arr.size < 2:
        raise ValueError("gaussian_fit needs at least 2 numbers")
    m = descriptive.mean(arr)
    s = descriptive.sd(arr, m, biased=False)
    if s == 0.0:
        raise ValueError("numbers are all equal; no normal distribution fits")

    with warnings.catch_warnings():
        # only the statistic is read; newer scipy warns about its critical-value table
        warnings.simplefilter("ignore", FutureWarning)
        ad = anderson(arr, dist="norm")
    ks = kstest(arr, "norm", args=(m, s))
    bins = Bins.spanning(arr, n_bins)
    return GaussianFit(
        mean=m,
        sd=s,
        anderson_darling=float(ad.statistic),
        ks_statistic=float(ks.statistic),
        ks_pvalue=float(ks.pvalue),
        bounds_mid=bins.bounds_mid,
        pdf_observed=bins.pdf,
        pdf_theory=bins.theory_pdf(lambda x: norm.cdf(x, loc=m, scale=s)),
    )
