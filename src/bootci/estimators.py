r"""
bootci.estimators
=================
Named statistics that the bootstrap engine evaluates on every resample.

This module defines:

- :class:`Estimator`: the protocol the engine relies on (``name`` + ``calculate``).
- :class:`EstimatorKind`: a tag that diagnostics use to look up theoretical values.
- :class:`Mean`, :class:`Median`, :class:`StandardDeviation`: built-in estimators.
- :class:`FnEstimator`: a frozen adapter that names an arbitrary function.

Optional capabilities are discovered by attribute, never by concrete type:

``kind``
    An :class:`EstimatorKind`; missing means :attr:`EstimatorKind.custom`.
``supports_batch`` / ``calculate_batch(rows)``
    Vectorised scoring of a 2-D array whose rows are resamples. The engine uses
    it when present and falls back to one :meth:`Estimator.calculate` call per
    resample otherwise.

Estimators must be pure: they may be called concurrently, on samples shorter
than the original (jackknife), and must never mutate their argument.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, ClassVar, Protocol

import numpy as np

from . import descriptive

__all__ = [
    "Estimator",
    "EstimatorKind",
    "Mean",
    "Median",
    "StandardDeviation",
    "FnEstimator",
    "DEFAULT_ESTIMATORS",
    "estimator_kind",
    "supports_batch",
]


class EstimatorKind(str, Enum):
    r"""
    Tag identifying which population quantity an estimator targets.

    Attributes
    ----------
    mean : str
        Population mean.
    median : str
        Population median.
    sd : str
        Population standard deviation.
    custom : str
        Anything else; no theoretical value is known.
    """

    mean = "mean"
    median = "median"
    sd = "sd"
    custom = "custom"


class Estimator(Protocol):
    r"""
    Protocol for statistics evaluated by :class:`~bootci.bootstrap.Bootstrap`.

    Attributes
    ----------
    name : str
        Non-blank key under which the estimate is stored. Names must be unique
        within one engine.
    """

    name: str

    def calculate(self, sample: np.ndarray, /) -> float: ...


def estimator_kind(estimator: Any) -> EstimatorKind:
    """Return ``estimator.kind``, or :attr:`EstimatorKind.custom` when absent."""
    return EstimatorKind(getattr(estimator, "kind", EstimatorKind.custom))


def supports_batch(estimator: Any) -> bool:
    """True when ``estimator`` can score a 2-D array of resamples at once."""
    return bool(getattr(estimator, "supports_batch", False)) and callable(
        getattr(estimator, "calculate_batch", None)
    )


class _BuiltinEstimator:
    """Shared equality and repr for the stateless built-in estimators."""

    name: ClassVar[str]
    kind: ClassVar[EstimatorKind]
    supports_batch: ClassVar[bool] = True

    def __eq__(self, other: object) -> bool:
        return type(other) is type(self)

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.name))

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class Mean(_BuiltinEstimator):
    r"""
    Sample mean :math:`\bar x`.

    Examples
    --------
    >>> Mean().calculate(np.array([1.0, 2.0, 3.0]))
    2.0
    """

    name = "mean"
    kind = EstimatorKind.mean

    def calculate(self, sample: np.ndarray) -> float:
        return descriptive.mean(sample)

    def calculate_batch(self, rows: np.ndarray) -> np.ndarray:
        return descriptive.mean_rows(rows)


class Median(_BuiltinEstimator):
    """Sample median; sorts a private copy so the caller's array is untouched."""

    name = "median"
    kind = EstimatorKind.median

    def calculate(self, sample: np.ndarray) -> float:
        return descriptive.median(np.sort(descriptive.check_numbers(sample)))

    def calculate_batch(self, rows: np.ndarray) -> np.ndarray:
        return descriptive.quantile_rows(np.sort(rows, axis=1), 1, 2)


class StandardDeviation(_BuiltinEstimator):
    r"""
    Unbiased (:math:`n-1` denominator) sample standard deviation.

    Returns ``0.0`` for fewer than two values, so the jackknife samples of a
    two-element sample remain defined.
    """

    name = "sd"
    kind = EstimatorKind.sd

    def calculate(self, sample: np.ndarray) -> float:
        arr = descriptive.check_numbers(sample)
        if arr.size < 2:
            return 0.0
        return descriptive.sd(arr, biased=False)

    def calculate_batch(self, rows: np.ndarray) -> np.ndarray:
        n = rows.shape[1]
        if n < 2:
            return np.zeros(rows.shape[0], dtype=float)
        return np.sqrt(descriptive.sst_rows(rows) / (n - 1))


@dataclass(frozen=True)
class FnEstimator:
    r"""
    Adapter binding a ``name`` to a plain function of the sample.

    Parameters
    ----------
    name : str
        Key under which the estimate is stored.
    fn : callable
        ``fn(sample: ndarray) -> float``. Must be pure; must be picklable (a
        module-level function, not a lambda) when used with the process backend.
    doc : str, optional
        Short description.
    kind : EstimatorKind, default ``EstimatorKind.custom``
        Tag used by the diagnostics to find a theoretical value.

    Examples
    --------
    >>> largest = FnEstimator("max", lambda a: float(np.max(a)))
    >>> largest.calculate(np.array([1.0, 5.0, 3.0]))
    5.0
    """

    name: str
    fn: Callable[[np.ndarray], float]
    doc: str = ""
    kind: EstimatorKind = EstimatorKind.custom

    def calculate(self, sample: np.ndarray) -> float:
        return float(self.fn(sample))


DEFAULT_ESTIMATORS: tuple[Estimator, ...] = (Mean(), Median(), StandardDeviation())
