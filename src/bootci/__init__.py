"""bootci package public API."""

from .bins import Bins, Intervals
from .bootstrap import Bootstrap, BootstrapContext, CIMethod, Estimate
from .estimators import (
    DEFAULT_ESTIMATORS,
    Estimator,
    EstimatorKind,
    FnEstimator,
    Mean,
    Median,
    StandardDeviation,
)
from .exceptions import InvalidStateError
from .utils import t_crit, z_crit

__all__ = [
    "Bootstrap",
    "BootstrapContext",
    "CIMethod",
    "Estimate",
    "Estimator",
    "EstimatorKind",
    "FnEstimator",
    "Mean",
    "Median",
    "StandardDeviation",
    "DEFAULT_ESTIMATORS",
    "Bins",
    "Intervals",
    "InvalidStateError",
    "z_crit",
    "t_crit",
]

__version__ = "0.1.0"
