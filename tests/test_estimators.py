import pickle

import numpy as np
import pytest

from bootci.estimators import (
    DEFAULT_ESTIMATORS,
    EstimatorKind,
    FnEstimator,
    Mean,
    Median,
    StandardDeviation,
    estimator_kind,
    supports_batch,
)


class TestBuiltinEstimators:
    """Test Mean, Median and StandardDeviation"""

    def test_names_and_kinds(self):
        """Test the default set and its tags"""
        assert [e.name for e in DEFAULT_ESTIMATORS] == ["mean", "median", "sd"]
        assert [estimator_kind(e) for e in DEFAULT_ESTIMATORS] == [
            EstimatorKind.mean,
            EstimatorKind.median,
            EstimatorKind.sd,
        ]

    def test_calculate(self):
        """Test values on a small sample"""
        x = np.array([4.0, 1.0, 3.0, 2.0])
        assert Mean().calculate(x) == 2.5
        assert Median().calculate(x) == 2.5
        assert StandardDeviation().calculate(x) == pytest.approx(np.std(x, ddof=1))

    def test_median_does_not_mutate(self):
        """Test the median sorts a copy"""
        x = np.array([3.0, 1.0, 2.0])
        Median().calculate(x)
        assert x.tolist() == [3.0, 1.0, 2.0]

    def test_sd_of_one_value_is_zero(self):
        """Test sd stays defined for jackknife samples of a two-element sample"""
        assert StandardDeviation().calculate(np.array([7.0])) == 0.0

    def test_read_only_input(self):
        """Test estimators accept read-only views"""
        x = np.array([1.0, 5.0, 2.0])
        x.flags.writeable = False
        for est in DEFAULT_ESTIMATORS:
            assert np.isfinite(est.calculate(x))

    @pytest.mark.parametrize("est", DEFAULT_ESTIMATORS, ids=lambda e: e.name)
    def test_batch_matches_scalar(self, est):
        """Test calculate_batch agrees with calculate row by row"""
        rows = np.random.default_rng(11).exponential(size=(25, 9))
        batch = est.calculate_batch(rows)
        assert batch.shape == (25,)
        for i in range(rows.shape[0]):
            assert batch[i] == pytest.approx(est.calculate(rows[i]), rel=1e-12)

    def test_sd_batch_single_column(self):
        """Test batch sd of one-element resamples is zero"""
        assert StandardDeviation().calculate_batch(np.ones((4, 1))).tolist() == [0.0] * 4

    def test_equality_and_pickle(self):
        """Test stateless estimators compare equal and survive pickling"""
        assert Mean() == Mean()
        assert Mean() != Median()
        assert hash(Median()) == hash(Median())
        assert pickle.loads(pickle.dumps(StandardDeviation())) == StandardDeviation()


class TestFnEstimator:
    """Test the function adapter"""

    def test_calculate_returns_float(self):
        """Test the wrapped function result is converted to float"""
        est = FnEstimator("max", np.max)
        result = est.calculate(np.array([1, 5, 3]))
        assert isinstance(result, float)
        assert result == 5.0

    def test_defaults(self):
        """Test custom kind and no batch support by default"""
        est = FnEstimator("max", np.max)
        assert estimator_kind(est) == EstimatorKind.custom
        assert not supports_batch(est)

    def test_kind_tag(self):
        """Test an explicit kind lets diagnostics find the true value"""
        est = FnEstimator("trimmed_mean", np.mean, kind=EstimatorKind.mean)
        assert estimator_kind(est) == EstimatorKind.mean

    def test_frozen(self):
        """Test the adapter is immutable"""
        est = FnEstimator("max", np.max)
        with pytest.raises(AttributeError):
            est.name = "other"


class TestCapabilities:
    """Test attribute-based capability discovery"""

    def test_supports_batch_requires_method(self):
        """Test the flag alone is not enough"""

        class FlagOnly:
            name = "flag"
            supports_batch = True

            def calculate(self, sample):
                return 0.0

        assert not supports_batch(FlagOnly())
        assert supports_batch(Mean())

    def test_kind_missing_means_custom(self):
        """Test objects without kind are custom"""

        class Plain:
            name = "plain"

            def calculate(self, sample):
                return 0.0

        assert estimator_kind(Plain()) == EstimatorKind.custom
