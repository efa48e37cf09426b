import math

import numpy as np
import pytest

from bootci.utils import normal_cdf, normal_ppf, round_half_up, t_crit, z_crit


class TestNormal:
    """Test the standard normal wrappers"""

    def test_cdf_values(self):
        """Test symmetric and infinite arguments"""
        assert normal_cdf(0.0) == 0.5
        assert normal_cdf(-math.inf) == 0.0
        assert normal_cdf(math.inf) == 1.0

    def test_ppf_inverts_cdf(self):
        """Test ppf(cdf(x)) == x in the tails"""
        for x in (-7.0, -1.5, 0.3, 5.0):
            assert normal_ppf(normal_cdf(x)) == pytest.approx(x, rel=1e-8)

    def test_ppf_saturates(self):
        """Test probabilities 0 and 1 map to infinities"""
        assert normal_ppf(0.0) == -math.inf
        assert normal_ppf(1.0) == math.inf

    @pytest.mark.parametrize("p", [-0.1, 1.1, float("nan")])
    def test_ppf_invalid(self, p):
        """Test non-probabilities raise ValueError"""
        with pytest.raises(ValueError, match="not a probability"):
            normal_ppf(p)

    def test_cdf_nan(self):
        """Test NaN raises ValueError"""
        with pytest.raises(ValueError):
            normal_cdf(float("nan"))


class TestCriticalValues:
    """Test z and t critical values"""

    def test_z_crit(self):
        """Test the familiar 95% value"""
        assert z_crit(0.95) == pytest.approx(1.959964, rel=1e-6)

    def test_t_crit_approaches_z(self):
        """Test t critical values shrink towards z"""
        assert t_crit(0.95, 5) > t_crit(0.95, 50) > z_crit(0.95)

    @pytest.mark.parametrize("confidence", [0.0, 1.0])
    def test_invalid_confidence(self, confidence):
        """Test confidence outside (0, 1) raises"""
        with pytest.raises(ValueError, match="confidence"):
            z_crit(confidence)

    def test_invalid_df(self):
        """Test df must be positive"""
        with pytest.raises(ValueError, match="df"):
            t_crit(0.95, 0)


class TestRoundHalfUp:
    """Test index rounding"""

    @pytest.mark.parametrize("x, expected", [(2.5, 3), (-2.5, -2), (24.49, 24), (0.5, 1), (974.5, 975)])
    def test_scalar(self, x, expected):
        """Test halves round up, unlike round()"""
        assert round_half_up(x) == expected

    def test_array(self):
        """Test element-wise rounding to int64"""
        out = round_half_up(np.array([0.5, 1.5, 2.4]))
        assert out.dtype == np.int64
        assert out.tolist() == [1, 2, 2]
