import numpy as np
import pytest
from scipy.stats import norm

from bootci.bins import Bins, Intervals
from bootci.exceptions import InvalidStateError


class TestIntervals:
    """Test the equal-width partition"""

    def test_width_and_boundaries(self):
        """Test width and lower boundaries"""
        iv = Intervals(1.0, 4.0, 2)
        assert iv.width == 1.5
        assert iv.boundary(0) == 1.0 and iv.boundary(1) == 2.5
        assert iv.boundaries().tolist() == [1.0, 2.5]

    @pytest.mark.parametrize(
        "begin, end, number, message",
        [
            (float("nan"), 1.0, 2, "finite"),
            (0.0, float("inf"), 2, "finite"),
            (1.0, 1.0, 2, "must be < end"),
            (2.0, 1.0, 2, "must be < end"),
            (0.0, 1.0, 0, "positive integer"),
        ],
    )
    def test_validation(self, begin, end, number, message):
        """Test invalid partitions raise ValueError"""
        with pytest.raises(ValueError, match=message):
            Intervals(begin, end, number)

    def test_index(self):
        """Test half-open intervals with a closed last one"""
        iv = Intervals(0.0, 10.0, 5)
        assert iv.index(0.0) == 0
        assert iv.index(1.999) == 0
        assert iv.index(2.0) == 1
        assert iv.index(10.0) == 4

    @pytest.mark.parametrize("value", [-0.1, 10.1, float("nan")])
    def test_index_outside(self, value):
        """Test values outside [begin, end] raise ValueError"""
        with pytest.raises(ValueError):
            Intervals(0.0, 10.0, 5).index(value)

    def test_boundary_out_of_range(self):
        """Test boundary index must be within [0, number)"""
        with pytest.raises(ValueError):
            Intervals(0.0, 1.0, 3).boundary(3)

    def test_from_width_aligned(self):
        """Test boundaries align on offset + i * width"""
        iv = Intervals.from_width([3.0, 27.5], offset=5.0, width=10.0)
        assert (iv.begin, iv.end, iv.number) == (-5.0, 35.0, 4)

    def test_from_width_single_point(self):
        """Test a sample sitting on one boundary gets one interval"""
        iv = Intervals.from_width([20.0, 20.0], offset=0.0, width=10.0)
        assert (iv.begin, iv.end, iv.number) == (20.0, 30.0, 1)

    def test_from_width_value_on_rounded_boundary(self):
        """Test a maximum one ulp past offset + k * width is still covered"""
        v, offset, width = 26.980647714761332, -0.3193522852386672, 0.3
        iv = Intervals.from_width([v, v + 5 * width], offset, width)
        assert iv.begin <= v and v + 5 * width <= iv.end

    @pytest.mark.parametrize("width", [0.3, 0.01, 0.1, 1.7])
    def test_from_width_aligned_values(self, width):
        """Test samples whose extremes sit on alignment points never fail"""
        rng = np.random.default_rng(3)
        for _ in range(2_000):
            offset = float(rng.uniform(-5.0, 5.0))
            v = offset + int(rng.integers(-500, 500)) * width
            values = [v, v + 5 * width]
            iv = Intervals.from_width(values, offset, width)
            assert iv.begin <= v and values[1] <= iv.end
            assert Bins(values, iv).count_total == 2

    def test_float_number_normalised(self):
        """Test an integral float count is stored as int"""
        iv = Intervals(0.0, 1.0, 2.0)
        assert isinstance(iv.number, int)
        assert Bins([0.2, 0.7], iv).counts.tolist() == [1, 1]

    @pytest.mark.parametrize("offset, width", [(float("inf"), 1.0), (0.0, 0.0), (0.0, -1.0)])
    def test_from_width_invalid(self, offset, width):
        """Test invalid offset or width raise ValueError"""
        with pytest.raises(ValueError):
            Intervals.from_width([1.0, 2.0], offset, width)

    def test_spanning_needs_spread(self):
        """Test spanning a constant sample is impossible"""
        with pytest.raises(ValueError):
            Intervals.spanning([2.0, 2.0], 3)

    def test_frozen(self):
        """Test intervals are immutable"""
        with pytest.raises(AttributeError):
            Intervals(0.0, 1.0, 1).number = 2

    def test_index_past_last_interval_is_invalid_state(self):
        """Test the internal index guard"""
        iv = Intervals(0.0, 1.0, 2)
        with pytest.raises(InvalidStateError):
            iv._indices(np.array([5.0]))


class TestBins:
    """Test histogram counts and densities"""

    def test_width_ten_scenario(self):
        """Test 0..100 in steps of 10 with width 10"""
        values = np.arange(0.0, 101.0, 10.0)
        bins = Bins.with_width(values, offset=0.0, width=10.0)
        assert bins.intervals == Intervals(0.0, 100.0, 10)
        assert bins.bounds.tolist() == [0.0, 10.0, 20.0, 30.0, 40.0, 50.0, 60.0, 70.0, 80.0, 90.0]
        assert bins.counts.tolist() == [1, 1, 1, 1, 1, 1, 1, 1, 1, 2]
        assert bins.counts.dtype == np.int64

    def test_spanning_scenario(self):
        """Test two intervals over 1..4"""
        bins = Bins.spanning([1.0, 2.0, 3.0, 4.0], 2)
        assert bins.intervals == Intervals(1.0, 4.0, 2)
        assert bins.bounds.tolist() == [1.0, 2.5]
        assert bins.counts.tolist() == [2, 2]

    @pytest.mark.parametrize("number", [1, 7, 50, 999])
    def test_every_value_counted(self, sample_data, number):
        """Test count_total equals the sample size"""
        assert Bins.spanning(sample_data, number).count_total == sample_data.size

    def test_between_rejects_outside_values(self):
        """Test explicit bounds must cover the sample"""
        with pytest.raises(ValueError, match="outside the intervals"):
            Bins.between([0.5, 2.5], 0.0, 2.0, 4)

    def test_midpoints(self):
        """Test midpoints sit half a width above the bounds"""
        bins = Bins.between([0.0, 1.0], 0.0, 1.0, 4)
        assert bins.width == 0.25
        assert bins.bounds_mid.tolist() == [0.125, 0.375, 0.625, 0.875]

    def test_pdf_integrates_to_one(self, sample_data):
        """Test the observed density is normalised"""
        bins = Bins.spanning(sample_data, 30)
        assert float(np.sum(bins.pdf) * bins.width) == pytest.approx(1.0)

    def test_theory_pdf_tracks_observed(self, sample_data):
        """Test the normal density matches a normal sample"""
        bins = Bins.spanning(sample_data, 15)
        theory = bins.theory_pdf(lambda x: norm.cdf(x, loc=5.0, scale=2.0))
        assert theory.shape == bins.pdf.shape
        assert np.max(np.abs(theory - bins.pdf)) < 0.06

    def test_theory_pdf_uniform(self):
        """Test exact interval probabilities for a uniform cdf"""
        bins = Bins.between([0.0, 1.0], 0.0, 1.0, 4)
        assert np.allclose(bins.theory_pdf(lambda x: np.clip(x, 0.0, 1.0)), 1.0)

    def test_arrays_read_only(self):
        """Test bounds and counts cannot be altered"""
        bins = Bins.spanning([1.0, 2.0, 3.0], 2)
        with pytest.raises(ValueError):
            bins.counts[0] = 10

    def test_str(self):
        """Test the text report lists every section"""
        text = str(Bins.spanning([1.0, 2.0, 3.0, 4.0], 2))
        for key in ("intervals", "bounds", "bounds_mid", "count_total = 4", "counts", "pdf"):
            assert key in text
