import numpy as np
import pytest
from scipy import stats

from citree import PredictorType, bonferroni_adjust, split_test
from citree.statistics import nominal_form, ordinal_form, permutation_p_value


class TestContinuousTest:
    def test_statistic_is_n_minus_one_times_squared_pearson(self):
        rng = np.random.default_rng(1)
        x = rng.normal(size=60)
        y = 0.5 * x + rng.normal(size=60)

        result = split_test(y, x, PredictorType.CONTINUOUS)

        r, _ = stats.pearsonr(x, y)
        assert result.statistic == pytest.approx(59 * r ** 2)
        assert result.degrees_of_freedom == 1
        assert result.p_value == pytest.approx(stats.chi2.sf(59 * r ** 2, 1))

    def test_strong_association_has_tiny_p_value(self):
        x = np.arange(40, dtype=float)
        result = split_test(3.0 * x + 1.0, x, PredictorType.CONTINUOUS)
        assert result.p_value < 1e-6

    def test_constant_predictor_gives_p_one(self):
        result = split_test(np.arange(10.0), np.ones(10), PredictorType.CONTINUOUS)
        assert result.p_value == 1.0
        assert result.statistic == 0.0

    def test_constant_response_gives_p_one(self):
        result = split_test(np.full(10, 3.0), np.arange(10.0), PredictorType.CONTINUOUS)
        assert result.p_value == 1.0

    def test_single_record_gives_p_one(self):
        result = split_test(np.array([1.0]), np.array([2.0]), PredictorType.CONTINUOUS)
        assert result.p_value == 1.0


class TestOrdinalTest:
    def test_invariant_to_monotone_recoding(self):
        rng = np.random.default_rng(2)
        x = rng.integers(0, 5, 80).astype(float)
        y = x + rng.normal(size=80)

        plain = split_test(y, x, PredictorType.ORDINAL)
        cubed = split_test(y, x ** 3, PredictorType.ORDINAL)

        assert plain.statistic == pytest.approx(cubed.statistic)
        assert plain.p_value == pytest.approx(cubed.p_value)

    def test_matches_squared_spearman(self):
        rng = np.random.default_rng(3)
        x = rng.integers(0, 4, 50).astype(float)
        y = rng.normal(size=50) + x

        rho, _ = stats.spearmanr(x, y)
        result = split_test(y, x, PredictorType.ORDINAL)
        assert result.statistic == pytest.approx(49 * rho ** 2)

    def test_degenerate_returns_none_form(self):
        assert ordinal_form(np.arange(5.0), np.zeros(5)) is None


class TestNominalTest:
    def test_degrees_of_freedom_is_levels_minus_one(self):
        x = np.array(["a", "b", "c"] * 10, dtype=object)
        y = np.arange(30, dtype=float)
        assert split_test(y, x, PredictorType.NOMINAL).degrees_of_freedom == 2

    def test_statistic_is_n_minus_one_times_eta_squared(self):
        x = np.array(["a", "a", "b", "b", "c", "c"], dtype=object)
        y = np.array([1.0, 3.0, 5.0, 7.0, 2.0, 2.0])

        grand = y.mean()
        ss_total = ((y - grand) ** 2).sum()
        ss_between = sum(
            (x == level).sum() * (y[x == level].mean() - grand) ** 2 for level in ("a", "b", "c")
        )

        result = split_test(y, x, PredictorType.NOMINAL)
        assert result.statistic == pytest.approx(5 * ss_between / ss_total)

    def test_single_level_gives_p_one(self):
        x = np.array(["a"] * 8, dtype=object)
        result = split_test(np.arange(8.0), x, PredictorType.NOMINAL)
        assert result.p_value == 1.0
        assert nominal_form(np.arange(8.0), x) is None


class TestPermutationTest:
    def test_perfect_association_reaches_minimum_p(self):
        x = np.arange(30, dtype=float)
        result = split_test(
            2.0 * x, x, PredictorType.CONTINUOUS,
            n_permutations=99, rng=np.random.default_rng(0)
        )
        assert result.p_value == pytest.approx(1 / 100)

    def test_p_value_bounds(self):
        rng = np.random.default_rng(4)
        x = rng.normal(size=25)
        y = rng.normal(size=25)
        result = split_test(y, x, PredictorType.CONTINUOUS, n_permutations=199, rng=np.random.default_rng(5))
        assert 1 / 200 <= result.p_value <= 1.0

    def test_same_seed_same_p_value(self):
        rng = np.random.default_rng(6)
        x = np.array(["u", "v", "w"] * 12, dtype=object)
        y = rng.normal(size=36)
        form = nominal_form(y, x)

        first = permutation_p_value(form, 300, np.random.default_rng(11), chunk_size=64)
        second = permutation_p_value(form, 300, np.random.default_rng(11), chunk_size=64)
        assert first == second


class TestBonferroni:
    def test_multiplies_by_number_of_tests(self):
        assert bonferroni_adjust(0.02, 3) == pytest.approx(0.06)

    def test_capped_at_one(self):
        assert bonferroni_adjust(0.5, 3) == 1.0

    def test_single_test_is_unchanged(self):
        assert bonferroni_adjust(0.013, 1) == pytest.approx(0.013)

    def test_rejects_zero_tests(self):
        with pytest.raises(ValueError):
            bonferroni_adjust(0.1, 0)
