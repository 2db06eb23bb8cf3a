"""
Independence tests between the response and one predictor.

Every predictor type uses the quadratic form of a linear permutation
statistic, which under H₀ (no association) is asymptotically chi-square:

    c = (n - 1) × R²  ~  χ²_df

    Continuous: R² = squared Pearson correlation of x and y,        df = 1
    Ordinal:    R² = squared Spearman correlation (ranks of x, y),  df = 1
    Nominal:    R² = η² = SS_between / SS_total over the k levels,   df = k - 1

P-value:
    asymptotic:  p = P(χ²_df ≥ c_obs)
    permutation: p = (1 + #{c_perm ≥ c_obs}) / (1 + B)

Because all three share one scale, p-values are comparable across
heterogeneous predictors, which is what variable selection needs.

Bonferroni adjustment over m simultaneous tests:
    p_adj = min(1, m × p)
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional

import numpy as np
import pandas as pd
from scipy import stats

from .types import PredictorType


@dataclass
class AssociationResult:
    """
    Result of an independence test between response and predictor.

    Attributes:
        statistic: The quadratic test statistic c = (n - 1) × R²
        degrees_of_freedom: Degrees of freedom of the reference chi-square
        p_value: Raw p-value of H₀ "no association"
    """
    statistic: float
    degrees_of_freedom: int
    p_value: float


@dataclass
class QuadraticForm:
    """
    A test statistic prepared for one (response, predictor) pair.

    ``statistic`` maps a 2D array whose rows are response vectors (the
    observed response or permutations of it) to one statistic per row.
    Permuting the response leaves its mean and total sum of squares
    unchanged, so those are computed once.
    """
    statistic: Callable[[np.ndarray], np.ndarray]
    response: np.ndarray
    degrees_of_freedom: int


def _is_constant(values: np.ndarray) -> bool:
    return len(values) == 0 or bool(np.all(values == values[0]))


def _correlation_form(x: np.ndarray, y: np.ndarray) -> QuadraticForm:
    n = len(y)
    xc = x - x.mean()
    yc = y - y.mean()
    scale = (n - 1) / ((xc @ xc) * (yc @ yc))

    def statistic(Y: np.ndarray) -> np.ndarray:
        # xc sums to zero, so centering the rows of Y is unnecessary
        return scale * (Y @ xc) ** 2

    return QuadraticForm(statistic=statistic, response=y, degrees_of_freedom=1)


def continuous_form(y: np.ndarray, x: np.ndarray) -> Optional[QuadraticForm]:
    """Pearson form for a continuous predictor. None if x or y is constant."""
    x = np.asarray(x, dtype=float)
    if len(y) < 2 or _is_constant(x) or _is_constant(y):
        return None
    return _correlation_form(x, y)


def ordinal_form(y: np.ndarray, x: np.ndarray) -> Optional[QuadraticForm]:
    """Spearman form for an ordinal predictor. None if x or y is constant."""
    x = np.asarray(x, dtype=float)
    if len(y) < 2 or _is_constant(x) or _is_constant(y):
        return None
    return _correlation_form(stats.rankdata(x), stats.rankdata(y))


def nominal_form(y: np.ndarray, x: np.ndarray) -> Optional[QuadraticForm]:
    """
    Eta-squared form for a nominal predictor.

    Formula:
        SS_between = Σ_g S_g² / n_g - S² / n
        c = (n - 1) × SS_between / SS_total,  df = k - 1

    Returns None if fewer than two levels are observed or y is constant.
    """
    n = len(y)
    codes, levels = pd.factorize(np.asarray(x, dtype=object))
    k = len(levels)
    if n < 2 or k < 2 or _is_constant(y):
        return None

    counts = np.bincount(codes, minlength=k).astype(float)
    total = y.sum()
    ss_total = float(((y - y.mean()) ** 2).sum())
    indicator = np.zeros((n, k))
    indicator[np.arange(n), codes] = 1.0

    def statistic(Y: np.ndarray) -> np.ndarray:
        sums = Y @ indicator
        ss_between = (sums ** 2 / counts).sum(axis=1) - total ** 2 / n
        return np.maximum((n - 1) * ss_between / ss_total, 0.0)

    return QuadraticForm(statistic=statistic, response=y, degrees_of_freedom=k - 1)


# One test per predictor tag
SPLIT_TESTS: Dict[PredictorType, Callable[[np.ndarray, np.ndarray], Optional[QuadraticForm]]] = {
    PredictorType.CONTINUOUS: continuous_form,
    PredictorType.ORDINAL: ordinal_form,
    PredictorType.NOMINAL: nominal_form,
}


def permutation_p_value(
    form: QuadraticForm,
    n_permutations: int,
    rng: np.random.Generator,
    chunk_size: int = 256
) -> float:
    """
    Monte-Carlo permutation p-value of a prepared statistic.

    Args:
        form: Prepared quadratic form
        n_permutations: Number of response permutations B
        rng: Random generator (its state advances)
        chunk_size: Permutations evaluated per matrix product

    Returns:
        p = (1 + #{c_perm ≥ c_obs}) / (1 + B)
    """
    observed = float(form.statistic(form.response[np.newaxis, :])[0])
    threshold = observed - 1e-10 * max(1.0, abs(observed))

    exceed = 0
    remaining = n_permutations
    while remaining > 0:
        size = min(chunk_size, remaining)
        permuted = rng.permuted(np.tile(form.response, (size, 1)), axis=1)
        exceed += int(np.sum(form.statistic(permuted) >= threshold))
        remaining -= size

    return (1 + exceed) / (1 + n_permutations)


def split_test(
    response: np.ndarray,
    predictor: np.ndarray,
    predictor_type: PredictorType,
    n_permutations: Optional[int] = None,
    rng: Optional[np.random.Generator] = None
) -> AssociationResult:
    """
    Test association between the response and one predictor.

    Args:
        response: Response values at the node
        predictor: Encoded predictor values at the node
        predictor_type: Tag selecting the test from SPLIT_TESTS
        n_permutations: If given, use a permutation p-value with this many resamples
        rng: Random generator for the permutation test

    Returns:
        AssociationResult. Degenerate inputs (constant predictor, a single
        level, constant response, fewer than 2 records) give p_value = 1.
    """
    response = np.asarray(response, dtype=float)
    form = SPLIT_TESTS[predictor_type](response, predictor)

    if form is None:
        return AssociationResult(statistic=0.0, degrees_of_freedom=0, p_value=1.0)

    statistic = float(form.statistic(form.response[np.newaxis, :])[0])

    if n_permutations:
        if rng is None:
            rng = np.random.default_rng()
        p_value = permutation_p_value(form, n_permutations, rng)
    else:
        p_value = float(stats.chi2.sf(statistic, form.degrees_of_freedom))

    return AssociationResult(
        statistic=statistic,
        degrees_of_freedom=form.degrees_of_freedom,
        p_value=min(1.0, max(0.0, p_value))
    )


def bonferroni_adjust(p_value: float, n_tests: int) -> float:
    """
    Bonferroni-adjusted p-value.

    Formula:
        p_adj = min(1, m × p)

    Args:
        p_value: Raw p-value
        n_tests: Number of simultaneous tests m

    Returns:
        Adjusted p-value in [0, 1]
    """
    if n_tests < 1:
        raise ValueError("n_tests must be >= 1")
    return min(1.0, p_value * n_tests)
