"""
Binary split search for the selected variable.

Split quality is the reduction in sum of squared errors:

    improvement = SSE(parent) - SSE(left) - SSE(right)
                = S_L² / n_L + S_R² / n_R - S² / n

where S is a sum of responses and n a record count.

Candidates:
- Continuous / ordinal: every midpoint between consecutive distinct values
- Nominal: every bipartition of the k observed levels, 2^(k-1) - 1 in total.
  Above ``max_nominal_levels`` levels the levels are ordered by mean response
  and only the k - 1 contiguous cuts are searched (for squared error this
  ordering contains the optimal partition).

Candidates leaving either child with fewer than ``min_node_size`` records
are discarded. The first candidate (in sorted / enumeration order) with the
largest improvement wins. If nothing survives, None is returned.
"""

from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Tuple

import numpy as np
import pandas as pd

from .exceptions import EmptyNodeError
from .types import PredictorType


@dataclass(frozen=True, eq=False)
class BinarySplit:
    """
    A binary partition of a node's records.

    Attributes:
        variable: Split variable name
        predictor_type: Type of the split variable
        threshold: Cut point for continuous/ordinal splits (left: x <= threshold)
        left_categories: Levels sent left by a nominal split
        right_categories: Levels sent right by a nominal split
        improvement: SSE reduction achieved by the split
        left_indices: Record indices of the left child
        right_indices: Record indices of the right child
    """
    variable: str
    predictor_type: PredictorType
    threshold: Optional[float]
    left_categories: Optional[FrozenSet]
    right_categories: Optional[FrozenSet]
    improvement: float
    left_indices: np.ndarray
    right_indices: np.ndarray


def sum_of_squares(y: np.ndarray) -> float:
    """Sum of squared deviations from the mean (SSE of a constant fit)."""
    if len(y) == 0:
        return 0.0
    return float(((y - y.mean()) ** 2).sum())


def _improvements(
    n_left: np.ndarray,
    s_left: np.ndarray,
    n: int,
    total: float
) -> np.ndarray:
    n_right = n - n_left
    s_right = total - s_left
    return s_left ** 2 / n_left + s_right ** 2 / n_right - total ** 2 / n


def best_ordered_cut(
    x: np.ndarray,
    y: np.ndarray,
    min_node_size: int
) -> Optional[Tuple[float, float]]:
    """
    Best cut of an ordered variable.

    Args:
        x: Numeric (or ordinal position) values
        y: Response values
        min_node_size: Minimum records per child

    Returns:
        (threshold, improvement), or None if no cut is admissible
    """
    order = np.argsort(x, kind="mergesort")
    xs, ys = x[order], y[order]
    n = len(ys)

    # Boundary b separates xs[:b + 1] from xs[b + 1:]
    boundaries = np.nonzero(xs[:-1] != xs[1:])[0]
    n_left = boundaries + 1
    admissible = (n_left >= min_node_size) & (n - n_left >= min_node_size)
    boundaries, n_left = boundaries[admissible], n_left[admissible]
    if len(boundaries) == 0:
        return None

    csum = np.cumsum(ys)
    gains = _improvements(n_left, csum[boundaries], n, csum[-1])
    best = int(np.argmax(gains))
    b = boundaries[best]
    return float((xs[b] + xs[b + 1]) / 2), max(0.0, float(gains[best]))


def sorted_levels(values: np.ndarray) -> List:
    """Distinct levels in sorted order (by repr when levels are not mutually comparable)."""
    levels = list(pd.unique(np.asarray(values, dtype=object)))
    try:
        return sorted(levels)
    except TypeError:
        return sorted(levels, key=repr)


def _level_memberships(k: int) -> np.ndarray:
    # Row r sends level 0 plus the levels set in the bits of r to the left.
    # r = 2^(k-1) - 1 (everything left) is excluded.
    rows = np.arange(2 ** (k - 1) - 1)
    bits = (rows[:, np.newaxis] >> np.arange(k - 1)) & 1
    return np.hstack([np.ones((len(rows), 1), dtype=int), bits])


def best_category_partition(
    x: np.ndarray,
    y: np.ndarray,
    min_node_size: int,
    max_levels: int = 10
) -> Optional[Tuple[FrozenSet, FrozenSet, float]]:
    """
    Best bipartition of a nominal variable's levels.

    Args:
        x: Raw level labels
        y: Response values
        min_node_size: Minimum records per child
        max_levels: Full enumeration up to this many levels, ordered heuristic above

    Returns:
        (left_levels, right_levels, improvement), or None if no partition is admissible
    """
    levels = sorted_levels(x)
    k = len(levels)
    if k < 2:
        return None

    position = {level: i for i, level in enumerate(levels)}
    codes = np.array([position[v] for v in x])
    counts = np.bincount(codes, minlength=k).astype(float)
    sums = np.bincount(codes, weights=y, minlength=k)

    if k <= max_levels:
        membership = _level_memberships(k)
    else:
        order = np.argsort(sums / counts, kind="mergesort")
        membership = np.zeros((k - 1, k), dtype=int)
        for i in range(k - 1):
            membership[i, order[:i + 1]] = 1

    n_left = membership @ counts
    n = len(y)
    admissible = (n_left >= min_node_size) & (n - n_left >= min_node_size)
    if not admissible.any():
        return None

    membership, n_left = membership[admissible], n_left[admissible]
    gains = _improvements(n_left, membership @ sums, n, float(y.sum()))
    best = int(np.argmax(gains))

    left = frozenset(levels[i] for i in range(k) if membership[best, i])
    right = frozenset(levels[i] for i in range(k) if not membership[best, i])
    return left, right, max(0.0, float(gains[best]))


def find_split(
    x: np.ndarray,
    y: np.ndarray,
    indices: np.ndarray,
    variable: str,
    predictor_type: PredictorType,
    min_node_size: int,
    max_nominal_levels: int = 10
) -> Optional[BinarySplit]:
    """
    Find the best binary split of a node on the selected variable.

    Args:
        x: Encoded values of the selected variable at the node
        y: Response values at the node
        indices: Record indices of the node, aligned with x and y
        variable: Name of the selected variable
        predictor_type: Type of the selected variable
        min_node_size: Minimum records per child
        max_nominal_levels: Level count above which nominal splits use the ordered heuristic

    Returns:
        BinarySplit, or None if every candidate leaves a child too small

    Raises:
        EmptyNodeError: If the node holds no records
    """
    if len(indices) == 0:
        raise EmptyNodeError(f"Binary split on {variable!r} invoked on a node with zero records")

    y = np.asarray(y, dtype=float)

    if predictor_type == PredictorType.NOMINAL:
        found = best_category_partition(x, y, min_node_size, max_nominal_levels)
        if found is None:
            return None
        left_levels, right_levels, improvement = found
        goes_left = pd.Series(x, dtype=object).isin(left_levels).to_numpy()
        threshold = None
    else:
        x = np.asarray(x, dtype=float)
        found = best_ordered_cut(x, y, min_node_size)
        if found is None:
            return None
        threshold, improvement = found
        goes_left = x <= threshold
        left_levels = right_levels = None

    return BinarySplit(
        variable=variable,
        predictor_type=predictor_type,
        threshold=threshold,
        left_categories=left_levels,
        right_categories=right_levels,
        improvement=improvement,
        left_indices=indices[goes_left],
        right_indices=indices[~goes_left]
    )
