"""
Predictor type enumeration for conditional inference trees.

Each predictor carries a tag that decides which independence test is run
against the response and how binary partitions are enumerated:

- Continuous: real-valued, split at midpoints between distinct values
- Ordinal: ordered categories, split like continuous data on category position
- Nominal: unordered categories, split into two category subsets
"""

from enum import Enum


class PredictorType(Enum):
    """
    Enumeration of predictor types.

    - CONTINUOUS: Association measured by squared Pearson correlation.
                  Candidate cuts: midpoints between consecutive distinct values.

    - ORDINAL: Association measured by squared Spearman (rank) correlation.
               Candidate cuts: midpoints between consecutive category positions.

    - NOMINAL: Association measured by eta squared (between / total sum of squares).
               Candidate splits: all 2^(k-1) - 1 bipartitions of the k observed levels.
    """
    CONTINUOUS = "continuous"
    ORDINAL = "ordinal"
    NOMINAL = "nominal"


class UnseenCategoryPolicy(Enum):
    """
    Routing policy for a value the split never saw during training.

    - LARGER_CHILD: Follow the child holding more training records (left on ties)
    - LEFT: Always follow the left child
    - RIGHT: Always follow the right child
    - RAISE: Raise DomainError
    """
    LARGER_CHILD = "larger_child"
    LEFT = "left"
    RIGHT = "right"
    RAISE = "raise"
