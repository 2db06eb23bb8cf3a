"""
Hyperparameter and predictor configuration.

TreeConfig is immutable and validated when constructed: a value outside its
domain raises InvalidConfig immediately and is never clamped.

Hyperparameters:
- max_depth: Leaves sit at depth <= max_depth (root depth = 0)
- min_criterion: Minimum 1 - adjusted p-value required to split, in (0, 1)
- min_node_size: Minimum records in each child of a split
"""

from dataclasses import asdict, dataclass, field, replace
from numbers import Integral, Real
from typing import Any, Dict, List, Optional

from .exceptions import InvalidConfig
from .types import PredictorType, UnseenCategoryPolicy


TEST_TYPES = ("asymptotic", "permutation")


def _require_int(name: str, value: Any, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise InvalidConfig(name, value, "must be an integer")
    if value < minimum:
        raise InvalidConfig(name, value, f"must be >= {minimum}")


@dataclass(frozen=True)
class TreeConfig:
    """
    Hyperparameter configuration for one tree build.

    Attributes:
        max_depth: Maximum depth of any leaf (default 5)
        min_criterion: Minimum (1 - Bonferroni-adjusted p-value) needed to split (default 0.95)
        min_node_size: Minimum number of records per child node (default 7)
        test_type: "asymptotic" chi-square approximation or "permutation" Monte-Carlo test
        n_permutations: Resamples for the permutation test (default 999)
        max_nominal_levels: Above this many levels a nominal split is searched with the
                            ordered-category heuristic instead of full enumeration
        unseen_category: Routing policy for values a split never saw
        random_state: Seed for permutation tests
        n_jobs: Number of threads used to test predictors at a node
    """
    max_depth: int = 5
    min_criterion: float = 0.95
    min_node_size: int = 7
    test_type: str = "asymptotic"
    n_permutations: int = 999
    max_nominal_levels: int = 10
    unseen_category: UnseenCategoryPolicy = UnseenCategoryPolicy.LARGER_CHILD
    random_state: int = 0
    n_jobs: int = 1

    def __post_init__(self):
        _require_int("max_depth", self.max_depth, 1)
        _require_int("min_node_size", self.min_node_size, 1)
        _require_int("n_permutations", self.n_permutations, 1)
        _require_int("max_nominal_levels", self.max_nominal_levels, 2)
        _require_int("random_state", self.random_state, 0)

        if isinstance(self.min_criterion, bool) or not isinstance(self.min_criterion, Real):
            raise InvalidConfig("min_criterion", self.min_criterion, "must be a real number")
        if not (0 < self.min_criterion < 1):
            raise InvalidConfig("min_criterion", self.min_criterion, "must be in (0, 1)")

        if self.test_type not in TEST_TYPES:
            raise InvalidConfig("test_type", self.test_type, f"must be one of {TEST_TYPES}")

        if isinstance(self.n_jobs, bool) or not isinstance(self.n_jobs, Integral) or self.n_jobs == 0:
            raise InvalidConfig("n_jobs", self.n_jobs, "must be a non-zero integer")

        if not isinstance(self.unseen_category, UnseenCategoryPolicy):
            try:
                policy = UnseenCategoryPolicy(self.unseen_category)
            except ValueError:
                raise InvalidConfig(
                    "unseen_category", self.unseen_category,
                    f"must be one of {[p.value for p in UnseenCategoryPolicy]}"
                ) from None
            object.__setattr__(self, "unseen_category", policy)

    def replace(self, **changes: Any) -> "TreeConfig":
        """Return a validated copy with the given fields changed."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Plain dictionary view (enums as their values)."""
        result = asdict(self)
        result["unseen_category"] = self.unseen_category.value
        return result

    @property
    def hyperparameters(self) -> Dict[str, Any]:
        """The three tuned hyperparameters."""
        return {
            "max_depth": self.max_depth,
            "min_criterion": self.min_criterion,
            "min_node_size": self.min_node_size,
        }


@dataclass(frozen=True)
class PredictorConfig:
    """
    Configuration for a predictor variable.

    Attributes:
        name: Column name in the data
        predictor_type: CONTINUOUS, ORDINAL, or NOMINAL
        ordered_categories: For ordinal predictors, the category order
    """
    name: str
    predictor_type: PredictorType = PredictorType.CONTINUOUS
    ordered_categories: Optional[List] = field(default=None, hash=False)

    def __post_init__(self):
        if not isinstance(self.predictor_type, PredictorType):
            object.__setattr__(self, "predictor_type", PredictorType(str(self.predictor_type).lower()))
        if self.ordered_categories is not None:
            if self.predictor_type != PredictorType.ORDINAL:
                raise ValueError(f"ordered_categories given for non-ordinal predictor {self.name!r}")
            categories = list(self.ordered_categories)
            if len(set(categories)) != len(categories):
                raise ValueError(f"ordered_categories of {self.name!r} contain duplicates")
            object.__setattr__(self, "ordered_categories", categories)
