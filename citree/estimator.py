"""
Estimator facade over Dataset, TreeBuilder and Tree.

Algorithm Overview:
1. Selection: Test every predictor for association with the response and
   Bonferroni-adjust the p-values
2. Stopping: Make the node a leaf if 1 - p_adj <= min_criterion
3. Splitting: Find the binary split of the selected predictor with the
   largest SSE reduction
4. Repetition: Grow both children the same way

Stopping Rules:
- min_criterion threshold: Don't partition unless 1 - p_adj > min_criterion
- Maximum depth: Limit tree depth
- Minimum node size: Only consider splits where each child has >= min_node_size records
"""

from typing import Any, Dict, List, Mapping, Optional, Union

import numpy as np
import pandas as pd
from loguru import logger

from .builder import TreeBuilder
from .config import TreeConfig
from .data import Dataset, PredictorTypes
from .exceptions import NotFittedError
from .history import TreeHistory
from .node import Node
from .tree import Records, Tree
from .types import UnseenCategoryPolicy


class ConditionalInferenceTree:
    """
    Conditional inference regression tree.

    Key features:

    - Binary splits
    - Split variable chosen by an independence test, not by impurity
    - Bonferroni correction across predictors
    - Continuous, ordinal and nominal predictors
    - Complete traceability of all tests

    Parameters:
        max_depth: Maximum tree depth (default 5)
        min_criterion: Minimum 1 - adjusted p-value to split (default 0.95)
        min_node_size: Minimum observations per child node (default 7)
        test_type: "asymptotic" or "permutation" (default "asymptotic")
        n_permutations: Resamples for permutation tests (default 999)
        max_nominal_levels: Full bipartition search up to this many levels (default 10)
        unseen_category: Routing policy for unseen values (default "larger_child")
        random_state: Seed for permutation tests (default 0)
        n_jobs: Threads used to test predictors at a node (default 1)

    Attributes:
        config: Validated TreeConfig
        tree_: Fitted Tree (None before fit)
    """

    def __init__(
        self,
        max_depth: int = 5,
        min_criterion: float = 0.95,
        min_node_size: int = 7,
        test_type: str = "asymptotic",
        n_permutations: int = 999,
        max_nominal_levels: int = 10,
        unseen_category: Union[str, UnseenCategoryPolicy] = UnseenCategoryPolicy.LARGER_CHILD,
        random_state: int = 0,
        n_jobs: int = 1
    ):
        self.config = TreeConfig(
            max_depth=max_depth,
            min_criterion=min_criterion,
            min_node_size=min_node_size,
            test_type=test_type,
            n_permutations=n_permutations,
            max_nominal_levels=max_nominal_levels,
            unseen_category=unseen_category,
            random_state=random_state,
            n_jobs=n_jobs,
        )
        self.tree_: Optional[Tree] = None

    @classmethod
    def from_config(cls, config: TreeConfig) -> "ConditionalInferenceTree":
        """Create an unfitted estimator from an existing configuration."""
        estimator = cls.__new__(cls)
        estimator.config = config
        estimator.tree_ = None
        return estimator

    def get_params(self) -> Dict[str, Any]:
        return self.config.to_dict()

    def fit(
        self,
        X: Union[pd.DataFrame, np.ndarray, Dataset],
        y: Optional[Union[pd.Series, np.ndarray]] = None,
        predictor_types: Optional[PredictorTypes] = None
    ) -> "ConditionalInferenceTree":
        """
        Fit the tree to data.

        Args:
            X: Predictor variables (DataFrame or 2D array), or an already encoded Dataset
            y: Numeric response (omit when X is a Dataset)
            predictor_types: Optional dict mapping column names to predictor types.
                             Values can be:
                             - String: 'continuous', 'ordinal', 'nominal'
                             - PredictorType enum
                             - PredictorConfig object (for full configuration)

        Returns:
            self (fitted tree)
        """
        if isinstance(X, Dataset):
            dataset = X
        else:
            if y is None:
                raise ValueError("y is required unless X is a Dataset")
            dataset = Dataset.from_frame(X, y, predictor_types)

        self.tree_ = TreeBuilder(self.config).build(dataset)
        logger.info(
            "Fitted tree on {} records and {} predictors: {} splits, {} leaves, depth {}",
            len(dataset), len(dataset.predictors), self.tree_.n_splits,
            len(self.tree_.get_leaves()), self.tree_.get_depth()
        )
        return self

    def _fitted_tree(self) -> Tree:
        if self.tree_ is None:
            raise NotFittedError("Tree has not been fitted. Call fit() first.")
        return self.tree_

    def predict(self, X: Records) -> np.ndarray:
        """
        Predict responses for samples.

        Args:
            X: Predictor variables

        Returns:
            Array of predicted responses (mean at leaf)
        """
        return self._fitted_tree().predict(X)

    def predict_record(self, record: Mapping[str, Any]) -> float:
        return self._fitted_tree().predict_record(record)

    def apply(self, X: Records) -> np.ndarray:
        return self._fitted_tree().apply(X)

    def variable_importance(self) -> Dict[str, float]:
        return self._fitted_tree().variable_importance()

    def get_leaves(self) -> List[Node]:
        return self._fitted_tree().get_leaves()

    def get_depth(self) -> int:
        return self._fitted_tree().get_depth()

    def get_split_history(self) -> TreeHistory:
        """
        Get complete history of all tests and splits.

        Returns:
            TreeHistory object with full traceability
        """
        return self._fitted_tree().history

    def get_tree_structure(self) -> Dict[str, Any]:
        return self._fitted_tree().get_tree_structure()

    def print_tree(self) -> None:
        if self.tree_ is None:
            print("Tree not fitted.")
            return
        self.tree_.print_tree()
