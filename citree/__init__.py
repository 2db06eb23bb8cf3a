"""
citree: Conditional inference regression trees.

Recursive partitioning that picks each split variable with a
multiplicity-adjusted independence test and each cut point by squared-error
reduction, after:

- Hothorn, T., Hornik, K. & Zeileis, A. (2006). Unbiased recursive
  partitioning: a conditional inference framework. Journal of Computational
  and Graphical Statistics, 15(3), 651-674.

Hyperparameters (max_depth, min_criterion, min_node_size) can be tuned by
simulated annealing over cross-validated error, followed by
best-within-one-standard-error model selection.
"""

from loguru import logger

from .builder import TreeBuilder
from .config import PredictorConfig, TreeConfig
from .data import Dataset
from .estimator import ConditionalInferenceTree
from .exceptions import (
    CITreeError,
    DomainError,
    EmptyNodeError,
    InvalidConfig,
    NotFittedError,
    ResamplingError,
)
from .history import NodeHistory, PredictorEvaluation, TreeHistory
from .logging import PACKAGE_NAME, enable_logging
from .metrics import get_metric, mae, r2_score, rmse
from .node import Node
from .resampling import Fold, make_folds
from .selection import SplitVariable, select_variable
from .splitting import BinarySplit, find_split
from .statistics import AssociationResult, bonferroni_adjust, split_test
from .tree import Tree
from .tuning import (
    HyperparameterSpace,
    IterationRecord,
    SearchHistory,
    SearchState,
    SimulatedAnnealingTuner,
    TuningResult,
    cross_validation_objective,
    select_within_one_se,
    tune_and_fit,
)
from .types import PredictorType, UnseenCategoryPolicy

logger.disable(PACKAGE_NAME)

__version__ = "1.0.0"

__all__ = [
    "AssociationResult",
    "BinarySplit",
    "CITreeError",
    "ConditionalInferenceTree",
    "Dataset",
    "DomainError",
    "EmptyNodeError",
    "Fold",
    "HyperparameterSpace",
    "InvalidConfig",
    "IterationRecord",
    "Node",
    "NodeHistory",
    "NotFittedError",
    "PredictorConfig",
    "PredictorEvaluation",
    "PredictorType",
    "ResamplingError",
    "SearchHistory",
    "SearchState",
    "SimulatedAnnealingTuner",
    "SplitVariable",
    "Tree",
    "TreeBuilder",
    "TreeConfig",
    "TreeHistory",
    "TuningResult",
    "UnseenCategoryPolicy",
    "bonferroni_adjust",
    "cross_validation_objective",
    "enable_logging",
    "find_split",
    "get_metric",
    "mae",
    "make_folds",
    "r2_score",
    "rmse",
    "select_variable",
    "select_within_one_se",
    "split_test",
    "tune_and_fit",
]
