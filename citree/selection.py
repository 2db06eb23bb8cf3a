"""
Split variable selection.

At every node each candidate predictor is tested for association with the
response. Raw p-values are Bonferroni-adjusted over the number of candidates
and the predictor with the lowest adjusted p-value is chosen, provided

    criterion = 1 - p_adj  >  min_criterion

Otherwise selection returns None and the node becomes a leaf. Exactly equal
adjusted p-values are resolved in favour of the predictor declared first.

Testing predictors independently of the cut point is what keeps the choice of
split variable unbiased towards predictors with many possible cuts.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np
from joblib import Parallel, delayed
from loguru import logger

from .config import PredictorConfig, TreeConfig
from .exceptions import EmptyNodeError
from .history import NodeHistory, PredictorEvaluation
from .statistics import AssociationResult, bonferroni_adjust, split_test
from .types import PredictorType


@dataclass(frozen=True)
class SplitVariable:
    """
    The predictor chosen to split a node.

    Attributes:
        name: Predictor name
        predictor_type: Type of the predictor
        statistic: Test statistic
        p_value: Raw p-value
        adjusted_p_value: Bonferroni-adjusted p-value
        criterion: 1 - adjusted p-value
    """
    name: str
    predictor_type: PredictorType
    statistic: float
    p_value: float
    adjusted_p_value: float
    criterion: float


def _permutation_rng(random_state: int, position: int, predictor_index: int) -> np.random.Generator:
    # Stream depends only on where the node sits in the tree, not on build order
    return np.random.default_rng([random_state, position, predictor_index])


def evaluate_predictors(
    columns: Dict[str, np.ndarray],
    response: np.ndarray,
    candidates: Sequence[PredictorConfig],
    config: TreeConfig,
    position: int = 1
) -> List[AssociationResult]:
    """
    Run the independence test for every candidate predictor.

    Args:
        columns: Encoded predictor values at the node
        response: Response values at the node
        candidates: Candidate predictors in declaration order
        config: Tree configuration (test type, permutations, n_jobs)
        position: Heap position of the node (root = 1), seeds permutation tests

    Returns:
        One AssociationResult per candidate, in candidate order
    """
    n_permutations = config.n_permutations if config.test_type == "permutation" else None

    def run(index: int, predictor: PredictorConfig) -> AssociationResult:
        rng = _permutation_rng(config.random_state, position, index) if n_permutations else None
        return split_test(
            response,
            columns[predictor.name],
            predictor.predictor_type,
            n_permutations=n_permutations,
            rng=rng
        )

    if config.n_jobs == 1 or len(candidates) < 2:
        return [run(i, predictor) for i, predictor in enumerate(candidates)]

    return Parallel(n_jobs=config.n_jobs, backend="threading")(
        delayed(run)(i, predictor) for i, predictor in enumerate(candidates)
    )


def select_variable(
    columns: Dict[str, np.ndarray],
    response: np.ndarray,
    candidates: Sequence[PredictorConfig],
    config: TreeConfig,
    position: int = 1,
    node_history: Optional[NodeHistory] = None
) -> Optional[SplitVariable]:
    """
    Select the split variable at a node.

    Algorithm:
    1. Test every candidate predictor against the response
    2. Adjust each p-value: p_adj = min(1, m × p), m = number of candidates
    3. Take the candidate with the lowest p_adj (first declared on ties)
    4. Accept it if 1 - p_adj > min_criterion

    Args:
        columns: Encoded predictor values at the node
        response: Response values at the node
        candidates: Candidate predictors in declaration order
        config: Tree configuration
        position: Heap position of the node (root = 1)
        node_history: History record to update

    Returns:
        SplitVariable, or None if no predictor is significant

    Raises:
        EmptyNodeError: If the node holds no records
    """
    if len(response) == 0:
        raise EmptyNodeError("Variable selection invoked on a node with zero records")
    if not candidates:
        return None

    results = evaluate_predictors(columns, response, candidates, config, position)
    n_tests = len(candidates)

    best_index = None
    best_adjusted = float("inf")
    evaluations = []

    for i, (predictor, result) in enumerate(zip(candidates, results)):
        adjusted = bonferroni_adjust(result.p_value, n_tests)
        evaluations.append(PredictorEvaluation(
            predictor_name=predictor.name,
            predictor_type=predictor.predictor_type,
            statistic=result.statistic,
            degrees_of_freedom=result.degrees_of_freedom,
            p_value=result.p_value,
            adjusted_p_value=adjusted,
            criterion=1.0 - adjusted
        ))
        # Strict comparison keeps the first declared predictor on ties
        if adjusted < best_adjusted:
            best_adjusted = adjusted
            best_index = i

    if node_history is not None:
        for rec in evaluations:
            node_history.predictor_evaluations[rec.predictor_name] = rec

    best = evaluations[best_index]
    if not best.criterion > config.min_criterion:
        logger.debug(
            "No significant predictor: best {} has criterion {:.6f} <= {}",
            best.predictor_name, best.criterion, config.min_criterion
        )
        return None

    best.was_selected = True
    return SplitVariable(
        name=best.predictor_name,
        predictor_type=best.predictor_type,
        statistic=best.statistic,
        p_value=best.p_value,
        adjusted_p_value=best.adjusted_p_value,
        criterion=best.criterion
    )
