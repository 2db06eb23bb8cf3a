"""
Hyperparameter search by simulated annealing.

Search loop:
1. Score the initial configuration (mean of per-fold metrics); it is the
   current and the best configuration.
2. At iteration i draw a neighbour of the current configuration inside a
   radius that shrinks as (max_iters - i) / max_iters.
3. Score it. If its loss is lower than the current loss, accept it. If not,
   accept it with probability exp(-Δ / T_i), where Δ is the loss increase and
   T_i = T_0 × cooling_rate^i. Once T_i underflows to 0, uphill moves are rejected.
4. Stop after max_iters evaluations, or after ``patience`` consecutive
   iterations without a new best.

Losses are the metric itself when lower is better and its negation
otherwise. Every iteration draws from its own random stream seeded by
(random_state, iteration), and every fold fit by (config seed, fold index),
so parallel fold evaluation reproduces a sequential run exactly.

Best-within-one-standard-error selection:
    best   = iteration with the best mean metric
    band   = iterations with |mean - best.mean| <= best.std_error
    choice = simplest configuration in the band: smallest max_depth, then
             highest min_criterion, then largest min_node_size, then earliest
"""

import math
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from loguru import logger

from .builder import TreeBuilder
from .config import TreeConfig
from .data import Dataset, PredictorTypes
from .exceptions import InvalidConfig
from .metrics import Metric, get_metric
from .resampling import Fold, make_folds
from .tree import Tree


ScoreFunction = Callable[[TreeConfig], Union[float, Sequence[float], np.ndarray]]
NeighborFunction = Callable[[TreeConfig, np.random.Generator, float], TreeConfig]


def _reflect(value: float, low: float, high: float) -> float:
    """Fold a value back into [low, high] by mirroring at the bounds."""
    if high <= low:
        return low
    width = high - low
    offset = (value - low) % (2 * width)
    return low + (offset if offset <= width else 2 * width - offset)


@dataclass(frozen=True)
class HyperparameterSpace:
    """
    Bounds and step sizes of the tuned hyperparameters.

    Attributes:
        max_depth: Inclusive integer bounds
        min_criterion: Inclusive bounds, strictly inside (0, 1)
        min_node_size: Inclusive integer bounds
        depth_step: Largest max_depth move at full radius
        criterion_step: Largest min_criterion move at full radius
        node_size_step: Largest min_node_size move at full radius
    """
    max_depth: Tuple[int, int] = (1, 10)
    min_criterion: Tuple[float, float] = (0.01, 0.99)
    min_node_size: Tuple[int, int] = (1, 50)
    depth_step: int = 2
    criterion_step: float = 0.2
    node_size_step: int = 10

    def __post_init__(self):
        if not (1 <= self.max_depth[0] <= self.max_depth[1]):
            raise InvalidConfig("max_depth", self.max_depth, "bounds must satisfy 1 <= low <= high")
        if not (0 < self.min_criterion[0] <= self.min_criterion[1] < 1):
            raise InvalidConfig("min_criterion", self.min_criterion, "bounds must satisfy 0 < low <= high < 1")
        if not (1 <= self.min_node_size[0] <= self.min_node_size[1]):
            raise InvalidConfig("min_node_size", self.min_node_size, "bounds must satisfy 1 <= low <= high")
        if self.depth_step < 1 or self.node_size_step < 1 or self.criterion_step <= 0:
            raise InvalidConfig("step", (self.depth_step, self.criterion_step, self.node_size_step), "must be positive")

    def _integer_move(self, value: int, bounds: Tuple[int, int], step: int,
                      rng: np.random.Generator, radius: float) -> int:
        reach = max(1, int(round(step * radius)))
        moved = value + int(rng.integers(-reach, reach + 1))
        return int(round(_reflect(moved, bounds[0], bounds[1])))

    def neighbor(self, config: TreeConfig, rng: np.random.Generator, radius: float) -> TreeConfig:
        """
        Perturb every tuned hyperparameter within the current radius.

        Integer hyperparameters move by a random integer in [-reach, reach],
        min_criterion by a uniform amount in ±criterion_step × radius; all are
        reflected back into their bounds.
        """
        max_depth = self._integer_move(config.max_depth, self.max_depth, self.depth_step, rng, radius)
        min_node_size = self._integer_move(
            config.min_node_size, self.min_node_size, self.node_size_step, rng, radius
        )
        low, high = self.min_criterion
        moved = config.min_criterion + rng.uniform(-1.0, 1.0) * self.criterion_step * radius
        min_criterion = float(_reflect(moved, low, high))

        return config.replace(max_depth=max_depth, min_criterion=min_criterion, min_node_size=min_node_size)


@dataclass(frozen=True)
class SearchState:
    """
    Annealing state after one iteration. Each iteration returns a new state.

    Attributes:
        iteration: Iteration that produced this state
        temperature: Temperature used at that iteration
        current_config: Configuration the next neighbour is drawn around
        current_loss: Loss of current_config
        best_config: Best configuration so far
        best_loss: Loss of best_config
        since_improvement: Consecutive iterations without a new best
    """
    iteration: int
    temperature: float
    current_config: TreeConfig
    current_loss: float
    best_config: TreeConfig
    best_loss: float
    since_improvement: int = 0


@dataclass(frozen=True, eq=False)
class IterationRecord:
    """
    One evaluated configuration.

    Attributes:
        iteration: Iteration number (0 = initial configuration)
        config: Evaluated configuration
        fold_scores: Metric value per fold
        mean: Mean metric across folds
        std_error: Standard error of the mean across folds
        accepted: Whether the configuration became current
        temperature: Temperature at this iteration
        best_so_far: Best mean metric observed up to and including this iteration
    """
    iteration: int
    config: TreeConfig
    fold_scores: np.ndarray
    mean: float
    std_error: float
    accepted: bool
    temperature: float
    best_so_far: float


@dataclass
class SearchHistory:
    """
    Full record of a search.

    Attributes:
        records: One IterationRecord per evaluated iteration
        greater_is_better: Direction of the metric
        metric_name: Name of the metric
        stopped_early: Whether the patience window ended the search
    """
    records: List[IterationRecord] = field(default_factory=list)
    greater_is_better: bool = False
    metric_name: str = "objective"
    stopped_early: bool = False

    def __len__(self) -> int:
        return len(self.records)

    @property
    def best(self) -> IterationRecord:
        """Record with the best mean metric (earliest on ties)."""
        if not self.records:
            raise ValueError("Search history is empty")
        sign = -1.0 if self.greater_is_better else 1.0
        return min(self.records, key=lambda r: (sign * r.mean, r.iteration))

    @property
    def best_config(self) -> TreeConfig:
        return self.best.config

    def select_within_one_se(self, simplicity: Optional[Callable[[IterationRecord], Any]] = None) -> IterationRecord:
        return select_within_one_se(self, simplicity)

    def to_frame(self) -> pd.DataFrame:
        """
        History as a table.

        Returns:
            DataFrame with iteration, hyperparameters, fold_1..fold_k, mean,
            std_error, accepted, temperature and best_so_far columns
        """
        rows = []
        for record in self.records:
            row: Dict[str, Any] = {"iteration": record.iteration}
            row.update(record.config.hyperparameters)
            for i, score in enumerate(record.fold_scores, start=1):
                row[f"fold_{i}"] = float(score)
            row.update({
                "mean": record.mean,
                "std_error": record.std_error,
                "accepted": record.accepted,
                "temperature": record.temperature,
                "best_so_far": record.best_so_far,
            })
            rows.append(row)
        return pd.DataFrame(rows)


def _simplest(record: IterationRecord) -> Tuple:
    config = record.config
    return (config.max_depth, -config.min_criterion, -config.min_node_size, record.iteration)


def select_within_one_se(
    history: SearchHistory,
    simplicity: Optional[Callable[[IterationRecord], Any]] = None
) -> IterationRecord:
    """
    Best-within-one-standard-error selection.

    Args:
        history: Completed search history
        simplicity: Sort key, smaller = simpler. Defaults to
                    (max_depth, -min_criterion, -min_node_size, iteration)

    Returns:
        The simplest record whose mean lies within one standard error of the best mean
    """
    best = history.best
    band = [r for r in history.records if abs(r.mean - best.mean) <= best.std_error]
    chosen = min(band, key=simplicity or _simplest)
    logger.info(
        "1-SE selection: best mean {:.6g} (se {:.6g}) at iteration {}, chose iteration {} "
        "(max_depth={}, min_criterion={:.4f}, min_node_size={}) from {} candidates",
        best.mean, best.std_error, best.iteration, chosen.iteration,
        chosen.config.max_depth, chosen.config.min_criterion, chosen.config.min_node_size, len(band)
    )
    return chosen


def summarize_scores(scores: np.ndarray) -> Tuple[float, float]:
    """Mean and standard error of the mean across folds (0 for a single fold)."""
    k = len(scores)
    mean = float(np.mean(scores))
    if k < 2:
        return mean, 0.0
    return mean, float(np.std(scores, ddof=1) / math.sqrt(k))


class SimulatedAnnealingTuner:
    """
    Simulated annealing over tree hyperparameters.

    Parameters:
        max_iters: Maximum number of evaluated iterations, initial one included (default 50)
        initial_temperature: T_0. If None, 10% of the initial loss magnitude
        cooling_rate: Geometric decay factor of the temperature, in (0, 1) (default 0.9)
        patience: Stop after this many iterations without a new best (None disables)
        greater_is_better: Direction of the score returned by score_fn
        space: Hyperparameter bounds used by the default neighbour function
        random_state: Seed of the per-iteration random streams
        metric_name: Label stored in the history
    """

    def __init__(
        self,
        max_iters: int = 50,
        initial_temperature: Optional[float] = None,
        cooling_rate: float = 0.9,
        patience: Optional[int] = 10,
        greater_is_better: bool = False,
        space: Optional[HyperparameterSpace] = None,
        random_state: int = 0,
        metric_name: str = "objective"
    ):
        if max_iters < 1:
            raise InvalidConfig("max_iters", max_iters, "must be >= 1")
        if initial_temperature is not None and initial_temperature <= 0:
            raise InvalidConfig("initial_temperature", initial_temperature, "must be > 0")
        if not (0 < cooling_rate < 1):
            raise InvalidConfig("cooling_rate", cooling_rate, "must be in (0, 1)")
        if patience is not None and patience < 1:
            raise InvalidConfig("patience", patience, "must be >= 1 or None")

        self.max_iters = max_iters
        self.initial_temperature = initial_temperature
        self.cooling_rate = cooling_rate
        self.patience = patience
        self.greater_is_better = greater_is_better
        self.space = space if space is not None else HyperparameterSpace()
        self.random_state = random_state
        self.metric_name = metric_name

    def _loss(self, mean: float) -> float:
        return -mean if self.greater_is_better else mean

    def _from_loss(self, loss: float) -> float:
        return -loss if self.greater_is_better else loss

    @staticmethod
    def _advance(
        state: SearchState,
        iteration: int,
        temperature: float,
        candidate: TreeConfig,
        loss: float,
        accepted: bool
    ) -> SearchState:
        improved = loss < state.best_loss
        return replace(
            state,
            iteration=iteration,
            temperature=temperature,
            current_config=candidate if accepted else state.current_config,
            current_loss=loss if accepted else state.current_loss,
            best_config=candidate if improved else state.best_config,
            best_loss=loss if improved else state.best_loss,
            since_improvement=0 if improved else state.since_improvement + 1,
        )

    def search(
        self,
        score_fn: ScoreFunction,
        initial_config: TreeConfig,
        neighbor_fn: Optional[NeighborFunction] = None,
        max_iters: Optional[int] = None
    ) -> SearchHistory:
        """
        Run the annealing search.

        Args:
            score_fn: Maps a configuration to per-fold metric values (or a single value)
            initial_config: Starting configuration
            neighbor_fn: (config, rng, radius) -> config. Defaults to space.neighbor
            max_iters: Overrides the tuner's max_iters

        Returns:
            SearchHistory with one record per evaluated iteration
        """
        max_iters = max_iters if max_iters is not None else self.max_iters
        neighbor_fn = neighbor_fn or self.space.neighbor
        cache: Dict[TreeConfig, np.ndarray] = {}

        def evaluate(config: TreeConfig) -> np.ndarray:
            if config not in cache:
                cache[config] = np.atleast_1d(np.asarray(score_fn(config), dtype=float))
            return cache[config]

        scores = evaluate(initial_config)
        mean, std_error = summarize_scores(scores)
        loss = self._loss(mean)
        t0 = self.initial_temperature
        if t0 is None:
            t0 = max(0.1 * abs(loss), 1e-8)

        state = SearchState(
            iteration=0,
            temperature=t0,
            current_config=initial_config,
            current_loss=loss,
            best_config=initial_config,
            best_loss=loss,
        )
        history = SearchHistory(greater_is_better=self.greater_is_better, metric_name=self.metric_name)
        history.records.append(IterationRecord(
            iteration=0, config=initial_config, fold_scores=scores, mean=mean,
            std_error=std_error, accepted=True, temperature=t0, best_so_far=mean,
        ))
        logger.info("Iteration 0: {} = {:.6g} (se {:.6g})", self.metric_name, mean, std_error)

        for i in range(1, max_iters):
            rng = np.random.default_rng([self.random_state, i])
            temperature = t0 * self.cooling_rate ** i
            radius = (max_iters - i) / max_iters

            candidate = neighbor_fn(state.current_config, rng, radius)
            scores = evaluate(candidate)
            mean, std_error = summarize_scores(scores)
            loss = self._loss(mean)

            delta = loss - state.current_loss
            accepted = delta < 0 or bool(rng.random() < _acceptance_probability(delta, temperature))
            state = self._advance(state, i, temperature, candidate, loss, accepted)

            history.records.append(IterationRecord(
                iteration=i, config=candidate, fold_scores=scores, mean=mean, std_error=std_error,
                accepted=accepted, temperature=temperature, best_so_far=self._from_loss(state.best_loss),
            ))
            logger.info(
                "Iteration {}: max_depth={} min_criterion={:.4f} min_node_size={} -> {} = {:.6g} "
                "(se {:.6g}) {} T={:.3g}",
                i, candidate.max_depth, candidate.min_criterion, candidate.min_node_size,
                self.metric_name, mean, std_error, "accepted" if accepted else "rejected", temperature
            )

            if self.patience is not None and state.since_improvement >= self.patience:
                history.stopped_early = True
                logger.info("No improvement in {} iterations, stopping at iteration {}", self.patience, i)
                break

        return history


def _acceptance_probability(delta: float, temperature: float) -> float:
    """exp(-Δ / T) for a non-negative Δ. Once T has cooled to 0 only neutral moves pass."""
    if delta <= 0:
        return 1.0
    if temperature <= 0:
        return 0.0
    return math.exp(-delta / temperature)


def _fold_seed(random_state: int, fold_index: int) -> int:
    return int(np.random.SeedSequence([random_state, fold_index]).generate_state(1)[0])


def cross_validation_objective(
    dataset: Dataset,
    folds: Sequence[Fold],
    metric: Union[str, Metric] = "rmse",
    n_jobs: int = 1
) -> Callable[[TreeConfig], np.ndarray]:
    """
    Score function fitting one tree per fold.

    Args:
        dataset: Encoded training data
        folds: Cross-validation folds over ``dataset``
        metric: Metric name or Metric
        n_jobs: Threads used to fit folds concurrently

    Returns:
        score_fn(config) -> array of per-fold metric values (fold order)
    """
    metric = get_metric(metric)
    splits = [(fold, dataset.subset(fold.train_indices), dataset.subset(fold.validation_indices)) for fold in folds]

    def score_fold(config: TreeConfig, fold: Fold, train: Dataset, validation: Dataset) -> float:
        fold_config = config.replace(random_state=_fold_seed(config.random_state, fold.index), n_jobs=1)
        tree = TreeBuilder(fold_config).build(train)
        return metric(validation.response, tree.predict_dataset(validation))

    def score_fn(config: TreeConfig) -> np.ndarray:
        if n_jobs == 1:
            scores = [score_fold(config, *split) for split in splits]
        else:
            scores = Parallel(n_jobs=n_jobs, backend="threading")(
                delayed(score_fold)(config, *split) for split in splits
            )
        return np.array(scores, dtype=float)

    return score_fn


@dataclass
class TuningResult:
    """
    Outcome of tune_and_fit.

    Attributes:
        tree: Tree refit on all training data with the selected configuration
        history: Search history
        selected: Record chosen by the best-within-1-SE rule
        folds: Folds used for scoring
    """
    tree: Tree
    history: SearchHistory
    selected: IterationRecord
    folds: List[Fold]


def tune_and_fit(
    X: Union[pd.DataFrame, np.ndarray, Dataset],
    y: Optional[Union[pd.Series, np.ndarray]] = None,
    predictor_types: Optional[PredictorTypes] = None,
    k: int = 10,
    stratify_by: Optional[Union[str, Sequence, np.ndarray]] = None,
    metric: Union[str, Metric] = "rmse",
    initial_config: Optional[TreeConfig] = None,
    max_iters: int = 50,
    patience: Optional[int] = 10,
    space: Optional[HyperparameterSpace] = None,
    random_state: int = 0,
    n_jobs: int = 1
) -> TuningResult:
    """
    Tune by cross-validated simulated annealing, select by the 1-SE rule, refit.

    Args:
        X: Predictor variables, or an encoded Dataset
        y: Numeric response (omit when X is a Dataset)
        predictor_types: Optional predictor type mapping (see Dataset.from_frame)
        k: Number of folds
        stratify_by: Optional stratification field or labels for the folds
        metric: Tuning metric
        initial_config: Starting configuration (defaults to TreeConfig())
        max_iters: Maximum evaluated iterations
        patience: Early-stopping window
        space: Hyperparameter bounds
        random_state: Seed for folds, search and tree fits
        n_jobs: Threads used to fit folds concurrently

    Returns:
        TuningResult
    """
    if isinstance(X, Dataset):
        dataset = X
    else:
        if y is None:
            raise ValueError("y is required unless X is a Dataset")
        dataset = Dataset.from_frame(X, y, predictor_types)

    metric = get_metric(metric)
    initial_config = initial_config or TreeConfig(random_state=random_state)
    folds = make_folds(dataset, k, stratify_by=stratify_by, random_state=random_state)

    tuner = SimulatedAnnealingTuner(
        max_iters=max_iters,
        patience=patience,
        greater_is_better=metric.greater_is_better,
        space=space,
        random_state=random_state,
        metric_name=metric.name,
    )
    history = tuner.search(cross_validation_objective(dataset, folds, metric, n_jobs), initial_config)
    selected = select_within_one_se(history)
    tree = TreeBuilder(selected.config).build(dataset)

    return TuningResult(tree=tree, history=history, selected=selected, folds=folds)
