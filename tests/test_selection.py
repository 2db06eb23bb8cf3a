import numpy as np
import pytest

from citree import (
    Dataset,
    EmptyNodeError,
    PredictorConfig,
    PredictorType,
    TreeConfig,
    select_variable,
)
from citree.history import NodeHistory
from citree.selection import evaluate_predictors

from conftest import make_linear_data


def _select(dataset: Dataset, config: TreeConfig, **kwargs):
    return select_variable(
        dataset.columns, dataset.response, list(dataset.predictors.values()), config, **kwargs
    )


def test_signal_predictor_selected_at_root_across_seeds():
    config = TreeConfig(max_depth=3, min_criterion=0.95)
    chosen = []
    for seed in range(20):
        X, y = make_linear_data(n=500, seed=seed)
        variable = _select(Dataset.from_frame(X, y), config)
        chosen.append(variable.name if variable is not None else None)

    assert chosen.count("A") >= 19


def test_no_association_returns_none():
    x = np.arange(1, 9, dtype=float)
    # Orthogonal to the centred x, so the correlation is exactly zero
    y = np.array([1.0, -1.0, -1.0, 1.0, 1.0, -1.0, -1.0, 1.0])
    dataset = Dataset.from_frame({"x": x}, y)

    assert _select(dataset, TreeConfig()) is None


def test_adjusted_p_values_are_bonferroni_over_candidates(linear_dataset):
    history = NodeHistory(node_id=0, depth=0, n_observations=len(linear_dataset))
    _select(linear_dataset, TreeConfig(), node_history=history)

    for evaluation in history.predictor_evaluations.values():
        assert evaluation.adjusted_p_value == pytest.approx(min(1.0, 2 * evaluation.p_value))
        assert evaluation.criterion == pytest.approx(1.0 - evaluation.adjusted_p_value)


def test_history_marks_selected_predictor(linear_dataset):
    history = NodeHistory(node_id=0, depth=0, n_observations=len(linear_dataset))
    variable = _select(linear_dataset, TreeConfig(), node_history=history)

    assert variable.name == "A"
    assert history.predictor_evaluations["A"].was_selected
    assert not history.predictor_evaluations["B"].was_selected

    frame = history.to_frame()
    assert list(frame["predictor"]) == ["A", "B"]
    assert frame.loc[frame["selected"], "predictor"].tolist() == ["A"]


def test_equal_p_values_favor_first_declared():
    x = np.arange(40, dtype=float)
    y = x + np.tile([0.0, 5.0], 20)
    columns = {"first": x, "second": x.copy()}
    candidates = [PredictorConfig("first"), PredictorConfig("second")]

    assert select_variable(columns, y, candidates, TreeConfig()).name == "first"
    assert select_variable(columns, y, candidates[::-1], TreeConfig()).name == "second"


def test_zero_records_raises():
    with pytest.raises(EmptyNodeError):
        select_variable({"x": np.array([])}, np.array([]), [PredictorConfig("x")], TreeConfig())


def test_threaded_evaluation_matches_sequential(mixed_data):
    X, y = mixed_data
    dataset = Dataset.from_frame(X, y, {"grade": "ordinal"})
    candidates = list(dataset.predictors.values())

    sequential = evaluate_predictors(dataset.columns, dataset.response, candidates, TreeConfig(n_jobs=1))
    threaded = evaluate_predictors(dataset.columns, dataset.response, candidates, TreeConfig(n_jobs=2))

    assert [r.p_value for r in sequential] == [r.p_value for r in threaded]


def test_permutation_p_values_reproducible_at_a_position(linear_dataset):
    config = TreeConfig(test_type="permutation", n_permutations=49, random_state=3)
    candidates = list(linear_dataset.predictors.values())
    run = lambda position: evaluate_predictors(
        linear_dataset.columns, linear_dataset.response, candidates, config, position
    )

    assert [r.p_value for r in run(5)] == [r.p_value for r in run(5)]


def test_selected_type_is_reported(mixed_data):
    X, y = mixed_data
    dataset = Dataset.from_frame(X, y)

    variable = _select(dataset, TreeConfig())

    assert variable.name == "region"
    assert variable.predictor_type == PredictorType.NOMINAL
    assert variable.criterion > 0.95
