import numpy as np
import pytest

from citree import get_metric, mae, r2_score, rmse


def test_rmse():
    assert rmse([1.0, 2.0, 3.0], [1.0, 2.0, 5.0]) == pytest.approx(np.sqrt(4 / 3))


def test_mae():
    assert mae([1.0, 2.0, 3.0], [2.0, 2.0, 1.0]) == pytest.approx(1.0)


def test_r2_perfect_and_mean_predictions():
    y = np.array([1.0, 2.0, 3.0, 4.0])
    assert r2_score(y, y) == 1.0
    assert r2_score(y, np.full(4, y.mean())) == pytest.approx(0.0)


def test_r2_constant_truth():
    assert r2_score([2.0, 2.0], [2.0, 2.0]) == 1.0
    assert r2_score([2.0, 2.0], [1.0, 2.0]) == 0.0


@pytest.mark.parametrize("name, greater_is_better", [("rmse", False), ("MAE", False), ("r2", True)])
def test_registry(name, greater_is_better):
    metric = get_metric(name)
    assert metric.greater_is_better is greater_is_better
    assert metric([0.0, 1.0], [0.0, 1.0]) == (1.0 if greater_is_better else 0.0)


def test_metric_objects_pass_through():
    metric = get_metric("mae")
    assert get_metric(metric) is metric


def test_unknown_metric():
    with pytest.raises(ValueError, match="Unknown metric"):
        get_metric("accuracy")
