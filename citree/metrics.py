"""
Regression metrics used as tuning objectives.

    RMSE = sqrt(mean((y - ŷ)²))          lower is better
    MAE  = mean(|y - ŷ|)                  lower is better
    R²   = 1 - SS_res / SS_tot            higher is better
"""

from dataclasses import dataclass
from typing import Callable, Dict, Union

import numpy as np


def rmse(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    y_true, y_pred = np.asarray(y_true, dtype=float), np.asarray(y_pred, dtype=float)
    return float(np.sqrt(np.mean((y_true - y_pred) ** 2)))


def mae(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    y_true, y_pred = np.asarray(y_true, dtype=float), np.asarray(y_pred, dtype=float)
    return float(np.mean(np.abs(y_true - y_pred)))


def r2_score(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    """Coefficient of determination. A constant y_true scores 1 if predicted exactly, else 0."""
    y_true, y_pred = np.asarray(y_true, dtype=float), np.asarray(y_pred, dtype=float)
    ss_res = float(np.sum((y_true - y_pred) ** 2))
    ss_tot = float(np.sum((y_true - y_true.mean()) ** 2))
    if ss_tot == 0:
        return 1.0 if ss_res == 0 else 0.0
    return 1.0 - ss_res / ss_tot


@dataclass(frozen=True)
class Metric:
    """
    A scoring function with its direction.

    Attributes:
        name: Registry name
        function: Callable (y_true, y_pred) -> float
        greater_is_better: Direction used by the tuner and the 1-SE rule
    """
    name: str
    function: Callable[[np.ndarray, np.ndarray], float]
    greater_is_better: bool

    def __call__(self, y_true: np.ndarray, y_pred: np.ndarray) -> float:
        return self.function(y_true, y_pred)


METRICS: Dict[str, Metric] = {
    "rmse": Metric("rmse", rmse, greater_is_better=False),
    "mae": Metric("mae", mae, greater_is_better=False),
    "r2": Metric("r2", r2_score, greater_is_better=True),
}


def get_metric(metric: Union[str, Metric]) -> Metric:
    if isinstance(metric, Metric):
        return metric
    try:
        return METRICS[metric.lower()]
    except KeyError:
        raise ValueError(f"Unknown metric {metric!r}, expected one of {sorted(METRICS)}") from None
