"""
Encoded training data.

A Dataset holds one numpy array per predictor plus the numeric response:

- Continuous predictors: float64 values
- Ordinal predictors: float64 positions in the declared category order
- Nominal predictors: object arrays of the raw labels

Missing values are rejected; imputation is the caller's job.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd
from pandas.api.types import is_numeric_dtype

from .config import PredictorConfig
from .types import PredictorType


PredictorTypes = Mapping[str, Union[str, PredictorType, PredictorConfig]]


def as_frame(X: Union[pd.DataFrame, np.ndarray, Mapping[str, Sequence]]) -> pd.DataFrame:
    if isinstance(X, pd.DataFrame):
        return X
    if isinstance(X, np.ndarray):
        X = np.atleast_2d(X)
        return pd.DataFrame(X, columns=[f"X{i}" for i in range(X.shape[1])])
    return pd.DataFrame(X)


def _resolve_config(name: str, column: pd.Series, declared: Any) -> PredictorConfig:
    """Turn a user-supplied predictor type (or nothing) into a PredictorConfig."""
    if declared is None:
        if isinstance(column.dtype, pd.CategoricalDtype) and column.dtype.ordered:
            return PredictorConfig(
                name=name,
                predictor_type=PredictorType.ORDINAL,
                ordered_categories=list(column.dtype.categories),
            )
        if is_numeric_dtype(column.dtype) and not column.dtype == bool:
            return PredictorConfig(name=name, predictor_type=PredictorType.CONTINUOUS)
        return PredictorConfig(name=name, predictor_type=PredictorType.NOMINAL)

    if isinstance(declared, PredictorConfig):
        if declared.name != name:
            raise ValueError(f"PredictorConfig name {declared.name!r} does not match column {name!r}")
        config = declared
    elif isinstance(declared, PredictorType):
        config = PredictorConfig(name=name, predictor_type=declared)
    elif isinstance(declared, str):
        config = PredictorConfig(name=name, predictor_type=PredictorType(declared.lower()))
    else:
        raise ValueError(f"Invalid predictor config for {name}")

    # Ordinal without an explicit order: use the categorical order or sorted values
    if config.predictor_type == PredictorType.ORDINAL and config.ordered_categories is None:
        if isinstance(column.dtype, pd.CategoricalDtype):
            order = list(column.dtype.categories)
        elif is_numeric_dtype(column.dtype):
            order = None
        else:
            order = sorted(pd.unique(column))
        if order is not None:
            config = PredictorConfig(name=name, predictor_type=PredictorType.ORDINAL, ordered_categories=order)

    return config


def encode_column(values: Any, config: PredictorConfig) -> np.ndarray:
    """
    Encode raw predictor values for training.

    Args:
        values: Raw column values
        config: Predictor configuration

    Returns:
        Encoded 1D array (float64 for continuous/ordinal, object for nominal)
    """
    values = np.asarray(values, dtype=object if config.predictor_type == PredictorType.NOMINAL else None)

    if config.predictor_type == PredictorType.NOMINAL:
        return values.astype(object)

    if config.ordered_categories is not None:
        position = {cat: i for i, cat in enumerate(config.ordered_categories)}
        unknown = [v for v in pd.unique(values) if v not in position]
        if unknown:
            raise ValueError(f"Values {unknown} of {config.name!r} are not in its ordered_categories")
        return np.array([position[v] for v in values], dtype=float)

    try:
        return values.astype(float)
    except (TypeError, ValueError) as exc:
        raise ValueError(
            f"Predictor {config.name!r} is {config.predictor_type.value} but has non-numeric values"
        ) from exc


@dataclass(frozen=True, eq=False)
class Dataset:
    """
    Encoded predictors and response ready for tree induction.

    Attributes:
        columns: Encoded predictor arrays by name
        response: Numeric response (float64)
        predictors: Predictor configurations in declaration order
    """
    columns: Dict[str, np.ndarray]
    response: np.ndarray
    predictors: Dict[str, PredictorConfig]

    def __post_init__(self):
        n = len(self.response)
        for name, column in self.columns.items():
            if len(column) != n:
                raise ValueError(f"Column {name!r} has {len(column)} values, response has {n}")
        if list(self.columns) != list(self.predictors):
            raise ValueError("columns and predictors must name the same predictors in the same order")

    def __len__(self) -> int:
        return len(self.response)

    @property
    def predictor_names(self) -> List[str]:
        return list(self.predictors)

    @classmethod
    def from_frame(
        cls,
        X: Union[pd.DataFrame, np.ndarray, Mapping[str, Sequence]],
        y: Union[pd.Series, np.ndarray, Sequence[float]],
        predictor_types: Optional[PredictorTypes] = None,
    ) -> "Dataset":
        """
        Build a Dataset from tabular input.

        Args:
            X: Predictor variables (DataFrame, 2D array, or mapping of columns)
            y: Numeric response
            predictor_types: Optional dict mapping column names to predictor types.
                             Values can be:
                             - String: 'continuous', 'ordinal', 'nominal'
                             - PredictorType enum
                             - PredictorConfig object (for full configuration)
                             Unlisted columns are inferred from their dtype.

        Returns:
            Encoded Dataset
        """
        frame = as_frame(X)
        response = np.asarray(y, dtype=float).ravel()

        if len(frame) != len(response):
            raise ValueError(f"X has {len(frame)} rows but y has {len(response)} values")
        if np.isnan(response).any():
            raise ValueError("Response contains missing values")
        if frame.shape[1] == 0:
            raise ValueError("At least one predictor is required")

        predictor_types = dict(predictor_types or {})
        unknown = set(predictor_types) - set(frame.columns)
        if unknown:
            raise ValueError(f"predictor_types names unknown columns: {sorted(unknown, key=str)}")

        predictors: Dict[str, PredictorConfig] = {}
        columns: Dict[str, np.ndarray] = {}
        for name in frame.columns:
            column = frame[name]
            if column.isna().any():
                raise ValueError(f"Predictor {name!r} contains missing values")
            config = _resolve_config(name, column, predictor_types.get(name))
            predictors[name] = config
            columns[name] = encode_column(column.to_numpy(), config)

        return cls(columns=columns, response=response, predictors=predictors)

    def subset(self, indices: np.ndarray) -> "Dataset":
        """Rows ``indices`` as a new Dataset (record order follows ``indices``)."""
        indices = np.asarray(indices, dtype=int)
        return Dataset(
            columns={name: column[indices] for name, column in self.columns.items()},
            response=self.response[indices],
            predictors=self.predictors,
        )

    def to_frame(self) -> pd.DataFrame:
        """Encoded predictors as a DataFrame (response excluded)."""
        return pd.DataFrame(self.columns)
