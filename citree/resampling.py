"""
k-fold partitioning for cross-validation.

Records are assigned to k disjoint validation folds that together cover
every record exactly once. With ``stratify_by`` the records are bucketed by
that field first (continuous fields into quantile bins), shuffled within each
bucket, and dealt round-robin to the folds, so every fold sees roughly the
same distribution of the field. The deal continues across buckets, which
keeps fold sizes within one record of each other. Every stratum must hold at
least k records.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd
from loguru import logger
from pandas.api.types import is_numeric_dtype

from .data import Dataset
from .exceptions import ResamplingError


@dataclass(frozen=True, eq=False)
class Fold:
    """
    One train/validation partition.

    Attributes:
        index: Fold number (0-based)
        train_indices: Sorted indices of the training records
        validation_indices: Sorted indices of the validation records
    """
    index: int
    train_indices: np.ndarray
    validation_indices: np.ndarray


def _stratify_values(
    data: Union[Dataset, pd.DataFrame, int, Sequence],
    stratify_by: Union[str, Sequence, np.ndarray]
) -> np.ndarray:
    if not isinstance(stratify_by, str):
        return np.asarray(stratify_by)

    if isinstance(data, Dataset):
        if stratify_by in data.columns:
            return data.columns[stratify_by]
        if stratify_by == "response":
            return data.response
    elif isinstance(data, pd.DataFrame) and stratify_by in data.columns:
        return data[stratify_by].to_numpy()

    raise ResamplingError(f"Unknown stratification field {stratify_by!r}")


def strata_codes(values: np.ndarray, n_bins: int = 5) -> np.ndarray:
    """
    Bucket labels used for stratification.

    Numeric fields with more than ``n_bins`` distinct values are cut into
    quantile bins; anything else is stratified by its distinct values.
    """
    series = pd.Series(values)
    if is_numeric_dtype(series.dtype) and series.nunique() > n_bins:
        return pd.qcut(series, q=n_bins, labels=False, duplicates="drop").to_numpy().astype(int)
    codes, _ = pd.factorize(series)
    return codes


def make_folds(
    data: Union[Dataset, pd.DataFrame, int, Sequence],
    k: int = 10,
    stratify_by: Optional[Union[str, Sequence, np.ndarray]] = None,
    random_state: int = 0,
    n_bins: int = 5
) -> List[Fold]:
    """
    Partition records into k cross-validation folds.

    Args:
        data: Dataset, DataFrame, any sized collection, or a record count
        k: Number of folds
        stratify_by: Field name (a Dataset predictor, "response", or a DataFrame
                     column) or an array of per-record labels
        random_state: Seed for the shuffle
        n_bins: Quantile bins used to stratify a continuous field

    Returns:
        k Folds with disjoint validation sets covering all records

    Raises:
        ResamplingError: If k < 2, k exceeds the number of records or the size
                         of the smallest stratum, or the stratification field
                         does not match the data
    """
    n = data if isinstance(data, int) else len(data)

    if k < 2:
        raise ResamplingError(f"k ({k}) must be >= 2")
    if k > n:
        raise ResamplingError(f"k ({k}) exceeds the number of records ({n})")

    if stratify_by is None:
        strata = np.zeros(n, dtype=int)
    else:
        values = _stratify_values(data, stratify_by)
        if len(values) != n:
            raise ResamplingError(f"Stratification field has {len(values)} values for {n} records")
        strata = strata_codes(values, n_bins)
        _, counts = np.unique(strata, return_counts=True)
        if counts.min() < k:
            raise ResamplingError(
                f"k ({k}) exceeds the {counts.min()} records of the smallest stratum; "
                f"every stratum needs at least one record per fold"
            )

    rng = np.random.default_rng(random_state)
    assignment = np.empty(n, dtype=int)
    dealt = 0
    for stratum in np.unique(strata):
        members = rng.permutation(np.nonzero(strata == stratum)[0])
        assignment[members] = (dealt + np.arange(len(members))) % k
        dealt += len(members)

    folds = [
        Fold(
            index=i,
            train_indices=np.nonzero(assignment != i)[0],
            validation_indices=np.nonzero(assignment == i)[0],
        )
        for i in range(k)
    ]
    logger.debug(
        "Made {} folds over {} records ({} strata), validation sizes {}",
        k, n, len(np.unique(strata)), [len(f.validation_indices) for f in folds]
    )
    return folds
