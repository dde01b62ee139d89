# Stratified train/test split and V-fold partitioning
# Every randomized step takes an explicit seed; no global RNG state is touched

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np
import pandas as pd
from sklearn.model_selection import StratifiedKFold

from .errors import InvalidStrataError

# Numeric strata with more distinct values than this are binned into quartiles
MAX_STRATA_LEVELS = 10
NUMERIC_STRATA_BINS = 4


@dataclass(frozen=True, eq=False)
class Split:
    """
    Disjoint training/testing partitions of a dataset.

    Compared and hashed by identity, so a split can be tracked as scored.
    """
    training: pd.DataFrame
    testing: pd.DataFrame
    strata_field: str
    seed: int


@dataclass(frozen=True)
class Fold:
    """
    One V-fold resample of the training partition.

    Positions are row positions into the training frame the folds were made
    from. ``fold_train`` returns every row outside group i (the analysis set),
    ``fold_validation`` returns group i (the assessment set).
    """
    fold_id: str
    train_positions: Tuple[int, ...]
    validation_positions: Tuple[int, ...]

    def fold_train(self, training):
        return training.iloc[list(self.train_positions)]

    def fold_validation(self, training):
        return training.iloc[list(self.validation_positions)]


def strata_labels(frame, strata_field, max_strata_levels=MAX_STRATA_LEVELS):
    """
    Return integer stratum codes for each row of ``frame``.

    Numeric columns with many distinct values (counts, measurements) are
    binned into quartiles so each stratum has enough rows to split.
    """
    if strata_field not in frame.columns:
        raise InvalidStrataError(f"Strata column '{strata_field}' not found. Available: {list(frame.columns)}")

    values = frame[strata_field]
    n_missing = int(values.isnull().sum())
    if n_missing:
        raise InvalidStrataError(f"Strata column '{strata_field}' has {n_missing} missing values")

    if pd.api.types.is_numeric_dtype(values) and not pd.api.types.is_bool_dtype(values) \
            and values.nunique() > max_strata_levels:
        values = pd.qcut(values, q=NUMERIC_STRATA_BINS, labels=False, duplicates='drop')

    codes, _ = pd.factorize(values, sort=True)
    return codes


def split(dataset, strata_field, train_fraction, seed, max_strata_levels=MAX_STRATA_LEVELS):
    """
    Stratified train/test split.

    Each stratum is shuffled with its own draw from a ``RandomState(seed)``
    and contributes round(n * train_fraction) rows to training, clamped so
    both partitions get at least one row of every stratum.

    Raises:
        InvalidStrataError: missing strata values or a stratum with < 2 rows
        ValueError: train_fraction outside (0, 1)
    """
    if not 0 < train_fraction < 1:
        raise ValueError(f"train_fraction must be in (0, 1), got {train_fraction}")

    codes = strata_labels(dataset, strata_field, max_strata_levels)
    rs = np.random.RandomState(seed)

    train_positions = []
    for code in np.unique(codes):
        members = np.flatnonzero(codes == code)
        n = len(members)
        if n < 2:
            raise InvalidStrataError(
                f"Stratum {code} of '{strata_field}' has {n} record(s); at least 2 are needed to split"
            )
        n_train = int(min(max(round(n * train_fraction), 1), n - 1))
        train_positions.append(members[rs.permutation(n)[:n_train]])

    train_positions = np.sort(np.concatenate(train_positions))
    test_mask = np.ones(len(dataset), dtype=bool)
    test_mask[train_positions] = False

    return Split(
        training=dataset.iloc[train_positions],
        testing=dataset.iloc[np.flatnonzero(test_mask)],
        strata_field=strata_field,
        seed=seed,
    )


def make_folds(training, v, strata_field, seed, max_strata_levels=MAX_STRATA_LEVELS) -> List[Fold]:
    """
    Partition training into V stratified folds.

    Returns folds in order Fold1..FoldV (zero padded when V >= 10).
    """
    if v < 2:
        raise ValueError(f"Need at least 2 folds, got {v}")
    if v > len(training):
        raise ValueError(f"Cannot make {v} folds from {len(training)} records")

    codes = strata_labels(training, strata_field, max_strata_levels)
    smallest = int(np.bincount(codes).min())
    if smallest < v:
        raise InvalidStrataError(
            f"Smallest stratum of '{strata_field}' has {smallest} records; cannot spread it over {v} folds"
        )
    cv = StratifiedKFold(n_splits=v, shuffle=True, random_state=seed)
    width = len(str(v))

    folds = []
    for i, (train_idx, val_idx) in enumerate(cv.split(np.zeros(len(codes)), codes)):
        folds.append(Fold(
            fold_id=f"Fold{i + 1:0{width}d}",
            train_positions=tuple(int(p) for p in train_idx),
            validation_positions=tuple(int(p) for p in val_idx),
        ))
    return folds
