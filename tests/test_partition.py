import numpy as np
import pandas as pd
import pytest
from model_eval.partition import split, make_folds, strata_labels
from model_eval.errors import InvalidStrataError


def test_split_is_deterministic_given_seed(imbalanced_df, seed):
    s1 = split(imbalanced_df, "died", 0.75, seed)
    s2 = split(imbalanced_df, "died", 0.75, seed)

    assert s1.training.index.equals(s2.training.index)
    assert s1.testing.index.equals(s2.testing.index)


def test_split_changes_with_seed(imbalanced_df, seed):
    s1 = split(imbalanced_df, "died", 0.75, seed)
    s2 = split(imbalanced_df, "died", 0.75, seed + 1)
    assert not s1.training.index.equals(s2.training.index)


def test_split_is_disjoint_and_complete(imbalanced_df, seed):
    s = split(imbalanced_df, "died", 0.75, seed)
    train_idx = set(s.training.index)
    test_idx = set(s.testing.index)

    assert train_idx.isdisjoint(test_idx)
    assert train_idx | test_idx == set(imbalanced_df.index)


def test_split_preserves_stratum_proportions(imbalanced_df, seed):
    s = split(imbalanced_df, "died", 0.75, seed)
    for level, n_total in imbalanced_df["died"].value_counts().items():
        n_train = (s.training["died"] == level).sum()
        # Within one row of the requested fraction for every stratum
        assert abs(n_train - 0.75 * n_total) <= 1
        assert (s.testing["died"] == level).sum() == n_total - n_train


def test_split_rejects_missing_strata(imbalanced_df, seed):
    df = imbalanced_df.copy()
    df["died"] = df["died"].astype(object)
    df.loc[0, "died"] = None
    with pytest.raises(InvalidStrataError, match="missing"):
        split(df, "died", 0.75, seed)


def test_split_rejects_singleton_stratum(imbalanced_df, seed):
    df = imbalanced_df.copy()
    df.loc[0, "died"] = "maybe"
    with pytest.raises(InvalidStrataError, match="at least 2"):
        split(df, "died", 0.75, seed)


def test_split_rejects_bad_fraction(imbalanced_df, seed):
    with pytest.raises(ValueError, match="train_fraction"):
        split(imbalanced_df, "died", 1.0, seed)


def test_split_rejects_unknown_strata_column(imbalanced_df, seed):
    with pytest.raises(InvalidStrataError, match="not found"):
        split(imbalanced_df, "nope", 0.75, seed)


def test_folds_are_deterministic_given_seed(imbalanced_df, seed):
    training = split(imbalanced_df, "died", 0.75, seed).training
    f1 = make_folds(training, 5, "died", seed)
    f2 = make_folds(training, 5, "died", seed)
    assert f1 == f2


def test_folds_are_disjoint_and_cover_training(imbalanced_df, seed):
    training = split(imbalanced_df, "died", 0.75, seed).training
    folds = make_folds(training, 4, "died", seed)

    assert [f.fold_id for f in folds] == ["Fold1", "Fold2", "Fold3", "Fold4"]

    all_validation = []
    for fold in folds:
        fold_train = fold.fold_train(training)
        fold_val = fold.fold_validation(training)
        assert set(fold_train.index).isdisjoint(set(fold_val.index))
        assert set(fold_train.index) | set(fold_val.index) == set(training.index)
        all_validation.extend(fold_val.index)

    # Each record is held out exactly once
    assert sorted(all_validation) == sorted(training.index)


def test_folds_are_stratified(imbalanced_df, seed):
    training = split(imbalanced_df, "died", 0.75, seed).training
    n_pos = (training["died"] == "yes").sum()
    for fold in make_folds(training, 4, "died", seed):
        pos_in_fold = (fold.fold_validation(training)["died"] == "yes").sum()
        assert abs(pos_in_fold - n_pos / 4) <= 1


def test_fold_ids_zero_padded_for_ten_folds(imbalanced_df, seed):
    folds = make_folds(imbalanced_df, 10, "died", seed)
    assert folds[0].fold_id == "Fold01"
    assert folds[-1].fold_id == "Fold10"


def test_make_folds_rejects_too_few_folds(imbalanced_df, seed):
    with pytest.raises(ValueError, match="at least 2"):
        make_folds(imbalanced_df, 1, "died", seed)


def test_make_folds_rejects_stratum_smaller_than_fold_count(seed):
    small = pd.DataFrame({"x": np.arange(43.0), "died": ["no"] * 40 + ["yes"] * 3})
    with pytest.raises(InvalidStrataError, match="cannot spread"):
        make_folds(small, 4, "died", seed)

    folds = make_folds(small, 3, "died", seed)
    for fold in folds:
        assert (fold.fold_validation(small)["died"] == "yes").sum() == 1


def test_numeric_strata_binned_into_quartiles(count_df):
    codes = strata_labels(count_df, "x")
    assert len(np.unique(codes)) == 4

    # Few distinct values are used as-is
    small = pd.DataFrame({"k": [0, 1, 2, 0, 1, 2]})
    assert len(np.unique(strata_labels(small, "k"))) == 3
