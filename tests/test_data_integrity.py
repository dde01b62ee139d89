import pytest
import copy
import numpy as np
import pandas as pd
from model_eval.data import load_dataset, prepare_dataset, validate_data_integrity


def test_prepare_keeps_features_then_target(imbalanced_df, base_classification_config):
    cfg = copy.deepcopy(base_classification_config)
    cfg["data"]["feature_columns"] = ["age", "season"]
    df = prepare_dataset(imbalanced_df, cfg)
    assert list(df.columns) == ["age", "season", "died"]
    assert len(df) == len(imbalanced_df)


def test_prepare_drops_missing_rows(imbalanced_df, base_classification_config):
    cfg = copy.deepcopy(base_classification_config)
    cfg["data"]["drop_missing"] = ["age"]
    df = prepare_dataset(imbalanced_df, cfg)
    assert len(df) == len(imbalanced_df) - 3
    assert df["age"].notnull().all()


def test_prepare_binarizes_count_target(base_classification_config):
    cfg = copy.deepcopy(base_classification_config)
    cfg["data"]["target_column"] = "present"
    cfg["data"]["binarize"] = {"column": "bird_count", "greater_than": 0}
    raw = pd.DataFrame({"bird_type": ["a", "b", "c"], "bird_count": [0, 3, np.nan]})

    df = prepare_dataset(raw, cfg)
    assert "bird_count" not in df.columns
    assert df["present"].tolist() == [False, True]


def test_missing_target_raises(imbalanced_df, base_classification_config):
    cfg = copy.deepcopy(base_classification_config)
    cfg["data"]["target_column"] = "Nonexistent_Target"
    with pytest.raises(ValueError, match="not found"):
        prepare_dataset(imbalanced_df, cfg)


def test_missing_feature_column_raises(imbalanced_df, base_classification_config):
    cfg = copy.deepcopy(base_classification_config)
    cfg["data"]["feature_columns"] = ["age", "ghost"]
    with pytest.raises(ValueError, match="ghost"):
        prepare_dataset(imbalanced_df, cfg)


def test_validate_data_integrity_passes(imbalanced_df, base_classification_config):
    assert validate_data_integrity(imbalanced_df, base_classification_config)


def test_validate_data_integrity_catches_missing_strata(imbalanced_df, base_classification_config):
    cfg = copy.deepcopy(base_classification_config)
    cfg["data"]["strata_column"] = "age"
    with pytest.raises(ValueError, match="strata column"):
        validate_data_integrity(imbalanced_df, cfg)


def test_validate_data_integrity_catches_single_class(imbalanced_df, base_classification_config):
    df = imbalanced_df.copy()
    df["died"] = "no"
    with pytest.raises(ValueError, match="fewer than 2 classes"):
        validate_data_integrity(df, base_classification_config)


def test_validate_data_integrity_catches_negative_counts(count_df, base_regression_config):
    df = count_df.copy()
    df.loc[0, "rmd"] = -1
    with pytest.raises(ValueError, match="negative"):
        validate_data_integrity(df, base_regression_config)


def test_validate_data_integrity_catches_infinite(imbalanced_df, base_classification_config):
    df = imbalanced_df.copy()
    df.loc[0, "height"] = np.inf
    with pytest.raises(ValueError, match="Infinite values"):
        validate_data_integrity(df, base_classification_config)


def test_load_dataset_requires_path(base_classification_config, tmp_path):
    cfg = copy.deepcopy(base_classification_config)
    cfg["data"]["dataset_path"] = None
    with pytest.raises(ValueError, match="No dataset"):
        load_dataset(cfg)

    path = tmp_path / "d.csv"
    pd.DataFrame({"a": [1, 2], "died": ["no", "yes"]}).to_csv(path, index=False)
    df, used = load_dataset(cfg, str(path))
    assert used == str(path)
    assert list(df.columns) == ["a", "died"]
