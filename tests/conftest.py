import pytest
import pandas as pd
import numpy as np


@pytest.fixture(scope="session")
def seed():
    return 42


@pytest.fixture
def imbalanced_df(seed):
    """
    100 records, binary outcome at a 90/10 ratio ('no' / 'yes').
    Includes:
      - two numeric features (one with a few missing values)
      - a nominal feature with a rare level
      - a boolean feature
    """
    rng = np.random.default_rng(seed)
    n = 100
    outcome = np.array(["no"] * 90 + ["yes"] * 10)
    rng.shuffle(outcome)

    df = pd.DataFrame({
        "age": rng.normal(40, 10, size=n).round(),
        "height": rng.normal(5000, 800, size=n),
        "season": rng.choice(["Spring", "Autumn", "Winter"], size=n, p=[0.45, 0.5, 0.05]),
        "hired": rng.integers(0, 2, size=n).astype(bool),
        "died": outcome,
    })
    # Positives are taller on average so real models have signal
    df.loc[df["died"] == "yes", "height"] += 1500
    df.loc[[3, 17, 55], "age"] = np.nan
    return df


@pytest.fixture
def count_df(seed):
    """Zero-inflated counts driven by a single numeric feature."""
    rng = np.random.default_rng(seed)
    n = 200
    x = rng.uniform(0, 2, size=n)
    counts = rng.poisson(np.exp(0.3 + 0.8 * x))
    structural_zero = rng.uniform(size=n) < 0.35
    return pd.DataFrame({"x": x, "rmd": np.where(structural_zero, 0, counts)})


@pytest.fixture
def base_classification_config(tmp_path, seed):
    cfg = {
        "experiment": {
            "name": "pytest_classification",
            "seed": seed,
            "output_dir": str(tmp_path / "runs")
        },
        "data": {
            "dataset_path": "DUMMY.csv",
            "target_column": "died",
            "target_type": "classification",
            "strata_column": "died",
            "positive_class": "yes"
        },
        "split": {
            "train_fraction": 0.75
        },
        "cross_validation": {
            "n_splits": 4,
            "n_jobs": 1
        },
        "candidates": [
            {
                "name": "logistic_regression",
                "model": {"type": "logistic_regression"},
                "preprocessing": [
                    {"step": "impute_median"},
                    {"step": "other", "threshold": 0.1},
                    {"step": "dummy"},
                    {"step": "normalize"},
                    {"step": "smote"}
                ]
            },
            {
                "name": "majority",
                "model": {"type": "majority"},
                "preprocessing": [
                    {"step": "impute_median"},
                    {"step": "dummy"}
                ]
            }
        ],
        "metrics": {"save_plots": False}
    }
    return cfg


@pytest.fixture
def base_regression_config(tmp_path, seed):
    cfg = {
        "experiment": {
            "name": "pytest_regression",
            "seed": seed,
            "output_dir": str(tmp_path / "runs")
        },
        "data": {
            "dataset_path": "DUMMY.csv",
            "target_column": "rmd",
            "target_type": "regression"
        },
        "split": {
            "train_fraction": 0.75
        },
        "cross_validation": {
            "n_splits": 3
        },
        "candidates": [
            {"name": "poisson", "model": {"type": "poisson"}},
            {
                "name": "zip",
                "model": {"type": "zero_inflated_poisson", "params": {"inflation_columns": ["x"]}}
            }
        ],
        "metrics": {"save_plots": False}
    }
    return cfg


@pytest.fixture
def patch_dataset_loader(monkeypatch, imbalanced_df):
    """
    Monkeypatch load_dataset so runs don't hit disk or network.
    """
    def _fake_load_dataset(config, dataset_path=None):
        return imbalanced_df.copy(), "test_dataset.csv"

    monkeypatch.setattr("model_eval.data.load_dataset", _fake_load_dataset)
    monkeypatch.setattr("runners.run_evaluation.load_dataset", _fake_load_dataset)
    return _fake_load_dataset


@pytest.fixture
def write_yaml(tmp_path):
    import yaml
    def _write(cfg, name="temp.yaml"):
        p = tmp_path / name
        with open(p, "w") as f:
            yaml.safe_dump(cfg, f, default_flow_style=False)
        return str(p)
    return _write
