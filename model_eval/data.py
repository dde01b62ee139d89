# Data loading and preparation utilities

import numpy as np
import pandas as pd


def load_dataset(config, dataset_path=None):
    """Load a CSV dataset from a local path or URL."""
    path = dataset_path or config['data'].get('dataset_path')
    if not path:
        raise ValueError("No dataset given: set data.dataset_path or pass --dataset")

    print(f"Loading dataset: {path}")
    df = pd.read_csv(path)

    return df, path


def prepare_dataset(df, config):
    """
    Select the modelling columns.

    Optionally derives a binary target from a count column, drops configured
    auxiliary columns and rows missing any drop_missing column, keeps only
    feature_columns (when given) plus the target, and removes rows with a
    missing target.

    Returns:
        DataFrame with feature columns followed by the target column
    """
    target = config['data']['target_column']

    # Binary target derived from a count, e.g. bird_count > 0
    binarize = config['data'].get('binarize')
    if binarize:
        source = binarize['column']
        if source not in df.columns:
            raise ValueError(f"Column '{source}' to binarize not found in dataset")
        df = df.copy()
        df[target] = (df[source] > binarize.get('greater_than', 0)).where(df[source].notnull())
        df = df.drop(columns=[source]) if source != target else df

    cols_to_drop = config['data'].get('columns_to_drop', [])
    df = df.drop(columns=[c for c in cols_to_drop if c in df.columns], errors='ignore')

    drop_missing = config['data'].get('drop_missing', [])
    if drop_missing:
        before = len(df)
        df = df.dropna(subset=[c for c in drop_missing if c in df.columns])
        if len(df) < before:
            print(f"DROPPED {before - len(df)} rows with missing {drop_missing}")

    if target not in df.columns:
        raise ValueError(f"Target column '{target}' not found in dataset. Available: {list(df.columns)}")

    features = config['data'].get('feature_columns')
    if features:
        missing = [c for c in features if c not in df.columns]
        if missing:
            raise ValueError(f"Feature columns not found in dataset: {missing}")
    else:
        features = [c for c in df.columns if c != target]

    df = df[[c for c in features if c != target] + [target]].copy()

    n_missing_target = int(df[target].isnull().sum())
    if n_missing_target:
        print(f"DROPPED {n_missing_target} rows with missing target '{target}'")
        df = df[df[target].notnull()]

    return df


def validate_data_integrity(df, config):
    """
    Validate data before splitting.

    Checks:
    - Target present, no missing values
    - Strata column present, no missing values
    - Classification targets have at least 2 classes
    - Regression (count) targets are numeric and non-negative
    - No infinite values in numeric features
    """
    errors = []
    target = config['data']['target_column']
    strata = config['data'].get('strata_column') or target

    if target not in df.columns:
        raise ValueError(f"Data integrity check failed:\n  - Target column '{target}' not found")

    y = df[target]
    if y.isnull().any():
        errors.append(f"NaN values found in target ({target}): {y.isnull().sum()} missing")

    if strata not in df.columns:
        errors.append(f"Strata column '{strata}' not found")
    elif df[strata].isnull().any():
        errors.append(f"NaN values found in strata column ({strata}): {df[strata].isnull().sum()} missing")

    target_type = config['data'].get('target_type', 'classification')
    if target_type == 'classification':
        if y.nunique() < 2:
            errors.append(f"Classification target '{target}' has fewer than 2 classes")
    else:
        if not pd.api.types.is_numeric_dtype(y):
            errors.append(f"Regression target '{target}' must be numeric, got {y.dtype}")
        elif (y < 0).any():
            errors.append(f"Count target '{target}' has negative values")

    numeric_cols = df.drop(columns=[target]).select_dtypes(include=[np.number]).columns
    for col in numeric_cols:
        values = df[col].dropna()
        if not np.isfinite(values).all():
            errors.append(f"Infinite values found in feature: {col}")

    if errors:
        raise ValueError("Data integrity check failed:\n  - " + "\n  - ".join(errors))

    return True
