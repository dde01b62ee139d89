# Recipe-style preprocessing
# An explicit ordered list of named steps. Parameters are learned only from
# the frame passed to Recipe.fit; resampling steps run on the training side only.

import copy

import numpy as np
import pandas as pd
from sklearn.preprocessing import StandardScaler
from imblearn.over_sampling import SMOTE

from .errors import LeakageViolationError


class Step:
    """
    Base class for preprocessing steps.

    ``fit`` returns a fitted copy and leaves the unfitted step untouched, so
    a single Recipe can be fitted concurrently on several folds.
    """
    training_only = False
    accepts_seed = False

    def fit(self, X, y):
        fitted = copy.deepcopy(self)
        fitted._learn(X, y)
        return fitted

    def _learn(self, X, y):
        pass

    def transform(self, X):
        raise NotImplementedError

    def __repr__(self):
        params = ', '.join(f"{k}={v!r}" for k, v in self.__dict__.items() if not k.startswith('_'))
        return f"{type(self).__name__}({params})"


def _numeric_columns(X):
    return [c for c in X.columns
            if pd.api.types.is_numeric_dtype(X[c]) and not pd.api.types.is_bool_dtype(X[c])]


def _nominal_columns(X):
    return [c for c in X.columns if c not in _numeric_columns(X)]


class ImputeMedian(Step):
    """Fill missing numeric values with the training median."""

    def __init__(self, columns=None):
        self.columns = columns

    def _learn(self, X, y):
        cols = self.columns or _numeric_columns(X)
        self._medians = X[cols].median().to_dict()

    def transform(self, X):
        return X.fillna(value=self._medians)


class ImputeMode(Step):
    """Fill missing nominal values with the most frequent training level."""

    def __init__(self, columns=None):
        self.columns = columns

    def _learn(self, X, y):
        cols = self.columns or _nominal_columns(X)
        self._modes = {}
        for col in cols:
            modes = X[col].mode(dropna=True)
            if not modes.empty:
                self._modes[col] = modes.iloc[0]

    def transform(self, X):
        return X.fillna(value=self._modes)


class OtherLevels(Step):
    """
    Pool infrequent nominal levels into a single 'other' level.

    threshold < 1 is a fraction of training rows, otherwise a row count.
    """

    def __init__(self, threshold=0.05, other='other', columns=None):
        self.threshold = threshold
        self.other = other
        self.columns = columns

    def _learn(self, X, y):
        cols = self.columns or _nominal_columns(X)
        self._keep = {}
        for col in cols:
            counts = X[col].value_counts(dropna=True)
            limit = self.threshold * len(X) if self.threshold < 1 else self.threshold
            kept = counts[counts >= limit].index.tolist()
            if len(kept) < len(counts):
                self._keep[col] = set(kept)

    def transform(self, X):
        X = X.copy()
        for col, kept in self._keep.items():
            values = X[col].astype(object)
            pooled = values.notnull() & ~values.isin(kept)
            X[col] = values.where(~pooled, self.other)
        return X


class DummyEncode(Step):
    """
    Expand nominal columns into indicator columns.

    Levels are learned from training. By default the first level is the
    reference and gets no column; one_hot=True keeps every level. Levels
    unseen at fit time encode as all zeros.
    """

    def __init__(self, columns=None, one_hot=False):
        self.columns = columns
        self.one_hot = one_hot

    def _learn(self, X, y):
        cols = self.columns or _nominal_columns(X)
        self._levels = {col: sorted(X[col].dropna().astype(str).unique()) for col in cols}

    def transform(self, X):
        X = X.copy()
        for col, levels in self._levels.items():
            if col not in X.columns:
                continue
            values = X.pop(col)
            missing = values.isnull()
            as_str = values.astype(str)
            encoded = levels if self.one_hot else levels[1:]
            for level in encoded:
                indicator = (as_str == level).astype(float)
                indicator[missing] = np.nan
                X[f"{col}_{level}"] = indicator
        return X


class ZeroVariance(Step):
    """Drop columns that take a single value in training."""

    def _learn(self, X, y):
        self._drop = [c for c in X.columns if X[c].nunique(dropna=False) <= 1]

    def transform(self, X):
        return X.drop(columns=[c for c in self._drop if c in X.columns])


class Normalize(Step):
    """Center and scale numeric columns with training mean and std."""

    def __init__(self, columns=None):
        self.columns = columns

    def _learn(self, X, y):
        self._columns = self.columns or _numeric_columns(X)
        self._scaler = StandardScaler().fit(X[self._columns]) if self._columns else None

    def transform(self, X):
        if self._scaler is None:
            return X
        X = X.copy()
        X[self._columns] = self._scaler.transform(X[self._columns])
        return X


class Smote(Step):
    """
    Synthetic minority oversampling (training side only).

    Every class below over_ratio * majority count is topped up to that count
    with SMOTE samples. Requires all-numeric, complete features, so it has to
    come after imputation and dummy encoding.
    """
    training_only = True
    accepts_seed = True

    def __init__(self, over_ratio=1.0, neighbors=5, seed=None):
        self.over_ratio = over_ratio
        self.neighbors = neighbors
        self.seed = seed

    def _learn(self, X, y):
        non_numeric = [c for c in X.columns if c not in _numeric_columns(X)]
        if non_numeric:
            raise ValueError(f"SMOTE needs numeric features; encode these first: {non_numeric}")
        if X.isnull().any().any():
            raise ValueError("SMOTE needs complete features; impute missing values first")

        counts = y.value_counts()
        majority = int(counts.max())
        target = int(round(majority * self.over_ratio))
        self._strategy = {cls: target for cls, n in counts.items() if n < target}
        self._minority_count = int(counts.min())
        if self._strategy and self._minority_count < 2:
            raise ValueError(f"SMOTE needs at least 2 minority rows, got {self._minority_count}")

    def resample(self, X, y):
        if not self._strategy:
            return X, y
        smote = SMOTE(
            sampling_strategy=self._strategy,
            k_neighbors=min(self.neighbors, self._minority_count - 1),
            random_state=self.seed,
        )
        X_res, y_res = smote.fit_resample(X, y)
        return pd.DataFrame(X_res, columns=X.columns), pd.Series(y_res, name=y.name)

    def transform(self, X):
        return X


STEP_REGISTRY = {
    'impute_median': ImputeMedian,
    'impute_mode': ImputeMode,
    'other': OtherLevels,
    'dummy': DummyEncode,
    'zero_variance': ZeroVariance,
    'normalize': Normalize,
    'smote': Smote,
}


class Recipe:
    """Ordered sequence of named preprocessing steps for one outcome."""

    def __init__(self, outcome, steps=None):
        self.outcome = outcome
        self.steps = list(steps or [])
        names = [name for name, _ in self.steps]
        if len(set(names)) != len(names):
            raise ValueError(f"Step names must be unique, got {names}")

    def fit(self, training):
        X, y = _split(training, self.outcome)
        if y is None:
            raise ValueError(f"Outcome column '{self.outcome}' missing from training data")

        fitted_steps = []
        for name, step in self.steps:
            fitted = step.fit(X, y)
            if fitted.training_only:
                X, y = fitted.resample(X, y)
            else:
                X = fitted.transform(X)
            fitted_steps.append((name, fitted))

        return FittedRecipe(self.outcome, fitted_steps, training.index, X, y)

    def __repr__(self):
        return f"Recipe(outcome={self.outcome!r}, steps={[name for name, _ in self.steps]})"


class FittedRecipe:
    """
    Frozen result of Recipe.fit.

    ``fit_transform`` returns the processed training data, resampling
    included, and only for the frame the recipe was fitted on.
    ``transform`` is used for everything that gets scored and never resamples.
    """

    def __init__(self, outcome, steps, training_index, X_train, y_train):
        self.outcome = outcome
        self.steps = steps
        self._training_index = training_index
        self._X_train = X_train
        self._y_train = y_train

    def fit_transform(self, training):
        if len(training) != len(self._training_index) or not training.index.equals(self._training_index):
            raise LeakageViolationError(
                "fit_transform called on rows the recipe was not fitted on; "
                "use transform() for validation or test data"
            )
        return self._X_train.copy(), self._y_train.copy()

    def transform(self, frame):
        X, y = _split(frame, self.outcome)
        for _, step in self.steps:
            if not step.training_only:
                X = step.transform(X)
        return X, y


def _split(frame, outcome):
    """Return (features, outcome); outcome is None if the column is absent."""
    y = frame[outcome] if outcome in frame.columns else None
    return frame.drop(columns=[outcome], errors='ignore'), y


def build_recipe(outcome, step_configs, seed=None):
    """
    Build a Recipe from config entries like ``{'step': 'smote', 'over_ratio': 0.5}``.

    An optional 'name' key labels the step; repeated step types get a
    numeric suffix.
    """
    steps = []
    seen = {}
    for cfg in step_configs or []:
        options = dict(cfg)
        step_type = options.pop('step')
        if step_type not in STEP_REGISTRY:
            raise ValueError(f"Unknown preprocessing step '{step_type}'. Supported: {sorted(STEP_REGISTRY)}")
        label = options.pop('name', step_type)
        seen[label] = seen.get(label, 0) + 1
        if seen[label] > 1:
            label = f"{label}_{seen[label]}"

        cls = STEP_REGISTRY[step_type]
        if cls.accepts_seed:
            options.setdefault('seed', seed)
        steps.append((label, cls(**options)))
    return Recipe(outcome, steps)
