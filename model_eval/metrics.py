# Scoring utilities
# Classification: roc_auc, accuracy, sensitivity, specificity + confusion counts
# Regression (count models): rmse, rsq, mae

from dataclasses import dataclass, field
from typing import Dict, Optional

import numpy as np
from sklearn.metrics import mean_absolute_error, mean_squared_error, roc_auc_score

from .errors import MetricUndefinedError

CLASSIFICATION_METRICS = ['roc_auc', 'accuracy', 'sensitivity', 'specificity']
REGRESSION_METRICS = ['rmse', 'rsq', 'mae']


@dataclass(frozen=True)
class ConfusionCounts:
    """Binary confusion-matrix cells. Averaged matrices hold fractional counts."""
    tp: float
    fp: float
    tn: float
    fn: float

    @property
    def total(self):
        return self.tp + self.fp + self.tn + self.fn

    @property
    def accuracy(self):
        if self.total == 0:
            raise MetricUndefinedError('accuracy', 'no records')
        return (self.tp + self.tn) / self.total

    @property
    def sensitivity(self):
        if self.tp + self.fn == 0:
            raise MetricUndefinedError('sensitivity', 'no positive-class records')
        return self.tp / (self.tp + self.fn)

    @property
    def specificity(self):
        if self.tn + self.fp == 0:
            raise MetricUndefinedError('specificity', 'no negative-class records')
        return self.tn / (self.tn + self.fp)

    def as_dict(self):
        return {'tp': self.tp, 'fp': self.fp, 'tn': self.tn, 'fn': self.fn}


@dataclass
class ScoreResult:
    """
    Metrics for one scored partition.

    values maps metric -> float, or None when undefined; errors maps each
    undefined metric to the reason.
    """
    values: Dict[str, Optional[float]] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    confusion: Optional[ConfusionCounts] = None

    def record(self, metric, compute):
        try:
            self.values[metric] = float(compute())
        except MetricUndefinedError as e:
            self.values[metric] = None
            self.errors[metric] = e.reason


def confusion_counts(y_true, y_pred, positive_class):
    y_true = np.asarray(y_true) == positive_class
    y_pred = np.asarray(y_pred) == positive_class
    return ConfusionCounts(
        tp=int(np.sum(y_true & y_pred)),
        fp=int(np.sum(~y_true & y_pred)),
        tn=int(np.sum(~y_true & ~y_pred)),
        fn=int(np.sum(y_true & ~y_pred)),
    )


def roc_auc(y_true, y_score, positive_class):
    """Area under the ROC curve of y_score as a score for positive_class."""
    if y_score is None:
        raise MetricUndefinedError('roc_auc', 'model gives no score for the positive class')
    y_bin = np.asarray(y_true) == positive_class
    if y_bin.all() or not y_bin.any():
        raise MetricUndefinedError('roc_auc', 'only one class present')
    return roc_auc_score(y_bin, np.asarray(y_score, dtype=float))


def rsq(y_true, y_pred):
    """Squared Pearson correlation between truth and prediction."""
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    if np.std(y_true) < 1e-12 or np.std(y_pred) < 1e-12:
        raise MetricUndefinedError('rsq', 'constant truth or prediction')
    return np.corrcoef(y_true, y_pred)[0, 1] ** 2


def predict_for_scoring(model, X, task, positive_class=None):
    """
    Return (y_pred, y_score).

    y_score is the predicted probability of positive_class, or None when the
    model cannot produce it (regression, or a class unseen in training).
    """
    y_pred = model.predict(X)
    if task != 'classification' or not hasattr(model, 'predict_proba'):
        return y_pred, None

    classes = list(model.classes_)
    if positive_class not in classes:
        return y_pred, None
    proba = model.predict_proba(X)
    return y_pred, proba[:, classes.index(positive_class)]


def classification_metrics(y_true, y_pred, y_score, positive_class):
    result = ScoreResult()
    counts = confusion_counts(y_true, y_pred, positive_class)
    result.confusion = counts
    result.record('roc_auc', lambda: roc_auc(y_true, y_score, positive_class))
    result.record('accuracy', lambda: counts.accuracy)
    result.record('sensitivity', lambda: counts.sensitivity)
    result.record('specificity', lambda: counts.specificity)
    return result


def regression_metrics(y_true, y_pred):
    result = ScoreResult()
    if len(y_true) == 0:
        for metric in REGRESSION_METRICS:
            result.values[metric] = None
            result.errors[metric] = 'no records'
        return result
    result.record('rmse', lambda: np.sqrt(mean_squared_error(y_true, y_pred)))
    result.record('rsq', lambda: rsq(y_true, y_pred))
    result.record('mae', lambda: mean_absolute_error(y_true, y_pred))
    return result


def score(model, X, y, task, positive_class=None):
    """Predict on X and score against y."""
    y_pred, y_score = predict_for_scoring(model, X, task, positive_class)
    if task == 'classification':
        return classification_metrics(y, y_pred, y_score, positive_class)
    return regression_metrics(y, y_pred)
