# Resampled model evaluation
# Candidates x folds are independent work units run through a joblib pool;
# a unit failure is recorded in the ledger and the remaining units carry on.

import weakref
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from .aggregate import MetricRecord, aggregate, average_confusion_matrix, summary_frame
from .errors import FitterFailureError, HoldoutReusedError
from .metrics import ConfusionCounts, ScoreResult, score
from .models import build_model, task_for_model
from .partition import Fold, Split
from .preprocessing import FittedRecipe, Recipe, build_recipe


@dataclass(frozen=True)
class Candidate:
    """A named (recipe, model) pairing."""
    name: str
    recipe: Recipe
    model_type: str
    params: Dict[str, Any] = field(default_factory=dict)
    seed: Optional[int] = None

    @property
    def task(self):
        return task_for_model(self.model_type)

    def build_model(self):
        return build_model(self.model_type, self.params, self.seed)


@dataclass
class UnitOutcome:
    """Ledger entry for one (candidate, fold) unit."""
    candidate: str
    fold_id: str
    records: List[MetricRecord] = field(default_factory=list)
    confusion: Optional[ConfusionCounts] = None
    error: Optional[FitterFailureError] = None

    @property
    def ok(self):
        return self.error is None

    def as_dict(self):
        return {
            'candidate': self.candidate,
            'fold_id': self.fold_id,
            'status': 'ok' if self.ok else 'failed',
            'stage': None if self.ok else self.error.stage,
            'error': None if self.ok else str(self.error),
            'undefined_metrics': {r.metric: r.error for r in self.records if r.value is None},
        }


def resolve_positive_class(y, positive_class=None):
    """Return positive_class if given, otherwise the least frequent outcome level."""
    if positive_class is not None:
        if positive_class not in set(y.unique()):
            raise ValueError(f"Positive class {positive_class!r} not found in outcome levels {sorted(y.unique())}")
        return positive_class
    return y.value_counts().sort_index().idxmin()


def _fit_and_score(candidate, fold_id, fit_frame, score_frame, positive_class):
    """
    Fit candidate on fit_frame and score it on score_frame.

    Any failure is raised as FitterFailureError naming the stage that broke.
    """
    stage = 'preprocess'
    try:
        fitted_recipe = candidate.recipe.fit(fit_frame)
        X_fit, y_fit = fitted_recipe.fit_transform(fit_frame)
        X_score, y_score = fitted_recipe.transform(score_frame)

        stage = 'fit'
        model = candidate.build_model().fit(X_fit, y_fit)

        stage = 'predict'
        result = score(model, X_score, y_score, candidate.task, positive_class)
    except Exception as e:
        raise FitterFailureError(candidate.name, fold_id, stage, e) from e
    return fitted_recipe, model, result


def evaluate_unit(candidate, fold, training, positive_class=None):
    """Fit on the fold's training rows, score on its validation rows."""
    try:
        _, _, result = _fit_and_score(
            candidate,
            fold.fold_id,
            fold.fold_train(training),
            fold.fold_validation(training),
            positive_class,
        )
    except FitterFailureError as e:
        return UnitOutcome(candidate=candidate.name, fold_id=fold.fold_id, error=e)

    records = [
        MetricRecord(candidate.name, fold.fold_id, metric, value, result.errors.get(metric))
        for metric, value in result.values.items()
    ]
    return UnitOutcome(candidate.name, fold.fold_id, records=records, confusion=result.confusion)


class EvaluationResult:
    """Ledger, fold-level records and summaries of one evaluation run."""

    def __init__(self, outcomes: List[UnitOutcome], positive_class=None):
        self.outcomes = outcomes
        self.positive_class = positive_class

    @property
    def records(self):
        return [r for o in self.outcomes for r in o.records]

    @property
    def failures(self):
        return [o.error for o in self.outcomes if not o.ok]

    @property
    def summary(self):
        return aggregate(self.records)

    @property
    def confusion(self):
        """Averaged confusion counts per classification candidate."""
        per_candidate = {}
        for o in self.outcomes:
            if o.ok and o.confusion is not None:
                per_candidate.setdefault(o.candidate, []).append(o.confusion)
        return {name: average_confusion_matrix(counts) for name, counts in per_candidate.items()}

    def ledger(self):
        return [o.as_dict() for o in self.outcomes]

    def summary_frame(self):
        return summary_frame(self.records)

    def fold_frame(self):
        return pd.DataFrame(
            [{'candidate': r.candidate, 'fold_id': r.fold_id, 'metric': r.metric,
              'value': r.value, 'error': r.error} for r in self.records],
            columns=['candidate', 'fold_id', 'metric', 'value', 'error'],
        )

    def best_candidate(self, metric, maximize=True):
        scores = {
            name: metrics[metric].mean
            for name, metrics in self.summary.items()
            if metric in metrics and not np.isnan(metrics[metric].mean)
        }
        if not scores:
            raise ValueError(f"No candidate has a defined '{metric}'")
        pick = max if maximize else min
        return pick(scores, key=scores.get)


class ResampledEvaluator:
    """
    Evaluate every candidate on every fold.

    The same folds are used for all candidates. Pass a ``joblib.Parallel``
    instance to spread units over workers; it is used for this run only.
    """

    def __init__(self, candidates: List[Candidate], folds: List[Fold], outcome, positive_class=None):
        names = [c.name for c in candidates]
        if len(set(names)) != len(names):
            raise ValueError(f"Candidate names must be unique, got {names}")
        self.candidates = list(candidates)
        self.folds = list(folds)
        self.outcome = outcome
        self.positive_class = positive_class

    def evaluate(self, training, parallel=None):
        positive = None
        if any(c.task == 'classification' for c in self.candidates):
            positive = resolve_positive_class(training[self.outcome], self.positive_class)

        print(f"Evaluating {len(self.candidates)} candidate(s) x {len(self.folds)} folds...")

        units = (
            delayed(evaluate_unit)(candidate, fold, training, positive)
            for candidate in self.candidates
            for fold in self.folds
        )
        if parallel is None:
            with Parallel(n_jobs=1) as sequential:
                outcomes = sequential(units)
        else:
            outcomes = parallel(units)

        result = EvaluationResult(list(outcomes), positive_class=positive)
        for failure in result.failures:
            print(f"  FAILED: {failure}")
        return result


@dataclass
class FinalFit:
    """Candidate fitted on all of training and scored once on testing."""
    candidate: str
    recipe: FittedRecipe
    model: Any
    scores: ScoreResult
    positive_class: Any = None

    def predict(self, frame):
        X, _ = self.recipe.transform(frame)
        return self.model.predict(X)


# Splits whose testing partition has been scored
_SCORED_SPLITS = weakref.WeakSet()


class Holdout:
    """
    Guards the testing partition.

    ``last_fit`` may be called once per Split, whichever Holdout wraps it.
    A second call raises HoldoutReusedError, and a failure inside it is fatal.
    """

    def __init__(self, split: Split, outcome, positive_class=None):
        self.split = split
        self.outcome = outcome
        self.positive_class = positive_class

    @property
    def used(self):
        return self.split in _SCORED_SPLITS

    def last_fit(self, candidate: Candidate):
        if self.used:
            raise HoldoutReusedError("The testing partition has already been scored in this run")
        _SCORED_SPLITS.add(self.split)

        positive = None
        if candidate.task == 'classification':
            positive = resolve_positive_class(self.split.training[self.outcome], self.positive_class)

        fitted_recipe, model, result = _fit_and_score(
            candidate, 'holdout', self.split.training, self.split.testing, positive
        )
        return FinalFit(candidate.name, fitted_recipe, model, result, positive)


def candidates_from_config(config):
    """Build Candidate objects from the 'candidates' section of a config."""
    target = config['data']['target_column']
    seed = config['experiment']['seed']
    candidates = []
    for entry in config['candidates']:
        model_cfg = entry.get('model') or {}
        candidates.append(Candidate(
            name=entry['name'],
            recipe=build_recipe(target, entry.get('preprocessing', []), seed=seed),
            model_type=model_cfg['type'],
            params=model_cfg.get('params', {}) or {},
            seed=seed,
        ))
    return candidates
