# Resampled model evaluation package
# Stratified split -> V-fold resamples -> recipe preprocessing -> fit -> score -> aggregate

from .errors import (
    EvaluationError,
    InvalidStrataError,
    LeakageViolationError,
    FitterFailureError,
    MetricUndefinedError,
    HoldoutReusedError,
)
from .config_schema import validate_config, ConfigValidationError
from .io import load_config, save_results, create_run_dir, save_data_profile
from .data import load_dataset, prepare_dataset, validate_data_integrity
from .partition import Split, Fold, split, make_folds
from .preprocessing import Recipe, FittedRecipe, build_recipe, STEP_REGISTRY
from .models import build_model, SUPPORTED_MODELS
from .metrics import ConfusionCounts, ScoreResult, confusion_counts, score
from .aggregate import MetricRecord, MetricSummary, aggregate, average_confusion_matrix, summary_frame
from .evaluator import (
    Candidate,
    ResampledEvaluator,
    EvaluationResult,
    Holdout,
    FinalFit,
    candidates_from_config,
)

__all__ = [
    'EvaluationError',
    'InvalidStrataError',
    'LeakageViolationError',
    'FitterFailureError',
    'MetricUndefinedError',
    'HoldoutReusedError',
    'validate_config',
    'ConfigValidationError',
    'load_config',
    'save_results',
    'create_run_dir',
    'save_data_profile',
    'load_dataset',
    'prepare_dataset',
    'validate_data_integrity',
    'Split',
    'Fold',
    'split',
    'make_folds',
    'Recipe',
    'FittedRecipe',
    'build_recipe',
    'STEP_REGISTRY',
    'build_model',
    'SUPPORTED_MODELS',
    'ConfusionCounts',
    'ScoreResult',
    'confusion_counts',
    'score',
    'MetricRecord',
    'MetricSummary',
    'aggregate',
    'average_confusion_matrix',
    'summary_frame',
    'Candidate',
    'ResampledEvaluator',
    'EvaluationResult',
    'Holdout',
    'FinalFit',
    'candidates_from_config',
]
