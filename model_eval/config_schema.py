# Config schema validation
# Validates config structure, types, candidate definitions and registries

from .models import SUPPORTED_MODELS
from .preprocessing import STEP_REGISTRY

REQUIRED_KEYS = {
    'experiment': ['name', 'seed'],
    'data': ['target_column', 'target_type'],
    'split': ['train_fraction'],
    'cross_validation': ['n_splits'],
}

ALLOWED_TARGET_TYPES = ['regression', 'classification']


class ConfigValidationError(Exception):
    """Raised when config validation fails."""
    pass


def validate_config(config):
    """
    Validate evaluation configuration.

    Args:
        config: dict - Configuration dictionary

    Raises:
        ConfigValidationError if validation fails
    """
    errors = []

    # Check required top-level keys
    for section, required_keys in REQUIRED_KEYS.items():
        if section not in config:
            errors.append(f"Missing required section: '{section}'")
            continue
        for key in required_keys:
            if key not in config[section]:
                errors.append(f"Missing required key: '{section}.{key}'")

    if 'candidates' not in config:
        errors.append("Missing required section: 'candidates'")

    if errors:
        raise ConfigValidationError("Config validation failed:\n  - " + "\n  - ".join(errors))

    target_type = config['data'].get('target_type')
    if target_type not in ALLOWED_TARGET_TYPES:
        errors.append(f"Invalid target_type '{target_type}'. Allowed: {ALLOWED_TARGET_TYPES}")

    # Validate types
    if not isinstance(config['experiment'].get('seed'), int):
        errors.append("experiment.seed must be an integer")

    fraction = config['split'].get('train_fraction')
    if not isinstance(fraction, (int, float)) or not 0 < fraction < 1:
        errors.append(f"split.train_fraction must be between 0 and 1 (exclusive), got {fraction!r}")

    n_splits = config['cross_validation'].get('n_splits')
    if not isinstance(n_splits, int):
        errors.append("cross_validation.n_splits must be an integer")
    elif n_splits < 2:
        errors.append("cross_validation.n_splits must be >= 2")

    n_jobs = config['cross_validation'].get('n_jobs', 1)
    if not isinstance(n_jobs, int) or n_jobs == 0:
        errors.append("cross_validation.n_jobs must be a non-zero integer")

    errors.extend(_validate_candidates(config['candidates'], target_type))

    final_name = (config.get('final_fit') or {}).get('candidate')
    if final_name is not None:
        names = [c.get('name') for c in config['candidates'] if isinstance(c, dict)]
        if final_name not in names:
            errors.append(f"final_fit.candidate '{final_name}' is not a defined candidate")

    if errors:
        raise ConfigValidationError("Config validation failed:\n  - " + "\n  - ".join(errors))

    return True


def _validate_candidates(candidates, target_type):
    """Check every candidate block; returns a list of error strings."""
    errors = []
    if not isinstance(candidates, list) or not candidates:
        return ["candidates must be a non-empty list"]

    seen = set()
    for i, candidate in enumerate(candidates):
        label = candidate.get('name', f"candidates[{i}]") if isinstance(candidate, dict) else f"candidates[{i}]"
        if not isinstance(candidate, dict):
            errors.append(f"{label}: must be a mapping")
            continue

        name = candidate.get('name')
        if not name:
            errors.append(f"{label}: missing 'name'")
        elif name in seen:
            errors.append(f"Duplicate candidate name '{name}'")
        seen.add(name)

        model_type = (candidate.get('model') or {}).get('type')
        if target_type in SUPPORTED_MODELS and model_type not in SUPPORTED_MODELS[target_type]:
            errors.append(
                f"{label}: invalid model type '{model_type}' for {target_type}. "
                f"Allowed: {SUPPORTED_MODELS[target_type]}"
            )

        for step in candidate.get('preprocessing', []) or []:
            step_name = step.get('step') if isinstance(step, dict) else None
            if step_name not in STEP_REGISTRY:
                errors.append(
                    f"{label}: unknown preprocessing step '{step_name}'. "
                    f"Allowed: {sorted(STEP_REGISTRY)}"
                )
            elif target_type == 'regression' and STEP_REGISTRY[step_name].training_only:
                errors.append(f"{label}: step '{step_name}' only applies to classification targets")

    return errors
