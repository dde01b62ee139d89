# I/O utilities for the evaluation pipeline
# Config loading, result saving, run directory management

import os
import json
import math
import hashlib
from datetime import datetime

import yaml
import joblib
import numpy as np


def load_config(config_path):
    """Load YAML configuration file."""
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)

    if config is None:
        raise ValueError(f"Config file is empty or invalid: {config_path}")

    return config


def config_hash(config):
    """Generate deterministic hash of config for run naming."""
    config_str = json.dumps(config, sort_keys=True, default=str)
    return hashlib.md5(config_str.encode()).hexdigest()[:8]


def dataset_hash(df):
    """Generate hash of dataset content for fingerprinting."""
    # Hash based on shape and sample of data
    content = f"{df.shape}_{df.columns.tolist()}_{df.head(10).to_json()}_{df.tail(10).to_json()}"
    return hashlib.md5(content.encode()).hexdigest()[:12]


def create_run_dir(config, output_dir=None):
    """Create unique run directory for evaluation outputs."""
    output_dir = output_dir or config['experiment'].get('output_dir', 'runs')
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    cfg_hash = config_hash(config)
    run_name = f"{config['experiment']['name']}_{timestamp}_{cfg_hash}"
    run_dir = os.path.join(output_dir, run_name)
    os.makedirs(run_dir, exist_ok=True)
    return run_dir


def _plain(value):
    """Convert numpy scalars and NaN to JSON-friendly values."""
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def evaluation_to_dict(evaluation):
    """Nested candidate -> metric -> {mean, std_err, n, all} mapping plus ledger and confusion."""
    fold_values = {}
    for record in evaluation.records:
        fold_values.setdefault(record.candidate, {}).setdefault(record.metric, []).append(_plain(record.value))

    candidates = {}
    for candidate, metrics in evaluation.summary.items():
        candidates[candidate] = {}
        for metric, summary in metrics.items():
            values = fold_values[candidate][metric]
            candidates[candidate][metric] = {
                'mean': _plain(summary.mean),
                'std_err': _plain(summary.std_err),
                'n': sum(v is not None for v in values),
                'all': values,
            }

    return {
        'positive_class': _plain(evaluation.positive_class),
        'candidates': candidates,
        'confusion': {name: {k: _plain(v) for k, v in counts.as_dict().items()}
                      for name, counts in evaluation.confusion.items()},
        'ledger': evaluation.ledger(),
        'n_failed_units': len(evaluation.failures),
    }


def save_results(run_dir, config, evaluation, final_fit=None):
    """Save all evaluation artifacts to run directory."""
    # Save config
    with open(os.path.join(run_dir, 'config.yaml'), 'w') as f:
        yaml.dump(config, f, default_flow_style=False)

    results_json = {
        'experiment_name': config['experiment']['name'],
        'seed': config['experiment']['seed'],
        'target_column': config['data']['target_column'],
        'target_type': config['data']['target_type'],
        'n_folds': config['cross_validation']['n_splits'],
        'cv_results': evaluation_to_dict(evaluation),
    }

    if final_fit is not None:
        results_json['holdout'] = {
            'candidate': final_fit.candidate,
            'metrics': {k: _plain(v) for k, v in final_fit.scores.values.items()},
            'undefined': final_fit.scores.errors,
            'confusion': ({k: _plain(v) for k, v in final_fit.scores.confusion.as_dict().items()}
                          if final_fit.scores.confusion is not None else None),
        }

        # Final fitted recipe + model
        model_path = os.path.join(run_dir, 'model.joblib')
        joblib.dump(final_fit, model_path)
        print(f"Model saved to: {model_path}")

    with open(os.path.join(run_dir, 'metrics.json'), 'w') as f:
        json.dump(results_json, f, indent=2, default=str)

    evaluation.summary_frame().to_csv(os.path.join(run_dir, 'summary.csv'), index=False)

    if config.get('metrics', {}).get('save_plots', True):
        _save_cv_plot(run_dir, config, evaluation)

    print(f"Results saved to: {run_dir}")
    return run_dir


def _save_cv_plot(run_dir, config, evaluation):
    """Save per-metric mean +/- std_err plot, one point per candidate."""
    import matplotlib
    matplotlib.use('Agg')
    import matplotlib.pyplot as plt

    frame = evaluation.summary_frame()
    if frame.empty:
        return

    metric_names = list(dict.fromkeys(frame['metric']))
    fig, axes = plt.subplots(1, len(metric_names), figsize=(4 * len(metric_names), 4), squeeze=False)

    for ax, metric in zip(axes[0], metric_names):
        rows = frame[frame['metric'] == metric]
        ax.errorbar(rows['candidate'], rows['mean'], yerr=rows['std_err'].fillna(0),
                    fmt='o', capsize=4)
        ax.set_title(metric)
        ax.tick_params(axis='x', rotation=30)

    plt.suptitle(f"{config['experiment']['name']} - {config['data']['target_column']}", fontsize=14)
    plt.tight_layout()
    plt.savefig(os.path.join(run_dir, 'cv_summary.png'), dpi=150)
    plt.close()


def save_data_profile(run_dir, df, config, dataset_path, split=None):
    """Save dataset fingerprint/profile for reproducibility tracking."""
    target = config['data']['target_column']
    y = df[target]
    features = [c for c in df.columns if c != target]
    profile = {
        'dataset_path': str(dataset_path),
        'dataset_hash': dataset_hash(df),
        'total_rows': len(df),
        'total_columns': len(df.columns),
        'feature_count': len(features),
        'features_used': features,
        'target_column': target,
        'target_stats': {
            'unique_values': int(y.nunique()),
            'value_counts': {str(k): int(v) for k, v in y.value_counts().items()} if y.nunique() <= 10 else None,
        },
        'missing_values': {c: int(n) for c, n in df[features].isnull().sum().items() if n},
        'timestamp': datetime.now().isoformat(),
    }
    if split is not None:
        profile['split'] = {
            'training_rows': len(split.training),
            'testing_rows': len(split.testing),
            'strata_column': split.strata_field,
        }

    with open(os.path.join(run_dir, 'data_profile.json'), 'w') as f:
        json.dump(profile, f, indent=2)

    return profile
