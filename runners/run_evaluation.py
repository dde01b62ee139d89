# Resampled evaluation runner
# split -> folds -> evaluate candidates -> last fit on the holdout -> save artifacts

import argparse
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from joblib import Parallel

from model_eval.config_schema import validate_config, ConfigValidationError
from model_eval.io import load_config, save_results, create_run_dir, save_data_profile
from model_eval.data import load_dataset, prepare_dataset, validate_data_integrity
from model_eval.partition import split, make_folds
from model_eval.evaluator import ResampledEvaluator, Holdout, candidates_from_config

# Metric used to pick the candidate for the final fit
SELECTION_METRIC = {
    'classification': ('roc_auc', True),
    'regression': ('rmse', False),
}


def _print_summary(evaluation, target_type):
    print("\n" + "=" * 60)
    print(f"{target_type.upper()} RESULTS (Stratified V-Fold CV)")
    print("=" * 60)
    frame = evaluation.summary_frame()
    for candidate, rows in frame.groupby('candidate', sort=False):
        print(f"\n{candidate}")
        for _, row in rows.iterrows():
            print(f"  {row['metric']:12s} {row['mean']:.4f} ± {row['std_err']:.4f} (n={row['n']})")

    for candidate, counts in evaluation.confusion.items():
        print(f"\nAveraged confusion matrix ({candidate}): "
              f"TP={counts.tp:.1f} FP={counts.fp:.1f} TN={counts.tn:.1f} FN={counts.fn:.1f}")

    if evaluation.failures:
        print(f"\n{len(evaluation.failures)} unit(s) failed; see the ledger in metrics.json")


def run_evaluation(config_path, dataset_path=None, output_dir=None, n_jobs=None):
    """
    Run a resampled model comparison.

    Args:
        config_path: Path to YAML config file
        dataset_path: Optional path or URL of the dataset CSV (overrides config)
        output_dir: Optional output directory (overrides config)
        n_jobs: Optional number of parallel workers (overrides config)

    Returns:
        run_dir: Path to evaluation output directory
    """
    config = load_config(config_path)

    if output_dir:
        config['experiment']['output_dir'] = output_dir
    if n_jobs is not None:
        config['cross_validation']['n_jobs'] = n_jobs

    try:
        validate_config(config)
    except ConfigValidationError as e:
        print(f"\nCONFIG ERROR:\n{e}")
        raise

    seed = config['experiment']['seed']
    target = config['data']['target_column']
    target_type = config['data']['target_type']
    strata = config['data'].get('strata_column') or target

    print("=" * 60)
    print("RESAMPLED MODEL EVALUATION")
    print("=" * 60)
    print(f"Experiment: {config['experiment']['name']}")
    print(f"Target: {target} ({target_type})")
    print(f"Seed: {seed}")
    print("=" * 60)

    df, actual_path = load_dataset(config, dataset_path)
    df = prepare_dataset(df, config)
    validate_data_integrity(df, config)

    data_split = split(df, strata, config['split']['train_fraction'], seed)
    folds = make_folds(data_split.training, config['cross_validation']['n_splits'], strata, seed)

    print(f"\nDataset shape: {df.shape}")
    print(f"Training rows: {len(data_split.training)} | Testing rows: {len(data_split.testing)}")
    if target_type == 'classification':
        print(f"Class distribution: {df[target].value_counts().to_dict()}")

    candidates = candidates_from_config(config)
    positive_class = config['data'].get('positive_class')
    evaluator = ResampledEvaluator(candidates, folds, target, positive_class=positive_class)

    with Parallel(n_jobs=config['cross_validation'].get('n_jobs', 1)) as parallel:
        evaluation = evaluator.evaluate(data_split.training, parallel=parallel)

    _print_summary(evaluation, target_type)

    metric, maximize = SELECTION_METRIC[target_type]
    final_name = (config.get('final_fit') or {}).get('candidate') or evaluation.best_candidate(metric, maximize)
    final_candidate = next(c for c in candidates if c.name == final_name)

    print("\n" + "=" * 60)
    print(f"FINAL FIT: {final_name} (holdout evaluated once)")
    print("=" * 60)
    final_fit = Holdout(data_split, target, positive_class=positive_class).last_fit(final_candidate)
    for name, value in final_fit.scores.values.items():
        shown = f"{value:.4f}" if value is not None else f"undefined ({final_fit.scores.errors[name]})"
        print(f"  {name:12s} {shown}")

    run_dir = create_run_dir(config)
    save_data_profile(run_dir, df, config, actual_path, split=data_split)
    save_results(run_dir, config, evaluation, final_fit)

    print("\n" + "=" * 60)
    print("Evaluation complete!")
    print("=" * 60)

    return run_dir


def main():
    parser = argparse.ArgumentParser(
        description='Compare candidate models with stratified V-fold cross-validation'
    )
    parser.add_argument('--config', '-c', type=str, default='configs/climbers.yaml',
                        help='Path to config YAML file')
    parser.add_argument('--dataset', '-d', type=str, default=None,
                        help='Path or URL of dataset CSV (overrides config)')
    parser.add_argument('--output-dir', '-o', type=str, default=None,
                        help='Directory for run outputs (overrides config)')
    parser.add_argument('--n-jobs', '-j', type=int, default=None,
                        help='Parallel workers for fold evaluation (overrides config)')
    args = parser.parse_args()

    run_evaluation(args.config, args.dataset, args.output_dir, args.n_jobs)


if __name__ == "__main__":
    main()
