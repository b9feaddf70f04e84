# =============================================================================
# Copyright (c) 2025 ByteDance Ltd. and/or its affiliates
# SPDX-License-Identifier: GPL-3.0-or-later
# =============================================================================
# SCRIPT  : main.py
# PROJECT : MODTYPE - RNA Modification Type Classifier
# PURPOSE : Harmonize signal/reference loci, tune a LightGBM classifier with
#           Latin hypercube search and stratified cross-validation, and
#           predict modification types genome-wide.
#
# OVERVIEW:
#   Reads the signal-source output (strand-split nucleotide counts, no
#   labels) and the reference-source calls (compound modification labels),
#   harmonizes both into one per-locus table, splits the labeled loci into
#   training and held-out test partitions, tunes the classifier on the
#   training partition, refits the best configuration, evaluates it once on
#   the test partition and predicts every signal locus.
#
# INPUTS  :
#   - <signal>.tsv        : Headerless signal-source table(s).
#   - <signal_header>.txt : Column names of the signal-source table.
#   - <reference>.tsv     : Reference-source table(s) with header.
#
# OUTPUTS :
#   - <output_dir>/temp_data/ : Harmonized and partitioned tables.
#   - <output_dir>/model/     : Fitted model and selected parameters.
#   - <output_dir>/results/   : Tuning ranking, predictions, run summary.
#
# USAGE   :
#   modtype-classifier -s <signal> --signal_header <header> -r <reference> \
#       -o <output_dir> [options]
#
# CREATED : 2026-10-17
# UPDATED : 2026-10-17
#
# NOTE    :
#   - Requires Python >= 3.8, pandas, numpy, scikit-learn, lightgbm, scipy,
#     joblib.
# =============================================================================

import argparse
import logging
import warnings
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

import pandas as pd

from modtype_classifier import config as cfg
from modtype_classifier.data_utils.harmonize import (
    build_labeled_table,
    harmonize_reference,
    harmonize_signal,
    read_reference_table,
    read_signal_table,
    unlabeled_rows,
)
from modtype_classifier.data_utils.split import (
    SMALL_CLASS_POLICIES,
    apply_small_class_policy,
    cv_split_func,
    train_test_split_func,
)
from modtype_classifier.data_utils.taxonomy import LabelTaxonomyMapper
from modtype_classifier.model.final import FittedModel, fit_final, predict_loci
from modtype_classifier.model.search_space import SearchSpace, design_frame
from modtype_classifier.model.select import (
    RankedConfig,
    rank_configs,
    ranking_frame,
    select_best,
    top_k,
)
from modtype_classifier.model.train import (
    PipelineSpec,
    TrialResult,
    out_of_fold_predictions,
    tune,
)
from modtype_classifier.utils.errors import RunSummary
from modtype_classifier.utils.io import save_data, save_json, save_model
from modtype_classifier.utils.logger import init_logger

PREDICT_SCOPES = ("all", "unlabeled")


@dataclass(frozen=True)
class RunConfig:
    folds: int = cfg.CV_FOLDS
    search_size: int = cfg.SEARCH_SIZE
    test_fraction: float = cfg.TEST_FRACTION
    min_depth: int = cfg.MIN_DEPTH
    random_seed: int = cfg.RANDOM_SEED
    n_jobs: int = cfg.N_JOBS
    small_class_policy: str = cfg.SMALL_CLASS_POLICY
    exclude_unknown: bool = cfg.EXCLUDE_UNKNOWN
    min_prediction_probability: float = cfg.MIN_PREDICTION_PROBABILITY
    predict_scope: str = cfg.PREDICT_SCOPE
    top_k: int = cfg.TOP_K
    n_estimators: int = cfg.N_ESTIMATORS

    def __post_init__(self):
        assert self.small_class_policy in SMALL_CLASS_POLICIES, (
            f"small_class_policy must be one of {SMALL_CLASS_POLICIES}"
        )
        assert self.predict_scope in PREDICT_SCOPES, f"predict_scope must be one of {PREDICT_SCOPES}"


@dataclass
class PipelineResult:
    spec: PipelineSpec
    configs: list
    results: List[TrialResult]
    ranked: List[RankedConfig]
    best: RankedConfig
    model: FittedModel
    test_report: Optional[dict]
    predictions: pd.DataFrame
    tables: dict = field(default_factory=dict)
    summary: RunSummary = field(default_factory=RunSummary)


# =============================================================================
# Function: run_on_tables
# =============================================================================
def run_on_tables(
    signal: pd.DataFrame,
    reference: pd.DataFrame,
    run_config: RunConfig = RunConfig(),
    summary: Optional[RunSummary] = None,
    cancel: Optional[Callable[[], bool]] = None,
) -> PipelineResult:
    """
    Run split, tuning, selection, refit and prediction on harmonized tables.

    Parameters
    ----------
    signal, reference : pd.DataFrame
        Outputs of `harmonize_signal` and `harmonize_reference`.
    run_config : RunConfig
    summary : RunSummary, optional
        Collects non-fatal issues; a new one is created if omitted.
    cancel : callable, optional
        Passed to `tune`; aborts between trial dispatches.
    """
    summary = summary if summary is not None else RunSummary()
    seed = run_config.random_seed

    logging.info("##### Labeled Table #####")
    labeled = build_labeled_table(signal, reference, exclude_unknown=run_config.exclude_unknown)

    logging.info("##### Train/Test Split #####")
    train_data, test_data = train_test_split_func(
        labeled, test_size=run_config.test_fraction, random_state=seed
    )
    logging.info(f"> Training loci: {train_data.shape[0]}, test loci: {test_data.shape[0]}")

    logging.info("##### Cross-validation Split #####")
    tuning_data, folds = apply_small_class_policy(
        train_data, run_config.folds, policy=run_config.small_class_policy, summary=summary
    )
    classes = tuple(sorted(tuning_data[cfg.LABEL_COLUMN].unique()))
    spec = PipelineSpec(
        classes=classes,
        n_estimators=run_config.n_estimators,
        random_seed=seed,
    )
    held_out = test_data[cfg.LABEL_COLUMN].isin(classes)
    if not held_out.all():
        logging.info(f"> Dropping {int((~held_out).sum())} test loci of classes excluded from tuning")
    test_data = test_data.loc[held_out].reset_index(drop=True)
    assignment = cv_split_func(tuning_data[cfg.LABEL_COLUMN], folds, random_state=seed)

    logging.info("##### Latin Hypercube Search #####")
    space = SearchSpace.from_bounds().finalize(len(spec.feature_columns))
    configs = space.sample(run_config.search_size, random_state=seed)
    results = tune(
        tuning_data,
        configs,
        assignment,
        spec,
        n_jobs=run_config.n_jobs,
        cancel=cancel,
        summary=summary,
    )

    ranked = rank_configs(results)
    best = select_best(ranked)
    for rc in top_k(ranked, run_config.top_k):
        logging.info(
            f"> Config {rc.config_id}: mean AUC {round(rc.mean_metric, 4)}, "
            f"var {round(rc.variance, 6)}, folds ok {rc.n_folds}"
        )
    logging.info(f"> Best hyperparameters: {best.config.as_dict()}")

    logging.info("##### Train Final Model #####")
    fitted, test_report = fit_final(tuning_data, test_data, best.config, spec)

    logging.info("##### Batch Prediction #####")
    if run_config.predict_scope == "all":
        rows = signal
    else:
        rows = unlabeled_rows(signal, reference)
    predictions = predict_loci(fitted, rows, run_config.min_prediction_probability)

    return PipelineResult(
        spec=spec,
        configs=configs,
        results=results,
        ranked=ranked,
        best=best,
        model=fitted,
        test_report=test_report,
        predictions=predictions,
        tables={"labeled": labeled, "train": tuning_data, "test": test_data},
        summary=summary,
    )


# =============================================================================
# Function: run_pipeline
# =============================================================================
def run_pipeline(
    signal_paths,
    signal_header,
    reference_paths,
    output_dir,
    run_config: RunConfig = RunConfig(),
    cancel: Optional[Callable[[], bool]] = None,
) -> PipelineResult:
    """
    Full file-to-file workflow: read, harmonize, tune, refit, predict, save.
    """
    output_dir = Path(output_dir)
    for sub in ("temp_data", "model", "results"):
        (output_dir / sub).mkdir(parents=True, exist_ok=True)
    summary = RunSummary()

    logging.info("##### Data Processing #####")
    signal = harmonize_signal(
        read_signal_table(signal_paths, signal_header),
        min_depth=run_config.min_depth,
        summary=summary,
    )
    reference = harmonize_reference(
        read_reference_table(reference_paths), LabelTaxonomyMapper(), summary=summary
    )
    save_data(signal, output_dir / "temp_data" / "signal_harmonized.tsv")
    save_data(reference, output_dir / "temp_data" / "reference_harmonized.tsv")

    result = run_on_tables(signal, reference, run_config, summary=summary, cancel=cancel)

    save_data(result.tables["train"], output_dir / "temp_data" / "train_data.tsv")
    save_data(result.tables["test"], output_dir / "temp_data" / "test_data.tsv")
    save_data(design_frame(result.configs), output_dir / "results" / "design.tsv")
    save_data(ranking_frame(result.ranked), output_dir / "results" / "tuning_results.tsv")
    save_data(
        out_of_fold_predictions(result.results, result.best.config_id, result.spec.classes),
        output_dir / "results" / "cv_predictions.tsv",
    )
    save_json(
        {"config_id": result.best.config_id, **result.best.config.as_dict()},
        output_dir / "model" / "best_params.json",
    )
    save_model(result.model, output_dir / "model" / "model.dat")

    if result.test_report is not None:
        save_data(result.test_report["predictions"], output_dir / "results" / "test_set_pred.tsv")
        save_json(
            {
                "auc": result.test_report["auc"],
                "accuracy": result.test_report["accuracy"],
                "confusion": result.test_report["confusion"].to_dict(orient="index"),
            },
            output_dir / "results" / "test_metrics.json",
        )
    save_data(result.predictions, output_dir / "results" / "predicted_loci.tsv")
    save_json(
        {"run_config": asdict(run_config), **summary.to_dict()},
        output_dir / "results" / "run_summary.json",
    )
    return result


# =============================================================================
# Function: parse_args
# =============================================================================
def parse_args(argv=None):
    """
    Parse command line arguments for inputs, outputs, and tuning options.

    Returns
    -------
    argparse.Namespace : Parsed command-line arguments.
    """
    parser = argparse.ArgumentParser(
        prog=f"{cfg.NAME}",
        formatter_class=argparse.RawTextHelpFormatter,
        description=f"{cfg.MODEL_DESCRIPTION}",
    )

    # Input and output parameters
    parser.add_argument(
        "-s",
        "--signal",
        type=str,
        nargs="+",
        metavar="PATH",
        help="Headerless signal-source table(s), tab-delimited",
        required=True,
    )
    parser.add_argument(
        "--signal_header",
        type=str,
        metavar="PATH",
        help="Header-definition file with the signal-source column names",
        required=True,
    )
    parser.add_argument(
        "-r",
        "--reference",
        type=str,
        nargs="+",
        metavar="PATH",
        help="Reference-source table(s) with modification labels, tab-delimited",
        required=True,
    )
    parser.add_argument(
        "-o",
        "--output_dir",
        type=str,
        metavar="PATH",
        help="Output directory to save results and model",
        required=True,
    )

    # Harmonization options
    parser.add_argument(
        "--min_depth",
        type=int,
        default=cfg.MIN_DEPTH,
        help=f"Minimum signal-source depth (default: {cfg.MIN_DEPTH})",
    )
    parser.add_argument(
        "--keep_unknown",
        action="store_true",
        help="Train on loci whose label maps to 'unknown'",
    )

    # Split and tuning options
    parser.add_argument(
        "--test_fraction",
        type=float,
        default=cfg.TEST_FRACTION,
        help=f"Fraction of labeled loci held out for testing (default: {cfg.TEST_FRACTION})",
    )
    parser.add_argument(
        "--folds",
        type=int,
        default=cfg.CV_FOLDS,
        help=f"Number of cross-validation folds (default: {cfg.CV_FOLDS})",
    )
    parser.add_argument(
        "--small_class_policy",
        type=str,
        default=cfg.SMALL_CLASS_POLICY,
        choices=list(SMALL_CLASS_POLICIES),
        help=f"Handling of classes smaller than the fold count (default: {cfg.SMALL_CLASS_POLICY})",
    )
    parser.add_argument(
        "--search_size",
        type=int,
        default=cfg.SEARCH_SIZE,
        help=f"Number of Latin hypercube candidates (default: {cfg.SEARCH_SIZE})",
    )
    parser.add_argument(
        "--n_estimators",
        type=int,
        default=cfg.N_ESTIMATORS,
        help=f"Boosting iterations per model (default: {cfg.N_ESTIMATORS})",
    )
    parser.add_argument(
        "--top_k",
        type=int,
        default=cfg.TOP_K,
        help=f"Ranked configurations to log (default: {cfg.TOP_K})",
    )
    parser.add_argument(
        "--n_jobs",
        type=int,
        default=cfg.N_JOBS,
        help=f"Parallel workers for trials, -1 for all cores (default: {cfg.N_JOBS})",
    )

    # Prediction options
    parser.add_argument(
        "--predict_scope",
        type=str,
        default=cfg.PREDICT_SCOPE,
        choices=list(PREDICT_SCOPES),
        help=f"Signal loci to predict (default: {cfg.PREDICT_SCOPE})",
    )
    parser.add_argument(
        "--min_probability",
        type=float,
        default=cfg.MIN_PREDICTION_PROBABILITY,
        help="Report predictions below this probability as 'unknown' (default: 0)",
    )

    # Seed for reproducibility
    parser.add_argument(
        "--seed",
        type=int,
        default=cfg.RANDOM_SEED,
        help=f"Random seed for split, folds and design (default: {cfg.RANDOM_SEED})",
    )

    return parser.parse_args(argv)


# =============================================================================
# Function: main
# =============================================================================
def main(argv=None):
    """
    Main workflow:
    1. Parse command-line arguments
    2. Prepare output directories and logging
    3. Harmonize signal and reference tables
    4. Split labeled loci into train/test
    5. Tune on stratified folds over a Latin hypercube design
    6. Refit the best configuration and evaluate on the test set
    7. Predict modification types for signal loci and save outputs
    """
    warnings.filterwarnings("ignore")
    args = parse_args(argv)
    output_dir = Path(args.output_dir)

    run_config = RunConfig(
        folds=args.folds,
        search_size=args.search_size,
        test_fraction=args.test_fraction,
        min_depth=args.min_depth,
        random_seed=args.seed,
        n_jobs=args.n_jobs,
        small_class_policy=args.small_class_policy,
        exclude_unknown=not args.keep_unknown,
        min_prediction_probability=args.min_probability,
        predict_scope=args.predict_scope,
        top_k=args.top_k,
        n_estimators=args.n_estimators,
    )

    init_logger(output_dir)
    logging.info("-" * 60)
    logging.info(f"> Signal data                 : {args.signal}")
    logging.info(f"> Signal header               : {args.signal_header}")
    logging.info(f"> Reference data              : {args.reference}")
    logging.info(f"> Output directory            : {output_dir}")
    for key, value in asdict(run_config).items():
        logging.info(f"> {key:<28}: {value}")
    logging.info("-" * 60)

    run_pipeline(args.signal, args.signal_header, args.reference, output_dir, run_config)
    logging.info(f"##### Workflow completed! Results saved to: {output_dir} #####")


# Entry point
if __name__ == "__main__":
    main()
