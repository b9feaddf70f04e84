# =============================================================================
# Copyright (c) 2025 ByteDance Ltd. and/or its affiliates
# SPDX-License-Identifier: GPL-3.0-or-later
# =============================================================================#
# -*- coding: utf-8 -*-
# =============================================================================
# SCRIPT  : train.py
# PROJECT : MODTYPE - RNA Modification Type Classifier
# PURPOSE : LightGBM classifier construction, single-trial evaluation and
#           parallel cross-validated tuning over a candidate design.
#
# CREATED : 2026-10-17
# UPDATED : 2026-10-17
# =============================================================================

"""
Training module for the MODTYPE classifier using LightGBM.

Includes:
1. `PipelineSpec` - features, label column, class set and fixed model settings.
2. `lgb_LGBMClassifier` - build a LightGBM classifier from a HyperparamConfig.
3. `run_trial` - fit on k-1 folds, score the held-out fold (one TrialResult).
4. `tune` - dispatch every (configuration, fold) trial to a joblib worker pool.
5. `out_of_fold_predictions` - held-out predictions of one configuration.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import lightgbm as lgb
import numpy as np
import pandas as pd
from joblib import Parallel, delayed, effective_n_jobs

from modtype_classifier.config import (
    FEATURE_COLUMNS,
    LABEL_COLUMN,
    N_ESTIMATORS,
    N_JOBS,
    RANDOM_SEED,
)
from modtype_classifier.model.evaluate import confusion_table, multiclass_auc
from modtype_classifier.model.search_space import HyperparamConfig
from modtype_classifier.utils.errors import TRIAL_FAILURE, TuningCancelled

# LightGBM's hard limit on leaves per tree
MAX_LEAVES = 131072


@dataclass(frozen=True)
class PipelineSpec:
    """What the classifier learns from, passed unchanged through every stage."""

    classes: Tuple[str, ...]
    feature_columns: Tuple[str, ...] = tuple(FEATURE_COLUMNS)
    label_column: str = LABEL_COLUMN
    n_estimators: int = N_ESTIMATORS
    random_seed: int = RANDOM_SEED

    def features(self, data: pd.DataFrame) -> np.ndarray:
        """Feature matrix with undefined values as NaN."""
        return data[list(self.feature_columns)].astype("float64").to_numpy()

    def labels(self, data: pd.DataFrame) -> np.ndarray:
        return data[self.label_column].astype(str).to_numpy()


@dataclass(frozen=True)
class TrialResult:
    """
    Outcome of one (configuration, fold) pair.

    `predictions` holds (row_id, predicted_label, per-class probabilities)
    in held-out row order; it is empty and `error` is set when the trial
    failed.
    """

    config_id: int
    config: HyperparamConfig
    fold_id: int
    metric: float
    predictions: Tuple[Tuple[int, str, Tuple[float, ...]], ...] = ()
    confusion: Optional[Tuple[Tuple[int, ...], ...]] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


# -----------------------------------------------------------------------------
# Function: lgb_LGBMClassifier
# -----------------------------------------------------------------------------
def lgb_LGBMClassifier(config, spec):
    """
    Initialize a LightGBM LGBMClassifier for a HyperparamConfig.

    Parameters
    ----------
    config : HyperparamConfig
        Candidate hyperparameters.
    spec : PipelineSpec
        Fixed settings (tree count, seed, feature count for mtry).

    Returns
    -------
    model : lgb.LGBMClassifier
    """
    model = lgb.LGBMClassifier(
        boosting_type="gbdt",
        n_estimators=spec.n_estimators,
        learning_rate=config.learn_rate,
        max_depth=config.tree_depth,
        num_leaves=max(2, min(2 ** config.tree_depth, MAX_LEAVES)),
        min_child_samples=config.min_node_size,
        min_split_gain=config.loss_reduction,
        subsample=config.sample_proportion,
        subsample_freq=1,
        # mtry is a per-split feature count; LightGBM takes a fraction
        feature_fraction_bynode=config.mtry / len(spec.feature_columns),
        random_state=spec.random_seed,
        n_jobs=1,
        verbose=-1,
    )
    return model


def predict_aligned(model, x, classes):
    """
    predict_proba with columns ordered as `classes`.

    Classes the model never saw during fitting get probability 0.
    """
    pred_prob = np.zeros((x.shape[0], len(classes)))
    fitted = model.predict_proba(x)
    column_of = {cls: i for i, cls in enumerate(classes)}
    for j, cls in enumerate(model.classes_):
        pred_prob[:, column_of[cls]] = fitted[:, j]
    return pred_prob


# -----------------------------------------------------------------------------
# Function: run_trial
# -----------------------------------------------------------------------------
def run_trial(config_id, config, fold_id, train_index, val_index, x, y, row_ids, spec):
    """
    Train on the training folds and score the held-out fold.

    Any exception raised while fitting or predicting becomes a failed
    TrialResult for this (configuration, fold) pair instead of aborting.
    """
    try:
        y_train = y[train_index]
        if np.unique(y_train).shape[0] < 2:
            raise ValueError("training folds hold a single class")

        model = lgb_LGBMClassifier(config, spec)
        model.fit(x[train_index], y_train)

        pred_prob = predict_aligned(model, x[val_index], spec.classes)
        pred_label = np.asarray(spec.classes)[pred_prob.argmax(axis=1)]
        metric = multiclass_auc(y[val_index], pred_prob, spec.classes)
        if np.isnan(metric):
            raise ValueError("held-out fold has no class with both members and non-members")
    except Exception as exc:
        return TrialResult(
            config_id=config_id,
            config=config,
            fold_id=fold_id,
            metric=float("nan"),
            error=f"{type(exc).__name__}: {exc}",
        )

    confusion = confusion_table(y[val_index], pred_label, spec.classes)
    predictions = tuple(
        (int(row_id), str(label), tuple(float(p) for p in probs))
        for row_id, label, probs in zip(row_ids[val_index], pred_label, pred_prob)
    )
    return TrialResult(
        config_id=config_id,
        config=config,
        fold_id=fold_id,
        metric=metric,
        predictions=predictions,
        confusion=tuple(map(tuple, confusion.to_numpy().tolist())),
    )


# -----------------------------------------------------------------------------
# Function: tune
# -----------------------------------------------------------------------------
def tune(
    data: pd.DataFrame,
    configs: List,
    assignment,
    spec: PipelineSpec,
    n_jobs: int = N_JOBS,
    cancel: Optional[Callable[[], bool]] = None,
    summary=None,
) -> List[TrialResult]:
    """
    Evaluate every configuration on every fold.

    Parameters
    ----------
    data : pd.DataFrame
        Tuning table (training partition), aligned with `assignment`.
    configs : list of HyperparamConfig
        Candidates; position in the list is the config_id.
    assignment : FoldAssignment
        Fold of every row of `data`.
    spec : PipelineSpec
        Features, label column and fixed model settings.
    n_jobs : int, optional
        joblib workers (default: 1; -1 for all cores).
    cancel : callable, optional
        Checked before each dispatch batch; returning True aborts the run
        with TuningCancelled. Trials already dispatched finish first.
    summary : RunSummary, optional
        Receives one TrialFailure issue per failed trial.

    Returns
    -------
    list of TrialResult
        One per (configuration, fold), in dispatch order.
    """
    x = spec.features(data)
    y = spec.labels(data)
    row_ids = data["row_id"].to_numpy()
    folds = list(assignment.split())

    tasks = [
        (config_id, config, fold_id, train_index, val_index)
        for config_id, config in enumerate(configs)
        for fold_id, (train_index, val_index) in enumerate(folds)
    ]
    batch_size = max(1, effective_n_jobs(n_jobs))
    logging.info(
        f"> Dispatching {len(tasks)} trials ({len(configs)} configs x "
        f"{assignment.folds} folds) on {batch_size} workers"
    )

    results = []
    with Parallel(n_jobs=n_jobs) as parallel:
        for start in range(0, len(tasks), batch_size):
            if cancel is not None and cancel():
                logging.warning(f"> Tuning cancelled after {len(results)} of {len(tasks)} trials")
                raise TuningCancelled(
                    f"Tuning cancelled after {len(results)} of {len(tasks)} trials"
                )
            batch = tasks[start : start + batch_size]
            results.extend(
                parallel(
                    delayed(run_trial)(cid, cfg, fid, tr, vl, x, y, row_ids, spec)
                    for cid, cfg, fid, tr, vl in batch
                )
            )

    failed = [r for r in results if not r.succeeded]
    for r in failed:
        message = f"Config {r.config_id} fold {r.fold_id} failed: {r.error}"
        if summary is not None:
            summary.add(TRIAL_FAILURE, message, {"config_id": r.config_id, "fold_id": r.fold_id})
        else:
            logging.warning(f"> {message}")
    logging.info(f"> Completed trials: {len(results) - len(failed)} ok, {len(failed)} failed")
    return results


# -----------------------------------------------------------------------------
# Function: out_of_fold_predictions
# -----------------------------------------------------------------------------
def out_of_fold_predictions(results, config_id, classes):
    """
    Held-out predictions of one configuration across all successful folds.
    """
    rows = [
        (r.fold_id, row_id, label, *probs)
        for r in results
        if r.config_id == config_id and r.succeeded
        for row_id, label, probs in r.predictions
    ]
    columns = ["fold", "row_id", "pred_label"] + [f"prob_{cls}" for cls in classes]
    return pd.DataFrame(rows, columns=columns).sort_values("row_id").reset_index(drop=True)
