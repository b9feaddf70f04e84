# =============================================================================
# Copyright (c) 2025 ByteDance Ltd. and/or its affiliates
# SPDX-License-Identifier: GPL-3.0-or-later
# =============================================================================
# -*- coding: utf-8 -*-
# =============================================================================
# SCRIPT  : evaluate.py
# PROJECT : MODTYPE - RNA Modification Type Classifier
# PURPOSE : Multiclass ranking metric and diagnostic confusion matrix for
#           LightGBM classifier evaluation.
#
# CREATED : 2026-10-17
# UPDATED : 2026-10-17
# =============================================================================


"""
Evaluation utilities for the MODTYPE classifier.

Includes:
1. `multiclass_auc` - one-vs-rest, macro-averaged area under the ROC curve.
2. `confusion_table` - confusion matrix labelled by class.
3. `get_metrices` - summary metrics for a set of predictions.
"""

import numpy as np
import pandas as pd
from sklearn.metrics import accuracy_score, confusion_matrix, roc_auc_score


# -----------------------------------------------------------------------------
# Function: multiclass_auc
# -----------------------------------------------------------------------------
def multiclass_auc(y_true, pred_prob, classes):
    """
    One-vs-rest AUC averaged over classes with equal weight.

    A class contributes only when the evaluated rows contain both members
    and non-members of it, so folds that miss a class still score. When
    every class is present this equals
    `roc_auc_score(y_true, pred_prob, multi_class="ovr", average="macro")`.

    Parameters
    ----------
    y_true : array-like
        True class labels.
    pred_prob : array-like, shape (n_rows, n_classes)
        Predicted probability per class, columns ordered as `classes`.
    classes : sequence
        Class label of each probability column.

    Returns
    -------
    float
        Macro AUC, or NaN when no class can be scored.
    """
    y_true = np.asarray(y_true)
    pred_prob = np.asarray(pred_prob, dtype=float)

    scores = []
    for i, cls in enumerate(classes):
        is_member = y_true == cls
        # AUC needs at least one positive and one negative row
        if is_member.all() or not is_member.any():
            continue
        scores.append(roc_auc_score(is_member.astype(int), pred_prob[:, i]))

    if not scores:
        return float("nan")
    return float(np.mean(scores))


# -----------------------------------------------------------------------------
# Function: confusion_table
# -----------------------------------------------------------------------------
def confusion_table(y_true, y_pred, classes):
    """
    Confusion matrix with true classes as rows and predicted as columns.
    """
    matrix = confusion_matrix(y_true, y_pred, labels=list(classes))
    return pd.DataFrame(
        matrix,
        index=pd.Index(list(classes), name="true"),
        columns=pd.Index(list(classes), name="predicted"),
    )


# -----------------------------------------------------------------------------
# Function: get_metrices
# -----------------------------------------------------------------------------
def get_metrices(y_true, y_pred, pred_prob, classes):
    """
    Compute the ranking metric and diagnostics for one prediction set.

    Returns
    -------
    dict
        {'auc': float, 'accuracy': float, 'confusion': pd.DataFrame}
    """
    return {
        "auc": multiclass_auc(y_true, pred_prob, classes),
        "accuracy": float(accuracy_score(y_true, y_pred)) if len(y_true) else float("nan"),
        "confusion": confusion_table(y_true, y_pred, classes),
    }
