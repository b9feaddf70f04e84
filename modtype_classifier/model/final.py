# =============================================================================
# Copyright (c) 2025 ByteDance Ltd. and/or its affiliates
# SPDX-License-Identifier: GPL-3.0-or-later
# =============================================================================
# -*- coding: utf-8 -*-
# =============================================================================
# SCRIPT  : final.py
# PROJECT : MODTYPE - RNA Modification Type Classifier
# PURPOSE : Refit the selected configuration, evaluate it once on the
#           held-out partition and predict modification types per locus.
#
# CREATED : 2026-10-17
# UPDATED : 2026-10-17
# =============================================================================

"""
Final fitting and batch prediction for the MODTYPE classifier.

Includes:
1. `FittedModel` - frozen classifier exposing `predict`.
2. `fit_final` - fit on the training partition, score the test partition once.
3. `predict_loci` - predict harmonized rows and resolve one label per locus.
"""

import logging

import numpy as np
import pandas as pd

from modtype_classifier.config import MIN_PREDICTION_PROBABILITY
from modtype_classifier.data_utils.loci import LOCUS_COLUMNS, locus_keys, sort_by_locus
from modtype_classifier.data_utils.taxonomy import ModType
from modtype_classifier.model.evaluate import get_metrices
from modtype_classifier.model.train import lgb_LGBMClassifier, predict_aligned


# -----------------------------------------------------------------------------
# Class: FittedModel
# -----------------------------------------------------------------------------
class FittedModel:
    """
    Classifier fitted with one HyperparamConfig on a fixed table.

    Read-only after construction; safe to share between predictors.
    """

    __slots__ = ("_model", "_config", "_spec")

    def __init__(self, model, config, spec):
        object.__setattr__(self, "_model", model)
        object.__setattr__(self, "_config", config)
        object.__setattr__(self, "_spec", spec)

    def __setattr__(self, name, value):
        raise AttributeError("FittedModel is read-only")

    def __getstate__(self):
        return (self._model, self._config, self._spec)

    def __setstate__(self, state):
        for name, value in zip(self.__slots__, state):
            object.__setattr__(self, name, value)

    @property
    def config(self):
        return self._config

    @property
    def spec(self):
        return self._spec

    @property
    def classes(self):
        return self._spec.classes

    def predict(self, data: pd.DataFrame):
        """
        Predict labels and per-class probabilities for harmonized rows.

        Returns
        -------
        labels : np.ndarray
            Most probable class per row.
        pred_prob : pd.DataFrame
            One column per class, index aligned with `data`.
        """
        if data.shape[0] == 0:
            return np.array([], dtype=object), pd.DataFrame(columns=list(self.classes))
        prob = predict_aligned(self._model, self._spec.features(data), self.classes)
        labels = np.asarray(self.classes, dtype=object)[prob.argmax(axis=1)]
        return labels, pd.DataFrame(prob, index=data.index, columns=list(self.classes))


# -----------------------------------------------------------------------------
# Function: fit_final
# -----------------------------------------------------------------------------
def fit_final(train_data, test_data, config, spec):
    """
    Fit the selected configuration on the training partition and evaluate
    it on the test partition exactly once.

    Parameters
    ----------
    train_data, test_data : pd.DataFrame
        Partitions from `train_test_split_func`; test may be empty.
    config : HyperparamConfig
        Selected configuration.
    spec : PipelineSpec

    Returns
    -------
    fitted : FittedModel
    report : dict or None
        {'auc', 'accuracy', 'confusion', 'predictions'} for the test
        partition, None when it is empty.
    """
    model = lgb_LGBMClassifier(config, spec)
    model.fit(spec.features(train_data), spec.labels(train_data))
    fitted = FittedModel(model, config, spec)
    logging.info(f"> Final model fitted on {train_data.shape[0]} loci")

    if test_data.shape[0] == 0:
        logging.warning("> Empty test partition; held-out evaluation skipped")
        return fitted, None

    y_test = spec.labels(test_data)
    labels, pred_prob = fitted.predict(test_data)
    report = get_metrices(y_test, labels, pred_prob.to_numpy(), spec.classes)

    predictions = test_data[["row_id", *LOCUS_COLUMNS, spec.label_column]].copy()
    predictions["pred_label"] = labels
    for cls in spec.classes:
        predictions[f"prob_{cls}"] = pred_prob[cls].to_numpy()
    report["predictions"] = predictions

    logging.info(f"> Test set AUC     : {round(report['auc'], 4)}")
    logging.info(f"> Test set Accuracy: {round(report['accuracy'], 4)}")
    logging.info(f"> Test set confusion matrix:\n{report['confusion']}")
    return fitted, report


# -----------------------------------------------------------------------------
# Function: predict_loci
# -----------------------------------------------------------------------------
def predict_loci(fitted, rows, min_probability=MIN_PREDICTION_PROBABILITY):
    """
    Predict harmonized rows and return one label per distinct locus.

    Rows are re-joined to their locus through `row_id`. When several rows
    share a locus the most confident prediction is kept (lowest row_id on
    ties). Predictions below `min_probability` are reported as 'unknown'.

    Returns
    -------
    pd.DataFrame
        chrom, start, end, locus, predicted_label, probability.
    """
    labels, pred_prob = fitted.predict(rows)

    by_row = pd.DataFrame(
        {
            "row_id": rows["row_id"].to_numpy(),
            "predicted_label": labels,
            "probability": pred_prob.max(axis=1).to_numpy() if len(rows) else [],
        }
    )
    by_row["predicted_label"] = by_row["predicted_label"].where(
        by_row["probability"] >= min_probability, ModType.UNKNOWN.value
    )

    loci = rows[["row_id", *LOCUS_COLUMNS]].merge(by_row, on="row_id", how="inner", validate="one_to_one")
    loci = loci.sort_values(["probability", "row_id"], ascending=[False, True], kind="mergesort")
    loci = sort_by_locus(loci.drop_duplicates(subset=LOCUS_COLUMNS, keep="first"))

    loci["locus"] = [str(key) for key in locus_keys(loci)]
    logging.info(f"> Predicted {loci.shape[0]} loci: {loci['predicted_label'].value_counts().to_dict()}")
    return loci[[*LOCUS_COLUMNS, "locus", "predicted_label", "probability"]]
