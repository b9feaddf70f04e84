# =============================================================================
# Copyright (c) 2025 ByteDance Ltd. and/or its affiliates
# SPDX-License-Identifier: GPL-3.0-or-later
# =============================================================================
# SCRIPT  : io.py
# PROJECT : MODTYPE - RNA Modification Type Classifier
# PURPOSE : Input/output helpers for tables, models and JSON documents
#
# OVERVIEW:
#   Thin wrappers that serialize pandas DataFrames as tab-delimited text,
#   fitted models via joblib, and dictionaries/lists as JSON, so that every
#   MODTYPE output uses the same formatting.
#
# USAGE   :
#   save_data(df, "predictions.tsv")
#   save_model(model, "model.dat")
#   save_json(params, "best_params.json")
#
# CREATED : 2026-10-17
# UPDATED : 2026-10-17
#
# NOTE    :
#   - Overwrites existing files at the same path.
# =============================================================================

import json
from typing import Any, Union

import joblib
import pandas as pd


# -----------------------------------------------------------------------------
# Function: save_data
# -----------------------------------------------------------------------------
def save_data(data: pd.DataFrame, path: str, sep: str = "\t") -> None:
    """
    Save a DataFrame as a delimited text file with header and no row index.
    """
    data.to_csv(path, sep=sep, index=False, header=True)


# -----------------------------------------------------------------------------
# Function: save_model
# -----------------------------------------------------------------------------
def save_model(model: Any, path: str) -> None:
    """
    Serialize a fitted model with joblib.

    Parameters
    ----------
    model : Any
        Fitted model object (e.g. FittedModel).
    path : str
        Destination file path.
    """
    joblib.dump(model, path)


def load_model(path: str) -> Any:
    """Load a model written by `save_model`."""
    return joblib.load(path)


# -----------------------------------------------------------------------------
# Function: save_json
# -----------------------------------------------------------------------------
def save_json(data: Union[dict, list], path: str) -> None:
    """
    Save a dictionary or list as pretty-printed UTF-8 JSON.
    """
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=4, default=str)
