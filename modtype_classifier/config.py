# Copyright (c) 2025 ByteDance Ltd. and/or its affiliates
# SPDX-License-Identifier: GPL-3.0-or-later
# =============================================================================
# -*- coding: utf-8 -*-
# =============================================================================
# SCRIPT  : config.py
# PROJECT : MODTYPE - RNA Modification Type Classifier
# PURPOSE : Configuration settings for harmonization, hyperparameter search,
#           cross-validation and final fitting of the LightGBM classifier.
#
# CREATED : 2026-10-17
# UPDATED : 2026-10-17
# =============================================================================

"""
Configuration module for the MODTYPE boost-tree classifier.

Contains run defaults, input schema contracts, the modification-type
taxonomy table, and the default hyperparameter search bounds.
Modify these parameters to adjust harmonization, tuning, and evaluation.
"""

# -----------------------------
# Run configuration
# -----------------------------
# Minimum read depth for a signal-source locus to be admitted
MIN_DEPTH: int = 10

# Number of folds for cross-validation
CV_FOLDS: int = 10

# Number of Latin hypercube candidates
SEARCH_SIZE: int = 30

# Fraction of labeled loci held out for the final test evaluation
TEST_FRACTION: float = 0.3

# Random seed for split, folds, and design generation
RANDOM_SEED: int = 132

# Parallel workers for trial evaluation
N_JOBS: int = 1

# Number of ranked configurations reported for inspection
TOP_K: int = 5

# Number of boosting iterations (trees); not tuned
N_ESTIMATORS: int = 200

# Classes with fewer members than the fold count: exclude | reduce_folds | keep
SMALL_CLASS_POLICY: str = "exclude"

# Drop reference loci whose label maps to "unknown" before training
EXCLUDE_UNKNOWN: bool = True

# Predictions below this top-class probability are reported as "unknown"
MIN_PREDICTION_PROBABILITY: float = 0.0

# Which signal loci receive a prediction: all | unlabeled
PREDICT_SCOPE: str = "all"

# -----------------------------
# Input schema contracts
# -----------------------------
NUCLEOTIDES = ("A", "C", "G", "T")

# Signal source: no header line; names come from the header-definition file
SIGNAL_COLUMNS = [
    "chrom",
    "start",
    "end",
    "ref_nucleotide",
    "depth",
    "A_fwd",
    "A_rev",
    "C_fwd",
    "C_rev",
    "G_fwd",
    "G_rev",
    "T_fwd",
    "T_rev",
    "strand_bias_upper",
    "strand_bias_lower",
]

# Reference source: tab-delimited with a header line
REFERENCE_COLUMNS = [
    "chrom",
    "start",
    "end",
    "strand",
    "ref_nucleotide",
    "A",
    "C",
    "G",
    "T",
    "ref_count",
    "nonref_count",
    "p_value",
    "fdr",
    "mod_label",
]

# Classifier feature vector, in order
FEATURE_COLUMNS = [
    "A",
    "C",
    "G",
    "T",
    "variant_proportion",
    "depth",
    "strand_bias_upper",
    "strand_bias_lower",
    "ref_code",
]

LABEL_COLUMN: str = "label"

# -----------------------------
# Modification-type taxonomy
# -----------------------------
# Exact raw label -> collapsed type. Anything absent maps to "unknown".
LABEL_TAXONOMY = {
    "m1A": "m1A",
    "m1A|m1I|ms2i6A": "m1A",
    "m1A|ms2i6A": "m1A",
    "m1I": "m1A",
    "i6A": "i6A",
    "i6A|t6A": "i6A",
    "i6A|ms2i6A|t6A": "i6A",
    "ms2i6A": "i6A",
    "t6A": "i6A",
    "D": "D",
    "Y": "Y",
    "m1G": "m1G",
    "m2G": "m2G",
    "m2G|m22G": "m2G",
    "m22G": "m2G",
    "m3C": "m3C",
    "m3C|m3U": "m3C",
}

# -----------------------------
# Hyperparameter search bounds
# -----------------------------
# name -> (kind, lower, upper, transform); mtry upper is finalized from data
SEARCH_BOUNDS = {
    "tree_depth": ("integer", 1, 15, None),
    "min_node_size": ("integer", 2, 40, None),
    "loss_reduction": ("continuous", -10.0, 1.5, "log10"),
    "sample_proportion": ("proportion", 0.1, 1.0, None),
    "mtry": ("integer", 1, None, None),
    "learn_rate": ("continuous", -10.0, -1.0, "log10"),
}

# -----------------------------
# Model metadata
# -----------------------------
# Model name identifier
NAME: str = "modtype_lightGBM_lhs"

# Description
MODEL_DESCRIPTION: str = (
    "LightGBM gradient boosting model tuned by Latin hypercube search with "
    "stratified k-fold cross-validation. Predicts RNA modification type from "
    "per-locus nucleotide count features."
)

# -----------------------------
# Notes
# -----------------------------
# - MIN_DEPTH is an admission threshold; rows below it are dropped.
# - mtry is bounded by len(FEATURE_COLUMNS) at run time.
# - All output paths are relative to the --output_dir argument.
