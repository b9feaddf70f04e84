# Copyright (c) 2025 ByteDance Ltd. and/or its affiliates
# SPDX-License-Identifier: GPL-3.0-or-later
# =============================================================================
# -*- coding: utf-8 -*-
# =============================================================================
# SCRIPT  : split.py
# PROJECT : MODTYPE - RNA Modification Type Classifier
# PURPOSE : Provide the held-out train/test split and label-stratified
#           cross-validation folds for the labeled locus table.
#
# CREATED : 2026-10-17
# UPDATED : 2026-10-17
# =============================================================================

"""
Data splitting utilities for the MODTYPE classifier.

This module includes:
1. `train_test_split_func` - split labeled loci once into a training and a
   held-out test partition, stratified by label.
2. `apply_small_class_policy` - handle classes with fewer members than the
   fold count (exclude them, reduce the fold count, or keep them).
3. `cv_split_func` - assign rows to k label-stratified folds.

All functions return new DataFrames; the input table is never modified.
"""

import logging
from dataclasses import dataclass
from typing import Iterator, Tuple

import numpy as np
import pandas as pd
from sklearn.model_selection import StratifiedKFold, train_test_split

from modtype_classifier.config import LABEL_COLUMN, RANDOM_SEED
from modtype_classifier.utils.errors import (
    INSUFFICIENT_FOLD_DATA,
    InsufficientFoldData,
)

SMALL_CLASS_POLICIES = ("exclude", "reduce_folds", "keep")


# -----------------------------------------------------------------------------
# Class: FoldAssignment
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class FoldAssignment:
    """
    Partition of table positions into k disjoint folds.

    Attributes
    ----------
    folds : int
        Number of folds.
    fold_of : tuple of int
        Fold id of each row position of the table the assignment was made for.
    random_state : int
        Seed used for the shuffle.
    """

    folds: int
    fold_of: Tuple[int, ...]
    random_state: int

    def validation_index(self, fold_id: int) -> np.ndarray:
        return np.flatnonzero(np.asarray(self.fold_of) == fold_id)

    def train_index(self, fold_id: int) -> np.ndarray:
        return np.flatnonzero(np.asarray(self.fold_of) != fold_id)

    def split(self) -> Iterator[Tuple[np.ndarray, np.ndarray]]:
        """Yield (train_index, val_index) per fold, like sklearn splitters."""
        for fold_id in range(self.folds):
            yield self.train_index(fold_id), self.validation_index(fold_id)

    def fold_sizes(self):
        return np.bincount(np.asarray(self.fold_of), minlength=self.folds).tolist()


# -----------------------------------------------------------------------------
# Function: train_test_split_func
# -----------------------------------------------------------------------------
def train_test_split_func(
    data, test_size, label_column=LABEL_COLUMN, random_state=RANDOM_SEED
):
    """
    Split labeled loci into training and test partitions stratified by label.

    Classes with a single member cannot appear in both partitions and stay
    in the training partition. `test_size=0` returns every row as training
    data and an empty test partition.

    Parameters
    ----------
    data : pd.DataFrame
        Labeled table.
    test_size : float
        Fraction of rows for the test partition, in [0, 1).
    label_column : str, optional
        Stratification column (default: 'label').
    random_state : int, optional
        Random seed for reproducibility (default: 132).

    Returns
    -------
    train_data, test_data : tuple of pd.DataFrame
    """
    assert 0 <= test_size < 1, "test_size must be in [0, 1)"

    if test_size == 0:
        return data.reset_index(drop=True), data.iloc[0:0].reset_index(drop=True)

    counts = data[label_column].value_counts()
    singletons = counts.index[counts < 2]
    is_singleton = data[label_column].isin(singletons)
    if is_singleton.any():
        logging.info(
            f"> Classes with one member kept in training partition: {sorted(singletons)}"
        )

    splittable = data.loc[~is_singleton]
    try:
        train_data, test_data = train_test_split(
            splittable,
            test_size=test_size,
            stratify=splittable[label_column],
            shuffle=True,
            random_state=random_state,
        )
    except ValueError as exc:
        raise InsufficientFoldData(
            f"Cannot form a stratified {1 - test_size:.0%}/{test_size:.0%} split: {exc}",
            classes=counts.to_dict(),
        ) from exc

    train_data = pd.concat([train_data, data.loc[is_singleton]])
    train_data = train_data.sort_values("row_id").reset_index(drop=True)
    test_data = test_data.sort_values("row_id").reset_index(drop=True)
    return train_data, test_data


# -----------------------------------------------------------------------------
# Function: apply_small_class_policy
# -----------------------------------------------------------------------------
def apply_small_class_policy(
    data, fold, policy="exclude", label_column=LABEL_COLUMN, summary=None
):
    """
    Resolve classes with fewer members than the fold count.

    Parameters
    ----------
    data : pd.DataFrame
        Tuning (training-partition) table.
    fold : int
        Requested fold count.
    policy : str
        'exclude'      - drop the small classes;
        'reduce_folds' - lower the fold count to the smallest class size;
        'keep'         - keep every class, stratification is best-effort.
    summary : RunSummary, optional
        Receives an InsufficientFoldData issue naming the affected classes.

    Returns
    -------
    data, fold : pd.DataFrame, int
        Table to tune on and the fold count to use.

    Raises
    ------
    InsufficientFoldData
        When fewer than two classes or fewer than two folds remain.
    """
    assert policy in SMALL_CLASS_POLICIES, f"policy must be one of {SMALL_CLASS_POLICIES}"

    counts = data[label_column].value_counts()
    small = counts[counts < fold]

    if not small.empty:
        detail = {"classes": small.to_dict(), "folds": fold, "policy": policy}
        if policy == "exclude":
            data = data.loc[~data[label_column].isin(small.index)].reset_index(drop=True)
            action = "excluded from tuning"
        elif policy == "reduce_folds":
            reduced = int(counts.min())
            if reduced < 2:
                raise InsufficientFoldData(
                    f"Cannot reduce folds below 2; classes {small.to_dict()} "
                    f"have fewer than 2 members",
                    classes=small.to_dict(),
                    folds=fold,
                )
            action = f"fold count reduced from {fold} to {reduced}"
            fold = reduced
            detail["reduced_folds"] = reduced
        else:
            action = "kept with best-effort stratification"

        message = f"Classes {small.to_dict()} have fewer than {detail['folds']} members; {action}"
        if summary is not None:
            summary.add(INSUFFICIENT_FOLD_DATA, message, detail)
        else:
            logging.warning(f"> {message}")

    remaining = data[label_column].value_counts()
    if remaining.shape[0] < 2:
        raise InsufficientFoldData(
            f"At least two classes are required for tuning; remaining: {remaining.to_dict()}",
            classes=counts.to_dict(),
            folds=fold,
        )
    return data, fold


# -----------------------------------------------------------------------------
# Function: cv_split_func
# -----------------------------------------------------------------------------
def cv_split_func(labels, fold, random_state=RANDOM_SEED):
    """
    Assign rows to `fold` label-stratified folds.

    Parameters
    ----------
    labels : array-like
        Class label per row.
    fold : int
        Number of folds (>= 2).
    random_state : int, optional
        Random seed for reproducibility (default: 132).

    Returns
    -------
    FoldAssignment
    """
    labels = np.asarray(labels)
    assert fold >= 2, "At least two folds are required"

    fold_of = np.full(labels.shape[0], -1, dtype=int)
    splitter = StratifiedKFold(n_splits=fold, shuffle=True, random_state=random_state)
    try:
        for fold_id, (_, val_index) in enumerate(
            splitter.split(np.zeros(labels.shape[0]), labels)
        ):
            fold_of[val_index] = fold_id
    except ValueError as exc:
        values, counts = np.unique(labels, return_counts=True)
        raise InsufficientFoldData(
            f"Cannot form {fold} stratified folds: {exc}",
            classes=dict(zip(values.tolist(), counts.tolist())),
            folds=fold,
        ) from exc

    assignment = FoldAssignment(
        folds=fold, fold_of=tuple(fold_of.tolist()), random_state=random_state
    )
    logging.info(f"> Fold sizes: {assignment.fold_sizes()}")
    return assignment
