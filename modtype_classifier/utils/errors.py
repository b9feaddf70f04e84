# =============================================================================
# Copyright (c) 2025 ByteDance Ltd. and/or its affiliates
# SPDX-License-Identifier: GPL-3.0-or-later
# =============================================================================
# SCRIPT  : errors.py
# PROJECT : MODTYPE - RNA Modification Type Classifier
# PURPOSE : Error taxonomy and run summary of non-fatal issues
#
# OVERVIEW:
#   Fatal conditions are raised as ModTypeError subclasses and stop the run.
#   Non-fatal conditions (unmapped labels, failed trials, excluded classes,
#   dropped or collapsed rows) are collected as Issue records in a
#   RunSummary, logged, and written next to the run's other outputs.
#
# CREATED : 2026-10-17
# UPDATED : 2026-10-17
# =============================================================================

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional

UNMAPPED_LABEL = "UnmappedLabel"
TRIAL_FAILURE = "TrialFailure"
INSUFFICIENT_FOLD_DATA = "InsufficientFoldData"
LOW_DEPTH = "LowDepth"
DUPLICATE_LOCUS = "DuplicateLocus"


class ModTypeError(Exception):
    """Base class for fatal MODTYPE errors."""


class SchemaMismatch(ModTypeError):
    """Input columns, types or values do not match the declared contract."""


class InsufficientFoldData(ModTypeError):
    """
    Stratified folds cannot be formed.

    Attributes
    ----------
    classes : dict
        Offending class name -> member count.
    folds : int
        Fold count that could not be satisfied.
    """

    def __init__(self, message, classes=None, folds=None):
        super().__init__(message)
        self.classes = dict(classes or {})
        self.folds = folds


class TuningCancelled(ModTypeError):
    """The run was aborted between trial dispatches."""


@dataclass(frozen=True)
class Issue:
    kind: str
    message: str
    detail: Optional[dict] = None


@dataclass
class RunSummary:
    """Collects non-fatal issues raised during a run."""

    issues: List[Issue] = field(default_factory=list)

    def add(self, kind: str, message: str, detail: Optional[dict] = None) -> Issue:
        issue = Issue(kind=kind, message=message, detail=detail)
        self.issues.append(issue)
        logging.warning(f"[{kind}] {message}")
        return issue

    def of_kind(self, kind: str) -> List[Issue]:
        return [issue for issue in self.issues if issue.kind == kind]

    def counts(self) -> Dict[str, int]:
        return dict(Counter(issue.kind for issue in self.issues))

    def to_dict(self) -> dict:
        return {
            "counts": self.counts(),
            "issues": [
                {"kind": i.kind, "message": i.message, "detail": i.detail}
                for i in self.issues
            ],
        }
