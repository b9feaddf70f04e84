# =============================================================================
# Copyright (c) 2025 ByteDance Ltd. and/or its affiliates
# SPDX-License-Identifier: GPL-3.0-or-later
# =============================================================================
# -*- coding: utf-8 -*-
# =============================================================================
# SCRIPT  : select.py
# PROJECT : MODTYPE - RNA Modification Type Classifier
# PURPOSE : Aggregate per-fold trial metrics and rank candidate
#           configurations.
#
# CREATED : 2026-10-17
# UPDATED : 2026-10-17
# =============================================================================

"""
Model selection for the MODTYPE classifier.

Configurations are ranked by mean held-out AUC (descending), then by
lower variance across folds, then by generation order. Failed folds are
left out of a configuration's aggregate; a configuration with no
successful fold is not ranked. The ranking does not depend on the order
in which trial results arrive.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np
import pandas as pd

from modtype_classifier.model.search_space import HyperparamConfig


@dataclass(frozen=True)
class RankedConfig:
    config_id: int
    config: HyperparamConfig
    mean_metric: float
    variance: float
    fold_metrics: Tuple[Tuple[int, float], ...]
    n_failed: int

    @property
    def n_folds(self) -> int:
        return len(self.fold_metrics)


def rank_configs(results) -> List[RankedConfig]:
    """
    Rank configurations from a collection of TrialResults.

    Returns
    -------
    list of RankedConfig
        Best first.
    """
    succeeded = defaultdict(dict)
    failed = defaultdict(int)
    configs = {}

    for r in results:
        configs[r.config_id] = r.config
        if r.succeeded:
            succeeded[r.config_id][r.fold_id] = r.metric
        else:
            failed[r.config_id] += 1

    ranked = []
    for config_id in sorted(configs):
        folds = succeeded.get(config_id)
        if not folds:
            logging.warning(f"> Config {config_id} has no successful folds; not ranked")
            continue
        fold_metrics = tuple(sorted(folds.items()))
        values = np.array([metric for _, metric in fold_metrics])
        ranked.append(
            RankedConfig(
                config_id=config_id,
                config=configs[config_id],
                mean_metric=float(values.mean()),
                variance=float(values.var()),
                fold_metrics=fold_metrics,
                n_failed=failed[config_id],
            )
        )

    ranked.sort(key=lambda rc: (-rc.mean_metric, rc.variance, rc.config_id))
    return ranked


def select_best(ranked: List[RankedConfig]) -> RankedConfig:
    """Top-ranked configuration; raises ValueError when nothing is rankable."""
    if not ranked:
        raise ValueError("No configuration completed any fold successfully")
    best = ranked[0]
    logging.info(
        f"> Selected config {best.config_id}: mean AUC {round(best.mean_metric, 4)} "
        f"(var {round(best.variance, 6)}, {best.n_folds} folds)"
    )
    return best


def top_k(ranked: List[RankedConfig], k: int) -> List[RankedConfig]:
    return ranked[:k]


def ranking_frame(ranked: List[RankedConfig]) -> pd.DataFrame:
    """Inspection table of ranked configurations."""
    rows = []
    for rank, rc in enumerate(ranked, start=1):
        row = {
            "rank": rank,
            "config_id": rc.config_id,
            **rc.config.as_dict(),
            "mean_auc": rc.mean_metric,
            "var_auc": rc.variance,
            "n_folds_ok": rc.n_folds,
            "n_folds_failed": rc.n_failed,
        }
        row.update({f"fold{fold_id}_auc": metric for fold_id, metric in rc.fold_metrics})
        rows.append(row)
    return pd.DataFrame(rows)
