# Copyright (c) 2025 ByteDance Ltd. and/or its affiliates
# SPDX-License-Identifier: GPL-3.0-or-later
# =============================================================================
# -*- coding: utf-8 -*-
# =============================================================================
# SCRIPT  : search_space.py
# PROJECT : MODTYPE - RNA Modification Type Classifier
# PURPOSE : Declare hyperparameter ranges and generate a Latin hypercube
#           design of candidate LightGBM configurations.
#
# CREATED : 2026-10-17
# UPDATED : 2026-10-17
# =============================================================================

"""
Hyperparameter search space for the MODTYPE classifier.

Includes:
1. `ParamRange` - type, bounds and optional log10 transform of one parameter.
2. `HyperparamConfig` - immutable candidate configuration.
3. `SearchSpace` - bound finalization (mtry depends on the feature count)
   and Latin hypercube sampling via scipy.stats.qmc.
"""

import logging
from dataclasses import asdict, dataclass, replace
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
from scipy.stats import qmc

from modtype_classifier.config import RANDOM_SEED, SEARCH_BOUNDS

PARAM_NAMES = (
    "tree_depth",
    "min_node_size",
    "loss_reduction",
    "sample_proportion",
    "mtry",
    "learn_rate",
)
PARAM_KINDS = ("integer", "continuous", "proportion")


@dataclass(frozen=True)
class ParamRange:
    name: str
    kind: str
    lower: float
    upper: Optional[float]
    transform: Optional[str] = None

    def __post_init__(self):
        assert self.kind in PARAM_KINDS, f"{self.name}: unknown kind {self.kind!r}"
        assert self.transform in (None, "log10"), f"{self.name}: unknown transform"
        if self.upper is not None and self.upper < self.lower:
            raise ValueError(f"{self.name}: upper bound {self.upper} < lower bound {self.lower}")
        if self.kind == "proportion" and not (0 < self.lower and self.upper is not None and self.upper <= 1):
            raise ValueError(f"{self.name}: proportion bounds must lie in (0, 1]")

    @property
    def finalized(self) -> bool:
        return self.upper is not None

    def scale(self, unit: np.ndarray) -> np.ndarray:
        """Map unit-interval samples onto this range."""
        if self.kind == "integer":
            width = self.upper - self.lower + 1
            values = self.lower + np.floor(unit * width)
            return np.minimum(values, self.upper).astype(int)
        values = self.lower + unit * (self.upper - self.lower)
        if self.transform == "log10":
            values = np.power(10.0, values)
        return values

    def contains(self, value) -> bool:
        lower, upper = self.lower, self.upper
        if self.transform == "log10":
            lower, upper = 10.0 ** lower, 10.0 ** upper
        return lower <= value <= upper


@dataclass(frozen=True)
class HyperparamConfig:
    tree_depth: int
    min_node_size: int
    loss_reduction: float
    sample_proportion: float
    mtry: int
    learn_rate: float

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


class SearchSpace:
    """
    Ranges for every tunable parameter.

    Parameters
    ----------
    ranges : dict
        Parameter name -> ParamRange; must cover PARAM_NAMES.
    """

    def __init__(self, ranges: Dict[str, ParamRange]):
        missing = set(PARAM_NAMES) - set(ranges)
        if missing:
            raise ValueError(f"Search space is missing parameters: {sorted(missing)}")
        self.ranges = {name: ranges[name] for name in PARAM_NAMES}

    @classmethod
    def from_bounds(cls, bounds=None):
        bounds = SEARCH_BOUNDS if bounds is None else bounds
        return cls(
            {
                name: ParamRange(name, kind, lower, upper, transform)
                for name, (kind, lower, upper, transform) in bounds.items()
            }
        )

    @property
    def finalized(self) -> bool:
        return all(r.finalized for r in self.ranges.values())

    def finalize(self, feature_count: int) -> "SearchSpace":
        """
        Return a new space with data-dependent bounds fixed.

        mtry's upper bound becomes `feature_count` when unset; an explicit
        bound above `feature_count` is rejected.
        """
        mtry = self.ranges["mtry"]
        if mtry.upper is None:
            mtry = replace(mtry, upper=feature_count)
        elif mtry.upper > feature_count:
            raise ValueError(f"mtry upper bound {mtry.upper} exceeds feature count {feature_count}")
        if mtry.lower < 1 or mtry.upper < mtry.lower:
            raise ValueError(f"mtry range [{mtry.lower}, {mtry.upper}] is empty")
        return SearchSpace({**self.ranges, "mtry": mtry})

    def sample(self, size: int, random_state: int = RANDOM_SEED) -> List[HyperparamConfig]:
        """
        Draw `size` distinct configurations as a Latin hypercube design.

        Each parameter axis is cut into `size` equal-probability bins and
        every bin holds exactly one candidate.
        """
        if not self.finalized:
            pending = [name for name, r in self.ranges.items() if not r.finalized]
            raise ValueError(f"Finalize bounds before sampling: {pending}")
        assert size >= 1, "size must be positive"

        sampler = qmc.LatinHypercube(d=len(PARAM_NAMES), seed=random_state)
        unit = sampler.random(n=size)

        columns = {
            name: self.ranges[name].scale(unit[:, i]) for i, name in enumerate(PARAM_NAMES)
        }
        configs = [
            HyperparamConfig(
                tree_depth=int(columns["tree_depth"][j]),
                min_node_size=int(columns["min_node_size"][j]),
                loss_reduction=float(columns["loss_reduction"][j]),
                sample_proportion=float(columns["sample_proportion"][j]),
                mtry=int(columns["mtry"][j]),
                learn_rate=float(columns["learn_rate"][j]),
            )
            for j in range(size)
        ]

        if len(set(configs)) != size:
            raise ValueError(f"Search space cannot provide {size} distinct configurations")
        logging.info(f"> Generated {size} Latin hypercube candidates (seed {random_state})")
        return configs


def design_frame(configs: List[HyperparamConfig]) -> pd.DataFrame:
    """Configurations as a table with a `config_id` column in generation order."""
    frame = pd.DataFrame([c.as_dict() for c in configs], columns=list(PARAM_NAMES))
    frame.insert(0, "config_id", np.arange(len(configs)))
    return frame
