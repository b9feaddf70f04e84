# Copyright (c) 2025 ByteDance Ltd. and/or its affiliates
# SPDX-License-Identifier: GPL-3.0-or-later
# =============================================================================
# -*- coding: utf-8 -*-
# =============================================================================
# SCRIPT  : taxonomy.py
# PROJECT : MODTYPE - RNA Modification Type Classifier
# PURPOSE : Collapse compound reference labels onto a closed set of
#           modification types.
#
# CREATED : 2026-10-17
# UPDATED : 2026-10-17
# =============================================================================

"""
Label taxonomy for reference modification calls.

Includes:
1. `ModType` - closed enumeration of modification types, including `unknown`.
2. `LabelTaxonomyMapper` - exact-match lookup of raw compound labels such
   as "m1A|m1I|ms2i6A"; anything not in the table maps to `unknown`.
"""

import logging
from collections import Counter
from enum import Enum

import pandas as pd

from modtype_classifier.config import LABEL_TAXONOMY
from modtype_classifier.utils.errors import UNMAPPED_LABEL


class ModType(str, Enum):
    M1A = "m1A"
    I6A = "i6A"
    D = "D"
    Y = "Y"
    M1G = "m1G"
    M2G = "m2G"
    M3C = "m3C"
    UNKNOWN = "unknown"

    def __str__(self):
        return self.value


class LabelTaxonomyMapper:
    """
    Map raw reference labels to ModType by exact string match.

    The mapper is total: every input, including missing values and
    non-string objects, yields exactly one ModType. Inputs absent from the
    table become ModType.UNKNOWN and are counted in `unmapped`.

    Parameters
    ----------
    table : dict, optional
        Raw label -> ModType value. Defaults to config.LABEL_TAXONOMY.
    """

    def __init__(self, table=None):
        table = LABEL_TAXONOMY if table is None else table
        # Validate targets up front so a bad table fails at construction
        self.table = {raw: ModType(target) for raw, target in table.items()}
        self.unmapped = Counter()

    def map_label(self, raw) -> ModType:
        if isinstance(raw, str) and raw in self.table:
            return self.table[raw]
        self.unmapped[raw if isinstance(raw, str) else repr(raw)] += 1
        return ModType.UNKNOWN

    def map_series(self, labels: pd.Series, summary=None) -> pd.Series:
        """
        Map a Series of raw labels, returning a Series of ModType values.

        Unmapped inputs seen in this call are logged and, when a RunSummary
        is given, recorded as UnmappedLabel issues.
        """
        before = Counter(self.unmapped)
        mapped = labels.map(lambda raw: self.map_label(raw).value)
        new_unmapped = self.unmapped - before

        if new_unmapped:
            total = sum(new_unmapped.values())
            logging.warning(
                f"> {total} reference labels not in taxonomy, mapped to 'unknown': "
                f"{dict(new_unmapped)}"
            )
            if summary is not None:
                for raw, count in sorted(new_unmapped.items()):
                    summary.add(
                        UNMAPPED_LABEL,
                        f"Label {raw!r} not in taxonomy table ({count} rows)",
                        {"label": raw, "count": count},
                    )
        return mapped
