# Copyright (c) 2025 ByteDance Ltd. and/or its affiliates
# SPDX-License-Identifier: GPL-3.0-or-later
# =============================================================================
# -*- coding: utf-8 -*-
# =============================================================================
# SCRIPT  : loci.py
# PROJECT : MODTYPE - RNA Modification Type Classifier
# PURPOSE : Canonical locus identity shared by every harmonized table.
#
# CREATED : 2026-10-17
# UPDATED : 2026-10-17
# =============================================================================

"""
Locus identity helpers.

A locus is keyed by (chromosome, start, end). Keys order by chromosome
name first, then coordinates, and are used to join and deduplicate rows
coming from different sources.
"""

from typing import List, NamedTuple

import pandas as pd

LOCUS_COLUMNS = ["chrom", "start", "end"]


class LocusKey(NamedTuple):
    chrom: str
    start: int
    end: int

    def __str__(self):
        return f"{self.chrom}:{self.start}-{self.end}"


def locus_keys(data: pd.DataFrame) -> List[LocusKey]:
    """Return the LocusKey of every row, in row order."""
    return [
        LocusKey(str(chrom), int(start), int(end))
        for chrom, start, end in data[LOCUS_COLUMNS].itertuples(index=False)
    ]


def sort_by_locus(data: pd.DataFrame) -> pd.DataFrame:
    """Return a copy sorted by (chrom, start, end) with a fresh index."""
    return data.sort_values(by=LOCUS_COLUMNS, kind="mergesort").reset_index(
        drop=True
    )
