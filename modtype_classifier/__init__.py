# Copyright (c) 2025 ByteDance Ltd. and/or its affiliates
# SPDX-License-Identifier: GPL-3.0-or-later
"""
MODTYPE - RNA modification type classifier.

Harmonizes per-locus nucleotide count tables, tunes a LightGBM classifier
on reference modification calls and predicts modification types per locus.
"""

__version__ = "0.1.0"
