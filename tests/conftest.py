# Copyright (c) 2025 ByteDance Ltd. and/or its affiliates
# SPDX-License-Identifier: GPL-3.0-or-later
"""
Pytest configuration and shared fixtures for MODTYPE.
"""

import numpy as np
import pandas as pd
import pytest

from modtype_classifier.config import NUCLEOTIDES, REFERENCE_COLUMNS, SIGNAL_COLUMNS

# Reference nucleotide and dominant variant base per label for synthetic loci
LABEL_PROFILES = {
    "m1A|m1I|ms2i6A": ("A", "G"),
    "m3C": ("C", "T"),
    "m2G|m22G": ("G", "A"),
}


def signal_row(chrom, start, ref, counts, depth=None, bias=(0, 0)):
    """
    One raw signal row. `counts` maps nucleotide -> (forward, reverse).
    """
    row = {"chrom": chrom, "start": start, "end": start + 1, "ref_nucleotide": ref}
    total = 0
    for nuc in NUCLEOTIDES:
        fwd, rev = counts.get(nuc, (0, 0))
        row[f"{nuc}_fwd"] = fwd
        row[f"{nuc}_rev"] = rev
        total += fwd + rev
    row["depth"] = total if depth is None else depth
    row["strand_bias_upper"], row["strand_bias_lower"] = bias
    return row


def reference_row(chrom, start, ref, label, ref_count=20, nonref_count=5):
    row = {
        "chrom": chrom,
        "start": start,
        "end": start + 1,
        "strand": "+",
        "ref_nucleotide": ref,
        "A": 0,
        "C": 0,
        "G": 0,
        "T": 0,
        "ref_count": ref_count,
        "nonref_count": nonref_count,
        "p_value": 0.001,
        "fdr": 0.01,
        "mod_label": label,
    }
    row[ref] = ref_count
    return row


def to_signal_frame(rows):
    return pd.DataFrame(rows, columns=SIGNAL_COLUMNS).astype(str)


def to_reference_frame(rows):
    return pd.DataFrame(rows, columns=REFERENCE_COLUMNS).astype(str)


def write_inputs(directory, signal_rows, reference_rows):
    """Write signal (headerless), header-definition and reference files."""
    signal_path = directory / "signal.tsv"
    header_path = directory / "signal_header.txt"
    reference_path = directory / "reference.tsv"
    to_signal_frame(signal_rows).to_csv(signal_path, sep="\t", header=False, index=False)
    header_path.write_text("\n".join(SIGNAL_COLUMNS) + "\n")
    to_reference_frame(reference_rows).to_csv(reference_path, sep="\t", index=False)
    return signal_path, header_path, reference_path


def synthetic_loci(per_class=12, seed=7):
    """
    Signal and reference rows for three separable modification classes.
    """
    rng = np.random.default_rng(seed)
    signal_rows, reference_rows = [], []
    start = 100
    for label, (ref, variant) in LABEL_PROFILES.items():
        for _ in range(per_class):
            ref_reads = int(rng.integers(20, 40))
            variant_reads = int(rng.integers(8, 20))
            counts = {
                ref: (ref_reads // 2, ref_reads - ref_reads // 2),
                variant: (variant_reads // 2, variant_reads - variant_reads // 2),
            }
            signal_rows.append(
                signal_row("chr1", start, ref, counts, bias=(int(rng.integers(0, 5)), int(rng.integers(0, 5))))
            )
            reference_rows.append(reference_row("chr1", start, ref, label, ref_reads, variant_reads))
            start += 10
    return signal_rows, reference_rows


@pytest.fixture
def basic_signal_rows():
    return [
        signal_row("chr1", 100, "A", {"A": (10, 5), "G": (3, 2)}, bias=(1, 2)),
        signal_row("chr1", 200, "C", {"C": (6, 6), "T": (1, 0)}),
        signal_row("chr2", 50, "G", {"G": (20, 20)}),
        signal_row("chr1", 300, "T", {"T": (2, 1)}),  # depth 3, below threshold
    ]


@pytest.fixture
def basic_reference_rows():
    return [
        reference_row("chr1", 100, "A", "m1A|m1I|ms2i6A"),
        reference_row("chr1", 200, "C", "m3C"),
        reference_row("chr2", 50, "G", "not_a_real_label"),
    ]


@pytest.fixture
def synthetic_rows():
    return synthetic_loci()
