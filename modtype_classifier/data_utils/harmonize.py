# Copyright (c) 2025 ByteDance Ltd. and/or its affiliates
# SPDX-License-Identifier: GPL-3.0-or-later
# =============================================================================
# -*- coding: utf-8 -*-
# =============================================================================
# SCRIPT  : harmonize.py
# PROJECT : MODTYPE - RNA Modification Type Classifier
# PURPOSE : Read the signal and reference tables against their schema
#           contracts and convert both into one canonical per-locus table.
#
# CREATED : 2026-10-17
# UPDATED : 2026-10-17
# =============================================================================

"""
Record harmonization for the MODTYPE classifier.

This module includes:
1. `read_header_definition` / `read_signal_table` / `read_reference_table` -
   load tab-delimited inputs and fail loudly on schema mismatches.
2. `harmonize_signal` - merge strand-split counts, apply the depth filter,
   collapse duplicates and assign stable row identifiers.
3. `harmonize_reference` - derive proportions from reference/non-reference
   counts and map compound labels through the taxonomy.
4. `build_labeled_table` / `unlabeled_rows` - join reference labels onto
   signal features by locus.

Canonical table columns: row_id, chrom, start, end, ref_nucleotide, A, C,
G, T, ref_code, variant_proportion, proportion_defined, depth,
strand_bias_upper, strand_bias_lower (+ label, raw_label for references).
Every function returns a new DataFrame; inputs are never modified.
"""

import logging

import numpy as np
import pandas as pd

from modtype_classifier.config import (
    LABEL_COLUMN,
    MIN_DEPTH,
    NUCLEOTIDES,
    REFERENCE_COLUMNS,
    SIGNAL_COLUMNS,
)
from modtype_classifier.data_utils.loci import LOCUS_COLUMNS, sort_by_locus
from modtype_classifier.data_utils.taxonomy import LabelTaxonomyMapper, ModType
from modtype_classifier.utils.errors import (
    DUPLICATE_LOCUS,
    LOW_DEPTH,
    SchemaMismatch,
)

NUCLEOTIDE_CODES = {nuc: code for code, nuc in enumerate(NUCLEOTIDES)}

CANONICAL_COLUMNS = [
    "row_id",
    *LOCUS_COLUMNS,
    "ref_nucleotide",
    *NUCLEOTIDES,
    "ref_code",
    "variant_proportion",
    "proportion_defined",
    "depth",
    "strand_bias_upper",
    "strand_bias_lower",
]


# -----------------------------------------------------------------------------
# Readers
# -----------------------------------------------------------------------------
def read_header_definition(path):
    """
    Read signal-source column names, one per line or tab-separated.
    """
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    return [name.strip() for name in text.replace("\n", "\t").split("\t") if name.strip()]


def _check_columns(columns, expected, source):
    if list(columns) != list(expected):
        raise SchemaMismatch(
            f"{source} columns do not match the expected schema.\n"
            f"  expected ({len(expected)}): {list(expected)}\n"
            f"  found    ({len(columns)}): {list(columns)}"
        )


def read_signal_table(paths, header_path):
    """
    Read and concatenate headerless signal-source files.

    Parameters
    ----------
    paths : str, Path or list of them
        One or more signal-source experiment files.
    header_path : str or Path
        Header-definition file supplying the column names.

    Returns
    -------
    pd.DataFrame
        Raw signal rows with string-typed columns.
    """
    names = read_header_definition(header_path)
    _check_columns(names, SIGNAL_COLUMNS, f"Header definition {header_path}")

    frames = []
    for path in _as_list(paths):
        data = _read_tsv(path, "Signal file", header=None, comment="#")
        if data.shape[1] != len(names):
            raise SchemaMismatch(
                f"Signal file {path} has {data.shape[1]} columns, "
                f"header definition declares {len(names)}"
            )
        data.columns = names
        frames.append(data)
        logging.info(f"> Signal file {path}: {data.shape[0]} rows")
    return pd.concat(frames, ignore_index=True)


def read_reference_table(paths):
    """
    Read and concatenate reference-source files (tab-delimited, with header).
    """
    frames = []
    for path in _as_list(paths):
        data = _read_tsv(path, "Reference file", header=0)
        _check_columns(data.columns, REFERENCE_COLUMNS, f"Reference file {path}")
        frames.append(data)
        logging.info(f"> Reference file {path}: {data.shape[0]} rows")
    return pd.concat(frames, ignore_index=True)


def _read_tsv(path, source, **kwargs):
    try:
        return pd.read_csv(path, sep="\t", dtype=str, **kwargs)
    except pd.errors.EmptyDataError as exc:
        raise SchemaMismatch(f"{source} {path} is empty") from exc


def _as_list(paths):
    if isinstance(paths, (list, tuple)):
        return list(paths)
    return [paths]


# -----------------------------------------------------------------------------
# Type validation
# -----------------------------------------------------------------------------
def _to_count(data, column, source):
    """Convert a column to non-negative int64, raising SchemaMismatch."""
    values = pd.to_numeric(data[column], errors="coerce")
    bad = values.isna() | (values < 0) | (values % 1 != 0)
    if bad.any():
        example = data.loc[bad, column].iloc[0]
        raise SchemaMismatch(
            f"{source} column '{column}' must hold non-negative integers; "
            f"{int(bad.sum())} invalid values (e.g. {example!r})"
        )
    return values.astype("int64")


def _validated_base(data, expected, count_columns, source):
    """Check column layout and coerce locus/nucleotide/count columns."""
    _check_columns(data.columns, expected, source)
    out = pd.DataFrame(index=data.index)
    missing_chrom = data["chrom"].isna() | (data["chrom"].astype(str).str.strip() == "")
    if missing_chrom.any():
        raise SchemaMismatch(
            f"{source} column 'chrom' is empty in {int(missing_chrom.sum())} rows"
        )
    out["chrom"] = data["chrom"].astype(str).str.strip()
    out["start"] = _to_count(data, "start", source)
    out["end"] = _to_count(data, "end", source)

    if (out["end"] < out["start"]).any():
        raise SchemaMismatch(f"{source} has rows with end < start")

    ref = data["ref_nucleotide"].astype(str).str.strip().str.upper()
    bad_ref = ~ref.isin(NUCLEOTIDES)
    if bad_ref.any():
        raise SchemaMismatch(
            f"{source} column 'ref_nucleotide' must be one of {NUCLEOTIDES}; "
            f"found {sorted(ref[bad_ref].unique())[:5]}"
        )
    out["ref_nucleotide"] = ref

    counts = {column: _to_count(data, column, source) for column in count_columns}
    return out, counts


# -----------------------------------------------------------------------------
# Derived features
# -----------------------------------------------------------------------------
def _variant_proportion(ref_count, nonref_count):
    """nonref / (ref + nonref); NaN where the denominator is zero."""
    total = ref_count + nonref_count
    defined = total > 0
    proportion = np.where(defined, nonref_count / total.where(defined, 1), np.nan)
    return pd.Series(proportion, index=ref_count.index, dtype="float64"), defined


def _reference_base_count(canonical):
    """Count of the reference nucleotide at each row."""
    ref_count = pd.Series(0, index=canonical.index, dtype="int64")
    for nuc in NUCLEOTIDES:
        is_ref = canonical["ref_nucleotide"] == nuc
        ref_count = ref_count.where(~is_ref, canonical[nuc])
    return ref_count


def _collapse_duplicates(canonical, source, summary=None):
    """
    Drop exact duplicates, then collapse remaining same-locus rows to the
    first reported one. Counts are never summed across rows.
    """
    n_before = canonical.shape[0]
    canonical = canonical.drop_duplicates(keep="first")
    n_exact = n_before - canonical.shape[0]
    if n_exact:
        message = f"{source}: removed {n_exact} exact duplicate rows"
        if summary is not None:
            summary.add(DUPLICATE_LOCUS, message, {"source": source, "exact": n_exact})
        else:
            logging.warning(f"> {message}")

    conflicting = canonical.duplicated(subset=LOCUS_COLUMNS, keep="first")
    if conflicting.any():
        n_conflict = int(conflicting.sum())
        message = (
            f"{source}: {n_conflict} rows repeat a locus with different values; "
            f"kept the first reported row"
        )
        if summary is not None:
            summary.add(DUPLICATE_LOCUS, message, {"source": source, "rows": n_conflict})
        else:
            logging.warning(f"> {message}")
        canonical = canonical.loc[~conflicting]

    canonical = sort_by_locus(canonical)
    canonical.insert(0, "row_id", np.arange(canonical.shape[0], dtype="int64"))
    return canonical


# -----------------------------------------------------------------------------
# Function: harmonize_signal
# -----------------------------------------------------------------------------
def harmonize_signal(raw, min_depth=MIN_DEPTH, summary=None):
    """
    Convert raw signal-source rows into the canonical locus table.

    Parameters
    ----------
    raw : pd.DataFrame
        Rows as returned by `read_signal_table`.
    min_depth : int, optional
        Admission threshold; rows with depth < min_depth are dropped.
    summary : RunSummary, optional
        Receives LowDepth / DuplicateLocus issues.

    Returns
    -------
    pd.DataFrame
        Canonical table, one row per locus, sorted by locus, with row_id
        0..n-1 in that order.
    """
    strand_columns = [f"{nuc}_{strand}" for nuc in NUCLEOTIDES for strand in ("fwd", "rev")]
    count_columns = ["depth", *strand_columns, "strand_bias_upper", "strand_bias_lower"]
    canonical, counts = _validated_base(raw, SIGNAL_COLUMNS, count_columns, "Signal table")

    for nuc in NUCLEOTIDES:
        canonical[nuc] = counts[f"{nuc}_fwd"] + counts[f"{nuc}_rev"]
    canonical["ref_code"] = canonical["ref_nucleotide"].map(NUCLEOTIDE_CODES).astype("int64")

    ref_count = _reference_base_count(canonical)
    nonref_count = canonical[list(NUCLEOTIDES)].sum(axis=1) - ref_count
    canonical["variant_proportion"], canonical["proportion_defined"] = _variant_proportion(
        ref_count, nonref_count
    )
    canonical["depth"] = counts["depth"]
    canonical["strand_bias_upper"] = counts["strand_bias_upper"].astype("Int64")
    canonical["strand_bias_lower"] = counts["strand_bias_lower"].astype("Int64")

    over_covered = canonical[list(NUCLEOTIDES)].sum(axis=1) > canonical["depth"]
    if over_covered.any():
        logging.warning(
            f"> Signal table: {int(over_covered.sum())} rows report more "
            f"nucleotide counts than depth"
        )

    low_depth = canonical["depth"] < min_depth
    if low_depth.any():
        n_low = int(low_depth.sum())
        message = f"Signal table: dropped {n_low} rows with depth < {min_depth}"
        if summary is not None:
            summary.add(LOW_DEPTH, message, {"rows": n_low, "min_depth": min_depth})
        else:
            logging.warning(f"> {message}")
    canonical = canonical.loc[~low_depth]

    canonical = _collapse_duplicates(canonical, "Signal table", summary)
    logging.info(f"> Harmonized signal loci: {canonical.shape[0]}")
    return canonical[CANONICAL_COLUMNS]


# -----------------------------------------------------------------------------
# Function: harmonize_reference
# -----------------------------------------------------------------------------
def harmonize_reference(raw, mapper=None, summary=None):
    """
    Convert raw reference-source rows into the canonical locus table.

    The compound `mod_label` is mapped through `mapper` (a
    LabelTaxonomyMapper); the untouched string is kept as `raw_label`.
    Strand-bias columns do not exist in this source and are <NA>.
    """
    mapper = mapper or LabelTaxonomyMapper()
    count_columns = [*NUCLEOTIDES, "ref_count", "nonref_count"]
    canonical, counts = _validated_base(raw, REFERENCE_COLUMNS, count_columns, "Reference table")

    for nuc in NUCLEOTIDES:
        canonical[nuc] = counts[nuc]
    canonical["ref_code"] = canonical["ref_nucleotide"].map(NUCLEOTIDE_CODES).astype("int64")
    canonical["variant_proportion"], canonical["proportion_defined"] = _variant_proportion(
        counts["ref_count"], counts["nonref_count"]
    )
    canonical["depth"] = counts["ref_count"] + counts["nonref_count"]
    canonical["strand_bias_upper"] = pd.Series(pd.NA, index=canonical.index, dtype="Int64")
    canonical["strand_bias_lower"] = pd.Series(pd.NA, index=canonical.index, dtype="Int64")

    raw_label = raw["mod_label"].where(raw["mod_label"].notna(), None)
    canonical["raw_label"] = raw_label.astype(object)
    canonical = _collapse_duplicates(canonical, "Reference table", summary)
    canonical[LABEL_COLUMN] = mapper.map_series(canonical["raw_label"], summary)
    logging.info(
        f"> Harmonized reference loci: {canonical.shape[0]} "
        f"({(canonical[LABEL_COLUMN] == ModType.UNKNOWN.value).sum()} unknown)"
    )
    return canonical[CANONICAL_COLUMNS + ["raw_label", LABEL_COLUMN]]


# -----------------------------------------------------------------------------
# Function: build_labeled_table
# -----------------------------------------------------------------------------
def build_labeled_table(signal, reference, exclude_unknown=True):
    """
    Attach reference labels to signal-source features by locus.

    Parameters
    ----------
    signal : pd.DataFrame
        Output of `harmonize_signal`.
    reference : pd.DataFrame
        Output of `harmonize_reference`.
    exclude_unknown : bool, optional
        Drop loci whose label is `unknown` (default: True).

    Returns
    -------
    pd.DataFrame
        Signal canonical columns plus `label`, one row per labeled locus,
        keeping the signal row_id.
    """
    labels = reference[LOCUS_COLUMNS + [LABEL_COLUMN]]
    labeled = signal.merge(labels, on=LOCUS_COLUMNS, how="inner", validate="one_to_one")

    if exclude_unknown:
        unknown = labeled[LABEL_COLUMN] == ModType.UNKNOWN.value
        if unknown.any():
            logging.info(f"> Excluding {int(unknown.sum())} loci labeled 'unknown'")
        labeled = labeled.loc[~unknown]

    labeled = labeled.sort_values("row_id").reset_index(drop=True)
    logging.info(f"> Labeled loci: {labeled.shape[0]}")
    logging.info(f"> Label distribution: {labeled[LABEL_COLUMN].value_counts().to_dict()}")
    return labeled


def unlabeled_rows(signal, reference):
    """Signal rows whose locus has no reference call."""
    keys = reference[LOCUS_COLUMNS].drop_duplicates()
    merged = signal.merge(keys, on=LOCUS_COLUMNS, how="left", indicator=True)
    return merged.loc[merged["_merge"] == "left_only", signal.columns].reset_index(drop=True)
