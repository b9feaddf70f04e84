# Copyright (c) 2025 ByteDance Ltd. and/or its affiliates
# SPDX-License-Identifier: GPL-3.0-or-later
"""
Tests for locus identity helpers.
"""

import pandas as pd

from modtype_classifier.data_utils.loci import LocusKey, locus_keys, sort_by_locus


class TestLocusKey:

    def test_total_order(self):
        keys = [LocusKey("chr2", 1, 2), LocusKey("chr1", 5, 6), LocusKey("chr1", 5, 5), LocusKey("chr1", 1, 9)]
        assert sorted(keys) == [
            LocusKey("chr1", 1, 9),
            LocusKey("chr1", 5, 5),
            LocusKey("chr1", 5, 6),
            LocusKey("chr2", 1, 2),
        ]

    def test_str(self):
        assert str(LocusKey("chrX", 10, 11)) == "chrX:10-11"

    def test_hashable_for_dedup(self):
        assert len({LocusKey("chr1", 1, 2), LocusKey("chr1", 1, 2)}) == 1


class TestFrameHelpers:

    def test_locus_keys_and_sort(self):
        data = pd.DataFrame({"chrom": ["chr2", "chr1"], "start": [3, 7], "end": [4, 8], "x": [1, 2]})
        assert locus_keys(data) == [LocusKey("chr2", 3, 4), LocusKey("chr1", 7, 8)]
        ordered = sort_by_locus(data)
        assert ordered["x"].tolist() == [2, 1]
        assert ordered.index.tolist() == [0, 1]
        assert data["x"].tolist() == [1, 2]
