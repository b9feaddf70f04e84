# Copyright (c) 2025 ByteDance Ltd. and/or its affiliates
# SPDX-License-Identifier: GPL-3.0-or-later
"""
Tests for trial evaluation and cross-validated tuning.
"""

import math

import numpy as np
import pytest

from conftest import to_reference_frame, to_signal_frame
from modtype_classifier.config import FEATURE_COLUMNS
from modtype_classifier.data_utils.harmonize import (
    build_labeled_table,
    harmonize_reference,
    harmonize_signal,
)
from modtype_classifier.data_utils.split import FoldAssignment, cv_split_func
from modtype_classifier.model.search_space import HyperparamConfig, SearchSpace
from modtype_classifier.model.train import (
    PipelineSpec,
    lgb_LGBMClassifier,
    out_of_fold_predictions,
    run_trial,
    tune,
)
from modtype_classifier.utils.errors import TRIAL_FAILURE, RunSummary, TuningCancelled

GOOD_CONFIG = HyperparamConfig(
    tree_depth=3,
    min_node_size=2,
    loss_reduction=0.0,
    sample_proportion=1.0,
    mtry=len(FEATURE_COLUMNS),
    learn_rate=0.1,
)


@pytest.fixture
def labeled(synthetic_rows):
    signal_rows, reference_rows = synthetic_rows
    signal = harmonize_signal(to_signal_frame(signal_rows))
    reference = harmonize_reference(to_reference_frame(reference_rows))
    return build_labeled_table(signal, reference)


@pytest.fixture
def spec(labeled):
    return PipelineSpec(classes=tuple(sorted(labeled["label"].unique())), n_estimators=10)


def arrays(labeled, spec):
    return spec.features(labeled), spec.labels(labeled), labeled["row_id"].to_numpy()


class TestClassifierFactory:

    def test_hyperparameters_are_mapped(self, spec):
        model = lgb_LGBMClassifier(GOOD_CONFIG, spec)
        params = model.get_params()
        assert params["max_depth"] == 3
        assert params["num_leaves"] == 8
        assert params["min_child_samples"] == 2
        assert params["subsample"] == 1.0
        assert params["learning_rate"] == 0.1
        assert params["n_estimators"] == 10
        assert params["feature_fraction_bynode"] == pytest.approx(1.0)

    def test_mtry_becomes_feature_fraction(self, spec):
        config = HyperparamConfig(3, 2, 0.0, 1.0, 3, 0.1)
        params = lgb_LGBMClassifier(config, spec).get_params()
        assert params["feature_fraction_bynode"] == pytest.approx(3 / len(FEATURE_COLUMNS))


class TestRunTrial:

    def test_successful_trial(self, labeled, spec):
        x, y, row_ids = arrays(labeled, spec)
        assignment = cv_split_func(y, 3, random_state=1)
        train_index, val_index = next(assignment.split())
        result = run_trial(0, GOOD_CONFIG, 0, train_index, val_index, x, y, row_ids, spec)

        assert result.succeeded
        assert result.metric > 0.9
        assert [p[0] for p in result.predictions] == row_ids[val_index].tolist()
        for _, label, probs in result.predictions:
            assert label in spec.classes
            assert len(probs) == len(spec.classes)
            assert sum(probs) == pytest.approx(1.0)
        assert np.asarray(result.confusion).sum() == len(val_index)

    def test_single_class_training_is_a_failed_trial(self, labeled, spec):
        x, y, row_ids = arrays(labeled, spec)
        train_index = np.flatnonzero(y == spec.classes[0])
        val_index = np.flatnonzero(y != spec.classes[0])
        result = run_trial(4, GOOD_CONFIG, 2, train_index, val_index, x, y, row_ids, spec)

        assert not result.succeeded
        assert math.isnan(result.metric)
        assert result.predictions == ()
        assert "single class" in result.error
        assert (result.config_id, result.fold_id) == (4, 2)


class TestTune:

    def test_every_config_fold_pair_evaluated(self, labeled, spec):
        configs = SearchSpace.from_bounds().finalize(len(FEATURE_COLUMNS)).sample(3, random_state=2)
        assignment = cv_split_func(labeled["label"], 3, random_state=2)
        results = tune(labeled, configs, assignment, spec)
        assert len(results) == 9
        assert {(r.config_id, r.fold_id) for r in results} == {(c, f) for c in range(3) for f in range(3)}
        for r in results:
            assert r.config == configs[r.config_id]

    def test_parallel_matches_serial(self, labeled, spec):
        configs = [GOOD_CONFIG, HyperparamConfig(2, 4, 0.01, 0.8, 4, 0.2)]
        assignment = cv_split_func(labeled["label"], 3, random_state=5)
        serial = tune(labeled, configs, assignment, spec, n_jobs=1)
        parallel = tune(labeled, configs, assignment, spec, n_jobs=2)
        key = lambda r: (r.config_id, r.fold_id)
        for a, b in zip(sorted(serial, key=key), sorted(parallel, key=key)):
            assert key(a) == key(b)
            assert a.metric == pytest.approx(b.metric)
            assert [p[1] for p in a.predictions] == [p[1] for p in b.predictions]

    def test_failures_are_reported_not_raised(self, labeled, spec):
        subset = labeled.iloc[[0, 13, 1, 2]].reset_index(drop=True)
        assert subset["label"].nunique() == 2
        assignment = FoldAssignment(folds=2, fold_of=(0, 0, 1, 1), random_state=0)
        summary = RunSummary()
        results = tune(subset, [GOOD_CONFIG], assignment, spec, summary=summary)
        assert len(results) == 2
        assert not any(r.succeeded for r in results)
        assert len(summary.of_kind(TRIAL_FAILURE)) == 2

    def test_cancel_before_dispatch(self, labeled, spec):
        assignment = cv_split_func(labeled["label"], 3)
        with pytest.raises(TuningCancelled):
            tune(labeled, [GOOD_CONFIG], assignment, spec, cancel=lambda: True)

    def test_cancel_between_batches(self, labeled, spec):
        assignment = cv_split_func(labeled["label"], 3)
        calls = []

        def cancel():
            calls.append(1)
            return len(calls) > 2

        with pytest.raises(TuningCancelled):
            tune(labeled, [GOOD_CONFIG], assignment, spec, n_jobs=1, cancel=cancel)
        assert len(calls) == 3

    def test_out_of_fold_predictions_cover_every_row(self, labeled, spec):
        assignment = cv_split_func(labeled["label"], 3, random_state=3)
        results = tune(labeled, [GOOD_CONFIG], assignment, spec)
        oof = out_of_fold_predictions(results, 0, spec.classes)
        assert oof["row_id"].tolist() == sorted(labeled["row_id"].tolist())
        assert set(oof["fold"]) == {0, 1, 2}
        assert [c for c in oof.columns if c.startswith("prob_")] == [f"prob_{c}" for c in spec.classes]
