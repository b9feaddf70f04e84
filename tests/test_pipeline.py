# Copyright (c) 2025 ByteDance Ltd. and/or its affiliates
# SPDX-License-Identifier: GPL-3.0-or-later
"""
End-to-end tests of the file-to-file workflow and the command line.
"""

import json
import logging

import pandas as pd
import pytest

from conftest import reference_row, signal_row, synthetic_loci, write_inputs
from modtype_classifier.main import RunConfig, main, parse_args, run_pipeline
from modtype_classifier.model.final import FittedModel
from modtype_classifier.model.select import RankedConfig
from modtype_classifier.utils.errors import SchemaMismatch
from modtype_classifier.utils.io import load_model
from modtype_classifier.utils.logger import init_logger

VALID_LABELS = {"m1A", "i6A", "D", "Y", "m1G", "m2G", "m3C", "unknown"}


def four_loci():
    signal_rows = [
        signal_row("chr1", 100, "A", {"A": (10, 10), "G": (4, 4)}),
        signal_row("chr1", 200, "A", {"A": (12, 9), "G": (5, 3)}),
        signal_row("chr1", 300, "C", {"C": (8, 8), "T": (3, 2)}),
        signal_row("chr2", 400, "G", {"G": (9, 11), "A": (2, 4)}),
    ]
    reference_rows = [
        reference_row("chr1", 100, "A", "m1A"),
        reference_row("chr1", 200, "A", "m1A"),
        reference_row("chr1", 300, "C", "m3C"),
        reference_row("chr2", 400, "G", "m2G"),
    ]
    return signal_rows, reference_rows


FOUR_LOCI_CONFIG = RunConfig(
    folds=2,
    search_size=4,
    test_fraction=0.0,
    small_class_policy="keep",
    n_estimators=5,
)


class TestFourLoci:

    def test_end_to_end(self, tmp_path):
        signal_path, header_path, reference_path = write_inputs(tmp_path, *four_loci())
        out = tmp_path / "out"
        result = run_pipeline([signal_path], header_path, [reference_path], out, FOUR_LOCI_CONFIG)

        assert isinstance(result.best, RankedConfig)
        assert result.best.config in result.configs
        assert isinstance(result.model, FittedModel)
        assert len(result.results) == 4 * 2
        assert result.test_report is None

        predictions = result.predictions
        assert predictions.shape[0] == 4
        assert predictions["locus"].is_unique
        assert set(predictions["predicted_label"]) <= VALID_LABELS

        for name in (
            "temp_data/signal_harmonized.tsv",
            "temp_data/reference_harmonized.tsv",
            "temp_data/train_data.tsv",
            "results/design.tsv",
            "results/tuning_results.tsv",
            "results/cv_predictions.tsv",
            "results/predicted_loci.tsv",
            "results/run_summary.json",
            "model/best_params.json",
            "model/model.dat",
        ):
            assert (out / name).exists(), name
        assert not (out / "results" / "test_metrics.json").exists()

        saved = pd.read_csv(out / "results" / "predicted_loci.tsv", sep="\t")
        assert saved.shape[0] == 4
        best = json.loads((out / "model" / "best_params.json").read_text())
        assert best["config_id"] == result.best.config_id
        assert isinstance(load_model(out / "model" / "model.dat"), FittedModel)

        summary = json.loads((out / "results" / "run_summary.json").read_text())
        assert summary["run_config"]["folds"] == 2
        assert "InsufficientFoldData" in summary["counts"]

    def test_duplicated_signal_row_predicted_once(self, tmp_path):
        signal_rows, reference_rows = four_loci()
        signal_path, header_path, reference_path = write_inputs(
            tmp_path, signal_rows + [signal_rows[0]], reference_rows
        )
        result = run_pipeline(signal_path, header_path, reference_path, tmp_path / "out", FOUR_LOCI_CONFIG)
        assert result.predictions.shape[0] == 4
        assert result.predictions["locus"].is_unique

    def test_schema_mismatch_is_fatal(self, tmp_path):
        signal_rows, reference_rows = four_loci()
        signal_rows[1]["A_fwd"] = -3
        signal_path, header_path, reference_path = write_inputs(tmp_path, signal_rows, reference_rows)
        with pytest.raises(SchemaMismatch):
            run_pipeline(signal_path, header_path, reference_path, tmp_path / "out", FOUR_LOCI_CONFIG)


class TestSyntheticRun:

    def test_held_out_evaluation(self, tmp_path):
        signal_path, header_path, reference_path = write_inputs(tmp_path, *synthetic_loci())
        out = tmp_path / "out"
        run_config = RunConfig(folds=3, search_size=3, test_fraction=0.3, n_estimators=10)
        result = run_pipeline(signal_path, header_path, reference_path, out, run_config)

        assert result.test_report is not None
        assert result.tables["test"].shape[0] > 0
        assert set(result.tables["train"]["row_id"]).isdisjoint(result.tables["test"]["row_id"])
        assert (out / "results" / "test_metrics.json").exists()
        assert (out / "results" / "test_set_pred.tsv").exists()
        assert result.predictions.shape[0] == 36

    def test_predict_unlabeled_scope(self, tmp_path):
        signal_rows, reference_rows = synthetic_loci()
        signal_rows.append(signal_row("chr9", 10, "A", {"A": (10, 10), "G": (5, 5)}))
        signal_path, header_path, reference_path = write_inputs(tmp_path, signal_rows, reference_rows)
        run_config = RunConfig(
            folds=3, search_size=2, test_fraction=0.0, n_estimators=10, predict_scope="unlabeled"
        )
        result = run_pipeline(signal_path, header_path, reference_path, tmp_path / "out", run_config)
        assert result.predictions["locus"].tolist() == ["chr9:10-11"]

    def test_invalid_run_config(self):
        with pytest.raises(AssertionError):
            RunConfig(small_class_policy="drop")
        with pytest.raises(AssertionError):
            RunConfig(predict_scope="labeled")


class TestCommandLine:

    def test_parse_args_defaults(self):
        args = parse_args(["-s", "a.tsv", "--signal_header", "h.txt", "-r", "b.tsv", "-o", "out"])
        assert args.signal == ["a.tsv"]
        assert args.folds == 10
        assert args.search_size == 30
        assert args.min_depth == 10
        assert args.small_class_policy == "exclude"
        assert not args.keep_unknown

    def test_main(self, tmp_path):
        signal_path, header_path, reference_path = write_inputs(tmp_path, *synthetic_loci())
        out = tmp_path / "cli_out"
        main(
            [
                "-s", str(signal_path),
                "--signal_header", str(header_path),
                "-r", str(reference_path),
                "-o", str(out),
                "--folds", "3",
                "--search_size", "2",
                "--n_estimators", "10",
                "--seed", "11",
            ]
        )
        assert (out / "run.log").exists()
        predicted = pd.read_csv(out / "results" / "predicted_loci.tsv", sep="\t")
        assert predicted.shape[0] == 36
        assert set(predicted["predicted_label"]) <= VALID_LABELS


class TestLogger:

    def test_init_logger_writes_file(self, tmp_path):
        log_path = init_logger(tmp_path / "logs")
        logging.info("hello from the test")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "hello from the test" in log_path.read_text()
