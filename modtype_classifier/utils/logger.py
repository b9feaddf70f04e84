# =============================================================================
# Copyright (c) 2025 ByteDance Ltd. and/or its affiliates
# SPDX-License-Identifier: GPL-3.0-or-later
# =============================================================================
# SCRIPT  : logger.py
# PROJECT : MODTYPE - RNA Modification Type Classifier
# PURPOSE : Initialize and configure logging for MODTYPE runs
#
# OVERVIEW:
#   Configures the root logger once per run so that every module can log
#   through the plain `logging` functions. Messages go to the console and
#   to run.log inside the run's output directory.
#
# USAGE   :
#   init_logger("results/")
#   logging.info("Harmonization started")
#
# CREATED : 2026-10-17
# UPDATED : 2026-10-17
# =============================================================================


import logging
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def init_logger(output_dir, level=logging.INFO):
    """
    Initialize the root logger for a MODTYPE run.

    Parameters
    ----------
    output_dir : str or Path
        Directory where 'run.log' is written. Created if missing.
    level : int, optional
        Logging level (default: logging.INFO).

    Returns
    -------
    Path
        Path of the log file.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    log_file = output_dir / "run.log"

    # replaces handlers left by an earlier run
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(),
        ],
        force=True,
    )

    logging.info(f"Logger initialized. Log file: {log_file}")
    return log_file
