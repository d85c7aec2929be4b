from __future__ import annotations

import logging
from io import StringIO

import csv2sql.logging.init
from csv2sql.logging.init import LabeledFormatter, get_logger, log_summary, set_debug, setup_logging


def _capture(logger: logging.Logger) -> StringIO:
    captured_output = StringIO()
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    handler = logging.StreamHandler(captured_output)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)
    return captured_output


def test_setup_logging_creates_logger_with_labeled_formatter():
    """setup_logging configures the csv2sql logger with one stdout handler."""
    logger = setup_logging()

    assert logger.name == "csv2sql"
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, LabeledFormatter)
    assert logger.propagate is False


def test_logging_labeled_prefixes():
    """Output lines carry INFO|WARN|ERROR|SUMMARY labels."""
    logger = setup_logging()
    out = _capture(logger)

    logger.info("Status: 3 insertions, 2 database connections")
    logger.warning("batch 4 (2 conns): duplicate")
    logger.error("processing: read failed")
    logger.log(25, "batches=1")

    lines = out.getvalue().strip().split("\n")
    assert lines == [
        "INFO Status: 3 insertions, 2 database connections",
        "WARN batch 4 (2 conns): duplicate",
        "ERROR processing: read failed",
        "SUMMARY batches=1",
    ]


def test_module_loggers_propagate_to_app_logger():
    logger = setup_logging()
    out = _capture(logger)

    logging.getLogger("csv2sql.services.orchestrator").info("columns: id, name")

    assert out.getvalue().strip() == "INFO columns: id, name"


def test_get_logger_returns_configured_logger():
    setup_logger = setup_logging()
    assert get_logger() is setup_logger


def test_setup_logging_idempotent():
    logger1 = setup_logging()
    logger2 = setup_logging()
    assert logger1 is logger2
    assert len(logger1.handlers) == 1


def test_set_debug_toggles_levels():
    logger = setup_logging()
    set_debug(True)
    assert logger.level == logging.DEBUG
    assert all(h.level == logging.DEBUG for h in logger.handlers)
    set_debug(False)
    assert logger.level == logging.INFO


def test_log_summary_convenience_function():
    logger = setup_logging()
    out = _capture(logger)

    log_summary("batches=2 failed_batches=0 rows=150 skipped_rows=0 squashed_rows=0 elapsed_sec=2.5 throughput_rps=60")

    assert out.getvalue().strip() == (
        "SUMMARY batches=2 failed_batches=0 rows=150 skipped_rows=0 squashed_rows=0 "
        "elapsed_sec=2.5 throughput_rps=60"
    )
    assert logging.getLevelName(25) == "SUMMARY"


def test_reset_logging_clears_global():
    setup_logging()
    csv2sql.logging.init.reset_logging()
    assert csv2sql.logging.init._logger is None
