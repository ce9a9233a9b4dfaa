"""Unit tests for log setup and job tagging."""

import logging

import pytest

from utils.logging import clear_job_context, set_job_context, setup_logging, tag_job_id


@pytest.mark.unit
def test_records_tagged_while_job_runs():
    set_job_context("job42")
    try:
        assert tag_job_id(None, "info", {"event": "x"}) == {"event": "x", "job_id": "job42"}
    finally:
        clear_job_context()

    assert tag_job_id(None, "info", {"event": "x"}) == {"event": "x"}


@pytest.mark.unit
def test_setup_installs_single_handler_and_quiets_http_loggers():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging("debug", json_output=True)
        setup_logging("debug", json_output=True)

        assert len(root.handlers) == 1
        assert root.level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
