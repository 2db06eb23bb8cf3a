"""Tests for loguru logging in citree.

Logging is disabled on import and only flows once enable_logging() is called.
"""

import contextlib

import pytest
from loguru import logger

from citree import ConditionalInferenceTree, SimulatedAnnealingTuner, TreeConfig, enable_logging
from citree.logging import PACKAGE_NAME, LoggingHandle


@pytest.fixture(autouse=True)
def restore_active_ids():
    """Remove any handler a failing test left behind and restore the disabled state."""
    saved_ids = set(LoggingHandle._active_ids)
    yield
    for handler_id in LoggingHandle._active_ids - saved_ids:
        with contextlib.suppress(ValueError):
            logger.remove(handler_id)
    LoggingHandle._active_ids.clear()
    LoggingHandle._active_ids.update(saved_ids)
    logger.disable(PACKAGE_NAME)


@pytest.fixture
def messages():
    return []


def _sink(captured):
    def sink(message):
        captured.append(message.record)
    return sink


def test_disabled_by_default(step_data, messages):
    handler_id = logger.add(_sink(messages))
    try:
        ConditionalInferenceTree(min_node_size=5).fit(*step_data)
    finally:
        logger.remove(handler_id)

    assert not [r for r in messages if (r["name"] or "").startswith(PACKAGE_NAME)]


def test_fit_summary_logged_at_info(step_data, messages):
    with enable_logging(level="INFO", sink=_sink(messages)):
        ConditionalInferenceTree(min_node_size=5).fit(*step_data)

    summaries = [r for r in messages if r["message"].startswith("Fitted tree")]
    assert len(summaries) == 1
    assert summaries[0]["level"].name == "INFO"
    assert "1 splits" in summaries[0]["message"]
    assert all(r["level"].name != "DEBUG" for r in messages)


def test_debug_reports_node_decisions(step_data, messages):
    with enable_logging(level="DEBUG", sink=_sink(messages)):
        ConditionalInferenceTree(min_node_size=5).fit(*step_data)

    text = [r["message"] for r in messages]
    assert any("split on x" in m for m in text)
    assert any("is a leaf" in m for m in text)


def test_tuner_logs_each_iteration(messages):
    with enable_logging(sink=_sink(messages)):
        SimulatedAnnealingTuner(max_iters=3, patience=None).search(lambda c: float(c.max_depth), TreeConfig())

    iterations = [r for r in messages if r["message"].startswith("Iteration")]
    assert len(iterations) == 3


def test_disable_stops_records(step_data, messages):
    handle = enable_logging(sink=_sink(messages))
    assert LoggingHandle.get_active_handle_count() >= 1

    handle.disable()
    handle.disable()
    ConditionalInferenceTree(min_node_size=5).fit(*step_data)

    assert messages == []
    assert handle.handler_id is None
