from __future__ import annotations

import logging

from logging_config import ContextualFormatter


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("services.calculator", logging.INFO, __file__, 1, "Recommendation computed", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_appends_known_context() -> None:
    formatter = ContextualFormatter(fmt="%(message)s")

    line = formatter.format(_record(session_id="abc", action="raise", unrelated="x"))

    assert line == "Recommendation computed | session_id=abc action=raise"


def test_formatter_skips_missing_context() -> None:
    formatter = ContextualFormatter(fmt="%(message)s", extra_keys=["reading_count"])

    assert formatter.format(_record(session_id="abc")) == "Recommendation computed"


def test_formatter_ignores_keys_outside_the_logged_set() -> None:
    formatter = ContextualFormatter(fmt="%(message)s")

    line = formatter.format(_record(event_count=2, status="done", reason="x"))

    assert line == "Recommendation computed | event_count=2"
