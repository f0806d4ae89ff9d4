from __future__ import annotations

import logging

from logging_config import ContextualFormatter


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="services.processor",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="Skipping entry: %s",
        args=("missing or invalid id",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_appends_known_extra_keys_in_order() -> None:
    formatter = ContextualFormatter(fmt="%(levelname)s %(message)s")

    line = formatter.format(_record(reason="missing or invalid id", entry_index=3, unrelated="x"))

    assert line == "WARNING Skipping entry: missing or invalid id | entry_index=3 reason=missing or invalid id"


def test_formatter_omits_context_when_absent() -> None:
    formatter = ContextualFormatter(fmt="%(message)s", extra_keys=["device_id"])

    assert formatter.format(_record(device_id=None)) == "Skipping entry: missing or invalid id"
    assert formatter.format(_record(device_id=7)).endswith("| device_id=7")
