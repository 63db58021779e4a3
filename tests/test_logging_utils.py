from __future__ import annotations

import json
import logging
from pathlib import Path

from solarlayers.logging_utils import HumanFormatter, LogOptions, configure_logging


def test_configure_logging_writes_json(tmp_path: Path) -> None:
    log_path = tmp_path / "logs" / "solarlayers.jsonl"
    configure_logging(LogOptions(log_file=log_path))
    logger = logging.getLogger("solarlayers.test")
    logger.info("hello", extra={"layer": "dsm", "operation_id": "abc123"})
    for handler in logging.getLogger().handlers:
        handler.flush()

    lines = log_path.read_text(encoding="utf-8").strip().splitlines()
    assert lines
    payload = json.loads(lines[-1])
    assert payload["message"] == "hello"
    assert payload["level"] == "info"
    assert payload["extra"] == {"layer": "dsm", "operation_id": "abc123"}


def test_human_formatter_prefixes_layer() -> None:
    formatter = HumanFormatter("%(levelname)s: %(message)s")
    record = logging.LogRecord("solarlayers", logging.WARNING, "", 0, "slow", (), None)
    assert formatter.format(record) == "WARNING: slow"
    record.layer = "annualFlux"
    assert formatter.format(record) == "[annualFlux] WARNING: slow"
    record.operation_id = "op1"
    assert formatter.format(record) == "[annualFlux:op1] WARNING: slow"


def test_quiet_console_and_httpx_level() -> None:
    root = configure_logging(LogOptions(quiet=True))
    assert root.handlers[0].level == logging.WARNING
    assert logging.getLogger("httpx").level == logging.WARNING
