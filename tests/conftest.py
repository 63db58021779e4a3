from __future__ import annotations

import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

import pytest  # noqa: E402

from solarlayers.config import ENV_API_KEY, ENV_CONFIG_PATH  # noqa: E402
from solarlayers.logging_utils import HumanFormatter, JsonFormatter  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch) -> None:
    """Prevent local config and API keys from bleeding into tests."""
    monkeypatch.delenv(ENV_CONFIG_PATH, raising=False)
    monkeypatch.delenv(ENV_API_KEY, raising=False)


@pytest.fixture(autouse=True)
def _reset_cli_logging():
    """Drop handlers installed by configure_logging during a test."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler.formatter, (HumanFormatter, JsonFormatter)):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
