"""Tests for sniff.logging_config."""

import logging

import pytest
from rich.logging import RichHandler

from sniff.logging_config import MODULE_LOG_LEVELS, get_logger, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    module_levels = {name: logging.getLogger(name).level for name in MODULE_LOG_LEVELS}
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    for name, module_level in module_levels.items():
        logging.getLogger(name).setLevel(module_level)


class TestSetupLogging:
    @pytest.mark.parametrize(
        ("log_level", "expected"),
        [("DEBUG", logging.DEBUG), ("info", logging.INFO), ("warning", logging.WARNING)],
    )
    def test_root_level(self, log_level: str, expected: int) -> None:
        setup_logging(log_level)
        assert logging.getLogger().level == expected

    def test_single_rich_handler(self) -> None:
        setup_logging()
        setup_logging()
        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], RichHandler)

    def test_noisy_modules_quieted(self) -> None:
        setup_logging("DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("uvicorn.access").level == logging.WARNING


def test_get_logger_is_named() -> None:
    assert get_logger("sniff.server").name == "sniff.server"
