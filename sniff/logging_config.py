"""Logging setup: one rich console handler on the root logger, quieter third parties."""

import logging

from rich.logging import RichHandler

MODULE_LOG_LEVELS = {
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "asyncio": "WARNING",
    "uvicorn.access": "WARNING",
}


def setup_logging(log_level: str = "INFO") -> None:
    level = log_level.upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicate lines when called twice
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = RichHandler(rich_tracebacks=True, show_path=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s", datefmt="[%X]"))
    root_logger.addHandler(handler)

    for module_name, module_level in MODULE_LOG_LEVELS.items():
        logging.getLogger(module_name).setLevel(module_level)

    root_logger.debug("Logging configured: level=%s", level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
