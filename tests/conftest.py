"""Pytest fixtures for Tempo tests."""

import logging
from collections.abc import Generator

import pytest
import structlog

from tempo.processor import ProcessorConfig
from tests.helpers import GatedOperation


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset structlog, root handlers and CLI logging state around each test."""
    import tempo.cli as cli_module

    cli_module.reset_logging_state()
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    cli_module.reset_logging_state()
    structlog.reset_defaults()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)


@pytest.fixture
def fast_config() -> ProcessorConfig:
    """Reference limits with a short pickup interval."""
    return ProcessorConfig(pickup_interval_seconds=0.01)


@pytest.fixture
def blocking_op() -> GatedOperation:
    """Blocking-job operation that waits until released."""
    return GatedOperation()


@pytest.fixture
def non_blocking_op() -> GatedOperation:
    """Non-blocking-job operation that waits until released."""
    return GatedOperation()
