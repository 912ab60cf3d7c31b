"""
Pytest configuration and shared fixtures for Treasury tests.
"""

import pytest
from loguru import logger

from treasury.assets.source import InMemoryAssetSource
from treasury.config import ExportConfig, PerformanceOptions, ScopeOptions
from treasury.export.cancellation import CancellationToken
from treasury.export.exporters.base import ExporterContext


@pytest.fixture
def log_records():
    """Capture loguru records emitted during the test."""
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    try:
        logger.remove(handler_id)
    except ValueError:
        # configure_logging() (CLI tests) already removed every handler
        pass


@pytest.fixture
def source():
    """Empty in-memory asset source."""
    return InMemoryAssetSource()


@pytest.fixture
def token():
    return CancellationToken()


@pytest.fixture
def make_context(source):
    """Factory for ExporterContext over the ``source`` fixture."""

    def _make(max_parallelism=1, limit=None, only=None):
        return ExporterContext(
            source=source,
            performance=PerformanceOptions(max_parallelism=max_parallelism),
            scope=ScopeOptions(only=only, limit=limit),
        )

    return _make


@pytest.fixture
def config(tmp_path):
    """Config writing into a temp directory, with no provisioning delay."""
    cfg = ExportConfig(output_directory=str(tmp_path / "out"))
    cfg.provisioning.retry_delay_seconds = 0
    return cfg
