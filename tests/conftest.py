"""Pytest configuration for the ClinicalPaws client test suite."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

import pytest

import clinicalpaws.log as log_module
from clinicalpaws.log import logger
from clinicalpaws.settings import AppSettings, HistorySettings, PollingSettings
from tests.backend_utils import FakeBackend

_SUITE_STASH_KEY = object()


def _normalise_marker_name(name: str) -> str:
    return name.replace("-", "_")


@dataclass(frozen=True)
class SuiteDefinition:
    """Describe how a logical test suite should filter collected tests."""

    name: str
    include_any: Sequence[str] = ()
    exclude_paths: Sequence[str] = ()
    description: str = ""

    def should_run(self, item: pytest.Item) -> bool:
        markers = {_normalise_marker_name(marker.name) for marker in item.iter_markers()}
        path = item.nodeid.split("::", 1)[0].replace("\\", "/")
        if any(path.startswith(f"{prefix}/") for prefix in self.exclude_paths):
            return False
        if not self.include_any:
            return True
        return bool(markers & {_normalise_marker_name(name) for name in self.include_any})


SUITES: Mapping[str, SuiteDefinition] = {
    "core": SuiteDefinition(
        name="core",
        include_any=("unit",),
        exclude_paths=("tests/integration",),
        description="Engine components without HTTP",
    ),
    "service": SuiteDefinition(
        name="service",
        description="Everything, including flows over a mocked HTTP transport",
    ),
}


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--suite",
        action="store",
        choices=sorted(SUITES),
        help="Select the logical test suite to run",
    )


def pytest_configure(config: pytest.Config) -> None:
    suite_name = config.getoption("--suite")
    if suite_name is None:
        return
    config.stash[_SUITE_STASH_KEY] = SUITES[suite_name]


@pytest.hookimpl(trylast=True)
def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    suite = config.stash.get(_SUITE_STASH_KEY, None)
    if suite is None:
        return
    selected = [item for item in items if suite.should_run(item)]
    deselected = [item for item in items if not suite.should_run(item)]
    if deselected:
        config.hook.pytest_deselected(items=deselected)
        items[:] = selected


@pytest.fixture
def fast_settings() -> AppSettings:
    """Settings that poll without waiting and page history by three."""

    return AppSettings(
        polling=PollingSettings(interval_seconds=0),
        history=HistorySettings(page_size=3),
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture(autouse=True)
def isolated_log_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Keep log files written by CLI tests out of the home directory."""

    path = tmp_path / "logs"
    monkeypatch.setenv(log_module.LOG_DIR_ENV, str(path))
    return path


@pytest.fixture
def reset_logger() -> Iterator[None]:
    prev_handlers = list(logger.handlers)
    prev_level = logger.level
    prev_log_path = log_module._log_path
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    log_module._log_path = None
    try:
        yield
    finally:
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()
        logger.handlers.extend(prev_handlers)
        logger.setLevel(prev_level)
        log_module._log_path = prev_log_path
