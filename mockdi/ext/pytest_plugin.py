"""pytest fixtures providing an auto-mocking container per test."""

from __future__ import annotations

import logging
from collections.abc import Generator, Iterator
from typing import Any, cast

import pytest

from mockdi import AutoMock, MockBehavior

logger = logging.getLogger(__name__)

_call_failed_key = pytest.StashKey[bool]()


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addini(
        "mockdi_behavior",
        help="Behavior of mocks synthesized by the `automock` fixture "
        "('loose' or 'strict')",
        type="string",
        default="loose",
    )
    parser.addini(
        "mockdi_verify_all",
        help="Verify every setup, not only verifiable ones, when a test ends",
        type="bool",
        default=False,
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "automock(behavior=None, verify_all=None, modules=()): "
        "configure the `automock` fixture for a test",
    )


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(
    item: pytest.Item, call: pytest.CallInfo[None]
) -> Generator[None, Any, None]:
    outcome = yield
    report = outcome.get_result()
    if report.when == "call":
        item.stash[_call_failed_key] = report.failed


def _get_options(request: pytest.FixtureRequest) -> dict[str, Any]:
    behavior = cast(str, request.config.getini("mockdi_behavior")) or "loose"
    options: dict[str, Any] = {
        "behavior": MockBehavior(behavior.strip().lower()),
        "verify_all": cast(bool, request.config.getini("mockdi_verify_all")),
    }
    marker = request.node.get_closest_marker("automock")
    if marker is not None:
        for name in ("behavior", "verify_all", "modules"):
            if name in marker.kwargs:
                options[name] = marker.kwargs[name]
    return options


def _run_automock(request: pytest.FixtureRequest, **options: Any) -> Iterator[AutoMock]:
    auto = AutoMock(**options)
    logger.debug(
        "Created %s auto-mock for %s.", auto.behavior.value, request.node.nodeid
    )
    yield auto

    # Mocks are not verified when the test call itself failed
    if request.node.stash.get(_call_failed_key, False):
        auto.container.close()
    else:
        auto.close()


@pytest.fixture
def automock(request: pytest.FixtureRequest) -> Iterator[AutoMock]:
    """Auto-mocking container, verified and closed when the test ends."""
    yield from _run_automock(request, **_get_options(request))


@pytest.fixture
def automock_strict(request: pytest.FixtureRequest) -> Iterator[AutoMock]:
    """Same as `automock`, with strict mocks."""
    options = _get_options(request)
    options["behavior"] = MockBehavior.STRICT
    yield from _run_automock(request, **options)
