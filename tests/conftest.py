"""
Shared pytest fixtures and configuration for appdelivery tests.

This module provides:
- Settings and an in-memory object store per test
- The ``test-assemble`` revision / application from ``fixtures/``
- A step renderer and a fake step controller for workflow tests

Usage:
    Fixtures are auto-discovered by pytest; request them as arguments.

    def test_something(store, revision, settings):
        ...
"""

from __future__ import annotations

from typing import Any

import pytest

from appdelivery.core.logging import clear_context
from appdelivery.core.settings import ControllerSettings, clear_settings_cache
from appdelivery.core.store import InMemoryObjectStore
from appdelivery.models import Application, ApplicationRevision
from appdelivery.workflow.dispatcher import DefaultStepRenderer
from tests._support.builders import (
    ROLLOUT_STEPS,
    STEP_KINDS,
    FakeStepController,
    make_application_object,
    make_revision_object,
)


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark everything without an explicit marker as a unit test."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def _isolate_globals():
    """Reset cached settings and bound log context between tests."""
    clear_settings_cache()
    clear_context()
    yield
    clear_settings_cache()
    clear_context()


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings() -> ControllerSettings:
    return ControllerSettings(_env_file=None)


@pytest.fixture
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def revision_obj() -> dict[str, Any]:
    return make_revision_object()


@pytest.fixture
def revision(revision_obj) -> ApplicationRevision:
    return ApplicationRevision.from_object(revision_obj)


@pytest.fixture
def workflow_revision() -> ApplicationRevision:
    return ApplicationRevision.from_object(make_revision_object(steps=ROLLOUT_STEPS))


@pytest.fixture
def application(store) -> Application:
    """``test-assemble`` Application persisted in the store."""
    return Application(store.create(make_application_object(ROLLOUT_STEPS)))


@pytest.fixture
def renderer() -> DefaultStepRenderer:
    return DefaultStepRenderer(kinds=STEP_KINDS)


@pytest.fixture
def step_controller(store) -> FakeStepController:
    return FakeStepController(store)
