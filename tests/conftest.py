"""Shared test fixtures."""

from __future__ import annotations

import pytest

from mobuild.config import GlobalSwitches, PathSettings, Settings, set_settings
from mobuild.tasks import TaskManager


@pytest.fixture(autouse=True)
def task_manager():
    """Fresh task registry per test."""
    manager = TaskManager.instance()
    manager.clear()
    yield manager
    manager.clear()


@pytest.fixture()
def settings(tmp_path):
    """Install default settings rooted in tmp_path; tests may mutate them."""
    value = Settings(
        switches=GlobalSwitches(),
        paths=PathSettings(build=tmp_path / "build", patches=tmp_path / "patches"),
    )
    set_settings(value)
    yield value
    set_settings(None)


@pytest.fixture(autouse=True)
def _reset_settings():
    yield
    set_settings(None)
