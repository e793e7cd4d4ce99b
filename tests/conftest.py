"""Root pytest configuration for all tests."""

from __future__ import annotations

import pytest

from tests.utils import FakeCompiler, ObserverFactory


@pytest.fixture
def compiler():
    """Fake compiler that inlines imports."""
    return FakeCompiler()


@pytest.fixture
def observers():
    """Factory producing FakeObservers for sessions."""
    return ObserverFactory()


@pytest.fixture
def main_file(tmp_path):
    """Entry stylesheet without imports."""
    path = tmp_path / "main.scss"
    path.write_text("#a { color: #aaa }")
    return path.resolve()


@pytest.fixture
def dep_file(tmp_path):
    """Stylesheet imported by main_with_import."""
    path = tmp_path / "dep.scss"
    path.write_text("#b { color: #bbb }")
    return path.resolve()


@pytest.fixture
def main_with_import(tmp_path, dep_file):
    """Entry stylesheet importing dep.scss."""
    path = tmp_path / "main.scss"
    path.write_text('@import "dep.scss"; #a { color: #aaa }')
    return path.resolve()
