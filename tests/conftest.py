"""
Shared pytest fixtures for layerconf tests.

This module provides:
- Sample settings schemas (flat keys, groups, secrets, required keys)
- A recording auditor for asserting resolution hooks
- Project-root and environment fixtures isolated in ``tmp_path``
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import pytest
from pydantic import Field, SecretStr

# Ensure layerconf is importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from layerconf import SettingsGroup, SettingsSchema
from layerconf.errors import ConfigurationError


# =============================================================================
# Sample schemas
# =============================================================================


class Database(SettingsGroup):
    url: str = "sqlite:///app.db"
    pool_size: int = 5
    user: str | None = None
    password: SecretStr | None = None


class Params(SettingsGroup):
    param1: str = "default"
    param2: int = 10


class AppSettings(SettingsSchema):
    port: int = 8000
    debug: bool = False
    name: str = "app"
    tags: list[str] = Field(default_factory=list)
    database: Database = Database()
    params: Params = Params()


class RequiredSettings(SettingsSchema):
    api_key: str
    port: int = 8000


class NestedRequired(SettingsSchema):
    class Auth(SettingsGroup):
        token: SecretStr
        realm: str = "main"

    auth: Auth
    region: str


# =============================================================================
# Auditing
# =============================================================================


class RecordingAuditor:
    """Auditor that records every hook call."""

    def __init__(self) -> None:
        self.loaded: list[tuple[str, int]] = []
        self.resolved_results: list[Any] = []
        self.failures: list[ConfigurationError] = []

    def source_loaded(self, source: str, keys: int) -> None:
        self.loaded.append((source, keys))

    def resolved(self, settings: Any) -> None:
        self.resolved_results.append(settings)

    def failed(self, schema: type, error: ConfigurationError) -> None:
        self.failures.append(error)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def auditor() -> RecordingAuditor:
    return RecordingAuditor()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A project root with a ``pyproject.toml`` marker."""
    root = tmp_path / "project"
    root.mkdir()
    (root / "pyproject.toml").write_text('[project]\nname = "demo"\n')
    return root


@pytest.fixture
def user_dir(tmp_path: Path) -> Path:
    """User-level profile directory that is never the real home."""
    path = tmp_path / "home" / ".layerconf" / "profiles"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def write(tmp_path: Path):
    """Write a text file under ``tmp_path`` and return its path."""

    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path

    return _write
