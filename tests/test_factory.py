"""Tests for layerconf.factory — the standard source stack end to end."""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import AppSettings, RequiredSettings
from layerconf import (
    MissingSettingError,
    SettingsProvider,
    create_provider,
    create_resolver,
    create_sources,
    resolve_settings,
)


def _write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


class TestCreateSources:
    def test_standard_order(self, project: Path, user_dir: Path):
        sources = create_sources(project_root=project, user_profile_dir=user_dir, toml_file="settings.toml", environ={})
        assert [s.name for s in sources] == ["init", "env", "dotenv", "profile", "toml", "defaults"]

    def test_without_profiles_or_toml(self, project: Path):
        sources = create_sources(project_root=project, use_profiles=False, environ={})
        assert [s.name for s in sources] == ["init", "env", "dotenv", "defaults"]

    def test_discovers_env_cascade(self, project: Path, user_dir: Path):
        _write(project / ".env.base", "APP_NAME=base\n")
        _write(project / ".env.dev", "APP_PORT=7001\n")
        sources = create_sources(
            project_root=project, user_profile_dir=user_dir, env_prefix="APP_", tier="dev", environ={}
        )
        dotenv = next(s for s in sources if s.name == "dotenv")
        assert [f.name for f in dotenv.files] == [".env.base", ".env.dev"]

    def test_relative_paths_under_project_root(self, project: Path, user_dir: Path):
        sources = create_sources(
            project_root=project,
            user_profile_dir=user_dir,
            env_files=["config/app.env"],
            toml_file="config/settings.toml",
            environ={},
        )
        by_name = {s.name: s for s in sources}
        assert by_name["dotenv"].files == [project.resolve() / "config" / "app.env"]
        assert by_name["toml"].path == project.resolve() / "config" / "settings.toml"


class TestResolveSettings:
    def test_full_stack(self, project: Path, user_dir: Path):
        _write(project / ".env", "APP_PORT=7000\nAPP_DATABASE__POOL_SIZE=7\n")
        _write(project / "settings.toml", 'name = "toml"\ndebug = true\n[database]\nurl = "postgresql://toml/app"\n')

        settings = resolve_settings(
            AppSettings,
            init={"debug": False},
            env_prefix="APP_",
            environ={"APP_NAME": "env"},
            project_root=project,
            user_profile_dir=user_dir,
            toml_file="settings.toml",
        )

        assert settings.debug is False
        assert settings.name == "env"
        assert settings.port == 7000
        assert settings.database.url == "postgresql://toml/app"
        assert settings.database.pool_size == 7
        assert settings.params.param2 == 10
        assert {r.key: r.source for r in settings.explain()}["database.pool_size"] == "dotenv"

    def test_profile_ranks_above_toml(self, project: Path, user_dir: Path):
        _write(project / "settings.toml", 'name = "toml"\nport = 1\n')
        _write(project / ".layerconf" / "profiles" / "prod.toml", 'name = "prod"\n')

        settings = resolve_settings(
            AppSettings,
            env_prefix="APP_",
            environ={"APP_PROFILE": "prod"},
            project_root=project,
            user_profile_dir=user_dir,
            toml_file="settings.toml",
        )
        assert settings.name == "prod"
        assert settings.source_of("name") == "profile"
        assert settings.port == 1
        assert settings.source_of("port") == "toml"

    def test_defaults_overlay(self, project: Path, user_dir: Path):
        settings = resolve_settings(
            AppSettings, project_root=project, user_profile_dir=user_dir, environ={}, defaults={"port": 5000}
        )
        assert settings.port == 5000
        assert settings.source_of("port") == "defaults"

    def test_missing_required(self, project: Path, user_dir: Path):
        with pytest.raises(MissingSettingError):
            resolve_settings(RequiredSettings, project_root=project, user_profile_dir=user_dir, environ={})


class TestCreateProvider:
    def test_provider(self, project: Path, user_dir: Path):
        provider = create_provider(
            AppSettings, init={"port": 9000}, project_root=project, user_profile_dir=user_dir, environ={}
        )
        assert isinstance(provider, SettingsProvider)
        assert provider.settings.port == 9000

    def test_resolver_carries_checks(self, project: Path, user_dir: Path):
        from layerconf import OneOf

        resolver = create_resolver(
            checks=[OneOf("name", {"app"})], project_root=project, user_profile_dir=user_dir, environ={}
        )
        assert len(resolver.checks) == 1
        assert resolver.resolve(AppSettings).name == "app"
