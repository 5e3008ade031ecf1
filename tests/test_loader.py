"""Tests for layerconf.loader — env file discovery, dotenv and TOML parsing."""

from __future__ import annotations

from pathlib import Path

import pytest

from layerconf.errors import MalformedSourceError
from layerconf.loader import (
    discover_env_files,
    find_project_root,
    load_env_files,
    parse_env_file,
    parse_toml,
    read_toml,
)


# ── find_project_root ────────────────────────────────────────────────────


class TestFindProjectRoot:
    def test_finds_pyproject_toml(self, tmp_path: Path):
        (tmp_path / "pyproject.toml").touch()
        sub = tmp_path / "a" / "b"
        sub.mkdir(parents=True)
        assert find_project_root(sub) == tmp_path.resolve()

    def test_finds_git_dir(self, tmp_path: Path):
        (tmp_path / ".git").mkdir()
        assert find_project_root(tmp_path) == tmp_path.resolve()

    def test_finds_setup_py(self, tmp_path: Path):
        (tmp_path / "setup.py").touch()
        assert find_project_root(tmp_path) == tmp_path.resolve()


# ── discover_env_files ───────────────────────────────────────────────────


class TestDiscoverEnvFiles:
    def test_empty_directory(self, tmp_path: Path):
        assert discover_env_files(tmp_path, environ={}) == []

    def test_base_only(self, tmp_path: Path):
        (tmp_path / ".env.base").write_text("X=1")
        assert discover_env_files(tmp_path, environ={}) == [tmp_path.resolve() / ".env.base"]

    def test_full_cascade(self, tmp_path: Path):
        for name in [".env.base", ".env.staging", ".env.local", ".env"]:
            (tmp_path / name).write_text(f"FROM={name}")
        files = discover_env_files(tmp_path, tier="staging", environ={})
        assert [f.name for f in files] == [".env.base", ".env.staging", ".env.local", ".env"]

    def test_tier_file_skipped_without_tier(self, tmp_path: Path):
        (tmp_path / ".env.staging").write_text("X=1")
        (tmp_path / ".env").write_text("X=2")
        assert [f.name for f in discover_env_files(tmp_path, environ={})] == [".env"]

    def test_tier_from_prefixed_variable(self, tmp_path: Path):
        (tmp_path / ".env.prod").write_text("X=1")
        files = discover_env_files(tmp_path, env_prefix="APP_", environ={"APP_TIER": "prod"})
        assert [f.name for f in files] == [".env.prod"]

    def test_tier_from_process_environment(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        (tmp_path / ".env.full").write_text("X=1")
        monkeypatch.setenv("LCTEST_TIER", "full")
        assert any(f.name == ".env.full" for f in discover_env_files(tmp_path, env_prefix="LCTEST_"))


# ── parse_env_file ───────────────────────────────────────────────────────


class TestParseEnvFile:
    def test_simple(self, write):
        assert parse_env_file(write(".env", "A=1\nB=two\n")) == {"A": "1", "B": "two"}

    def test_comments_and_blank_lines(self, write):
        path = write(".env", "# comment\n\nA=1\n   # indented comment\n")
        assert parse_env_file(path) == {"A": "1"}

    def test_export_prefix(self, write):
        assert parse_env_file(write(".env", "export A=1\n")) == {"A": "1"}

    def test_quoted_values(self, write):
        path = write(".env", "A=\"hello world\"\nB='single # not a comment'\n")
        assert parse_env_file(path) == {"A": "hello world", "B": "single # not a comment"}

    def test_inline_comment(self, write):
        assert parse_env_file(write(".env", "A=1 # the answer\n")) == {"A": "1"}

    def test_whitespace_around_equals(self, write):
        assert parse_env_file(write(".env", "A = 1\n")) == {"A": "1"}

    def test_empty_value(self, write):
        assert parse_env_file(write(".env", "A=\n")) == {"A": ""}

    def test_invalid_lines_skipped(self, write):
        path = write(".env", "not an assignment\nA=1\n=missing-key\n")
        assert parse_env_file(path) == {"A": "1"}

    def test_unreadable_file(self, tmp_path: Path):
        with pytest.raises(MalformedSourceError):
            parse_env_file(tmp_path)


# ── load_env_files ───────────────────────────────────────────────────────


class TestLoadEnvFiles:
    def test_later_overrides_earlier(self, write):
        first = write(".env.base", "A=1\nB=1\n")
        second = write(".env", "B=2\n")
        assert load_env_files([first, second]) == {"A": "1", "B": "2"}

    def test_missing_files_skipped(self, tmp_path: Path, write):
        present = write(".env", "A=1\n")
        assert load_env_files([tmp_path / ".env.base", present]) == {"A": "1"}


# ── TOML ─────────────────────────────────────────────────────────────────


class TestToml:
    def test_read(self, write):
        path = write("settings.toml", 'port = 1\n[database]\nurl = "x"\n')
        assert read_toml(path) == {"port": 1, "database": {"url": "x"}}

    def test_parse_error_position(self, tmp_path: Path):
        path = tmp_path / "settings.toml"
        with pytest.raises(MalformedSourceError) as exc_info:
            parse_toml('a = 1\nb = "unterminated\n', path=path)

        err = exc_info.value
        assert err.line == 2
        assert err.column is not None
        assert err.path == str(path)
        assert f"{path}:2" in str(err)
        assert err.context.line == 2

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(MalformedSourceError) as exc_info:
            read_toml(tmp_path / "missing.toml", source="profile")
        assert exc_info.value.source == "profile"
        assert exc_info.value.cause is not None
