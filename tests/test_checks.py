"""Tests for layerconf.checks — cross-key rules after validation."""

from __future__ import annotations

import pytest

from conftest import AppSettings, Database, RecordingAuditor
from layerconf import (
    ConfigurationError,
    InitSource,
    InvalidSettingError,
    OneOf,
    RequireTogether,
    SettingsCheck,
    SettingsResolver,
    SettingsWarning,
)
from layerconf.checks import run_checks


class TestSettingsWarning:
    def test_fields(self):
        warning = SettingsWarning("warning", "pool is small", suggestion="raise pool_size", key="database.pool_size")
        assert warning.severity == "warning"
        assert warning.suggestion == "raise pool_size"
        assert not warning.is_error

    def test_unknown_severity(self):
        with pytest.raises(ValueError, match="Unknown severity"):
            SettingsWarning("fatal", "nope")


class TestRequireTogether:
    def test_all_unset(self):
        check = RequireTogether("database.user", "database.password")
        assert list(check.check(AppSettings())) == []

    def test_all_set(self):
        settings = AppSettings(database=Database(user="app", password="secret"))
        assert list(RequireTogether("database.user", "database.password").check(settings)) == []

    def test_partial(self):
        settings = AppSettings(database=Database(password="secret"))
        (warning,) = RequireTogether("database.user", "database.password").check(settings)
        assert warning.is_error
        assert warning.key == "database.user"
        assert "database.user must be set when database.password is set" == warning.message

    def test_needs_two_keys(self):
        with pytest.raises(ValueError):
            RequireTogether("database.user")


class TestOneOf:
    def test_allowed(self):
        assert list(OneOf("name", {"app", "worker"}).check(AppSettings())) == []

    def test_not_allowed(self):
        (warning,) = OneOf("name", {"api"}, severity="warning").check(AppSettings())
        assert warning.severity == "warning"
        assert "'app'" in warning.message


class TestChecksInResolver:
    def test_satisfies_protocol(self):
        assert isinstance(OneOf("name", {"app"}), SettingsCheck)

    def test_error_aborts_resolution(self, auditor: RecordingAuditor):
        resolver = SettingsResolver(
            [InitSource({"database.password": "secret"})],
            checks=[RequireTogether("database.user", "database.password")],
            auditor=auditor,
        )
        with pytest.raises(InvalidSettingError) as exc_info:
            resolver.resolve(AppSettings)

        assert len(exc_info.value.warnings) == 1
        assert "secret" not in str(exc_info.value)
        assert auditor.failures == [exc_info.value]

    def test_warnings_attached_to_result(self):
        resolver = SettingsResolver(
            [InitSource({"port": 1})],
            checks=[OneOf("name", {"api"}, severity="warning"), OneOf("port", {1})],
        )
        settings = resolver.resolve(AppSettings)
        assert [w.key for w in settings.warnings] == ["name"]

    def test_run_checks_keeps_order(self):
        checks = [OneOf("name", {"x"}, severity="info"), OneOf("port", {1}, severity="warning")]
        assert [w.severity for w in run_checks(checks, AppSettings())] == ["info", "warning"]

    @pytest.mark.parametrize(
        "check",
        [OneOf("nope", {1}), RequireTogether("database.user", "database.nope")],
        ids=["one_of", "require_together"],
    )
    def test_undeclared_key_is_configuration_error(self, check: SettingsCheck, auditor: RecordingAuditor):
        resolver = SettingsResolver([InitSource({"port": 1})], checks=[check], auditor=auditor)
        with pytest.raises(ConfigurationError, match="undeclared key") as exc_info:
            resolver.resolve(AppSettings)

        assert not isinstance(exc_info.value, KeyError)
        assert auditor.failures == [exc_info.value]
