"""
Post-validation settings checks.

Type validation proves each value has the right shape; checks prove the
values make sense together (a password without a user, an unsupported
backend name for this deployment).  A check returns
:class:`SettingsWarning` objects; any ``error`` severity aborts resolution
with :class:`~layerconf.errors.InvalidSettingError`.

Example::

    from layerconf.checks import OneOf, RequireTogether

    resolver = SettingsResolver(
        sources,
        checks=[
            RequireTogether("database.user", "database.password"),
            OneOf("log_level", {"DEBUG", "INFO", "WARNING", "ERROR"}),
        ],
    )
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Iterator, Sequence
from dataclasses import dataclass

from pydantic import BaseModel

from .errors import ConfigurationError, ErrorContext
from .protocols import SettingsCheck
from .schema import value_at

SEVERITIES = ("info", "warning", "error")


def _lookup(settings: BaseModel, key: str) -> object:
    try:
        return value_at(settings, key)
    except KeyError:
        raise ConfigurationError(
            f"Settings check refers to undeclared key {key!r}", context=ErrorContext(key=key)
        ) from None


@dataclass(frozen=True, slots=True)
class SettingsWarning:
    """A finding raised by a settings check."""

    severity: str  # "info", "warning", or "error"
    message: str
    suggestion: str = ""
    key: str | None = None

    def __post_init__(self) -> None:
        if self.severity not in SEVERITIES:
            raise ValueError(f"Unknown severity {self.severity!r}; expected one of {SEVERITIES}")

    @property
    def is_error(self) -> bool:
        return self.severity == "error"


class RequireTogether:
    """Keys that must either all be set or all be unset (``None``/empty)."""

    def __init__(self, *keys: str, severity: str = "error"):
        if len(keys) < 2:
            raise ValueError("RequireTogether needs at least two keys")
        self.keys = keys
        self.severity = severity

    def check(self, settings: BaseModel) -> Iterator[SettingsWarning]:
        present = [key for key in self.keys if _lookup(settings, key) not in (None, "")]
        if present and len(present) != len(self.keys):
            absent = [key for key in self.keys if key not in present]
            yield SettingsWarning(
                severity=self.severity,
                message=f"{', '.join(absent)} must be set when {', '.join(present)} is set",
                suggestion=f"Set {', '.join(absent)} or unset {', '.join(present)}.",
                key=absent[0],
            )


class OneOf:
    """A key whose value must be one of *allowed*."""

    def __init__(self, key: str, allowed: Collection[object], *, severity: str = "error"):
        self.key = key
        self.allowed = allowed
        self.severity = severity

    def check(self, settings: BaseModel) -> Iterator[SettingsWarning]:
        value = _lookup(settings, self.key)
        if value not in self.allowed:
            choices = ", ".join(sorted(repr(a) for a in self.allowed))
            yield SettingsWarning(
                severity=self.severity,
                message=f"{self.key} is {value!r}, expected one of {choices}",
                suggestion=f"Set {self.key} to one of {choices}.",
                key=self.key,
            )


def run_checks(checks: Sequence[SettingsCheck], settings: BaseModel) -> list[SettingsWarning]:
    """Run every check and collect all findings in order."""
    findings: list[SettingsWarning] = []
    for check in checks:
        result: Iterable[SettingsWarning] = check.check(settings)
        findings.extend(result)
    return findings


__all__ = ["SEVERITIES", "SettingsWarning", "RequireTogether", "OneOf", "run_checks"]
