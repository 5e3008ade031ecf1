"""
Structured error types for settings resolution.

Every failure that can happen while resolving settings is a
:class:`ConfigurationError`.  Callers catch one type; subclasses carry the
detail needed to fix the offending input (which key, which source, which
file position).

Manifesto:
    - **Single error kind:** ``except ConfigurationError`` catches everything
    - **Never retryable:** sources are static, the input must be fixed
    - **Rich Context:** errors carry key/source/position for logging
    - **Error Chaining:** the original parser/validator error is preserved

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────┐
        │                  ConfigurationError                       │
        │              (context, cause, retryable=False)            │
        ├──────────────────────────────────────────────────────────┤
        │  MissingSettingError     required key with no value       │
        │  MalformedSourceError    unreadable / unparsable source   │
        │  CoercionError           value does not fit declared type │
        │  InvalidSettingError     a settings check failed          │
        └──────────────────────────────────────────────────────────┘

Examples:
    >>> err = CoercionError("port", source="env", expected="int", value="abc")
    >>> err.context.key
    'port'
    >>> err.to_dict()["context"]["source"]
    'env'

Guardrails:
    ❌ DON'T: Raise bare ValueError from a source or the resolver
    ✅ DO: Raise the matching ConfigurationError subclass

    ❌ DON'T: Put secret values into messages
    ✅ DO: Pass ``secret=True`` so the value is redacted

Tags:
    error-handling, exception-hierarchy, configuration, layerconf

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .checks import SettingsWarning

REDACTED = "**********"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to a :class:`ConfigurationError`.

    Only fields that are set end up in :meth:`to_dict`, so log lines stay
    short.  Anything without a dedicated field goes into ``metadata``.

    Attributes:
        key: Dotted settings key (``"database.url"``)
        source: Name of the source that supplied the value (``"env"``)
        path: File the value or failure came from
        line: 1-based line of a parse failure
        column: 1-based column of a parse failure
        expected: Human-readable expected type
        value: The offending value (already redacted when secret)
        metadata: Additional key-value pairs
    """

    key: str | None = None
    source: str | None = None
    path: str | None = None
    line: int | None = None
    column: int | None = None
    expected: str | None = None
    value: Any = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["key", "source", "path", "line", "column", "expected"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.value is not None:
            result["value"] = repr(self.value) if not isinstance(self.value, str) else self.value
        if self.metadata:
            result.update(self.metadata)
        return result


class ConfigurationError(Exception):
    """
    Base exception for every settings-resolution failure.

    Configuration errors are never retryable: the sources are static for the
    lifetime of the process, so the only recovery is fixing the input and
    resolving again.

    Examples:
        >>> error = ConfigurationError("Bad settings")
        >>> error.retryable
        False

        >>> error = ConfigurationError("Bad settings").with_context(key="port")
        >>> error.context.key
        'port'
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> ConfigurationError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ConfigurationError("Unreadable").with_context(
                source="toml", path="settings.toml"
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class MissingSettingError(ConfigurationError):
    """One or more required settings have no value in any source."""

    def __init__(self, keys: list[str] | tuple[str, ...], message: str | None = None):
        self.keys = tuple(keys)
        self.key = self.keys[0] if self.keys else None
        super().__init__(
            message or f"Missing required setting(s): {', '.join(self.keys)}",
            context=ErrorContext(key=self.key, metadata={"missing": list(self.keys)}),
        )


class MalformedSourceError(ConfigurationError):
    """A source could not be read or parsed.

    For parse failures ``line`` and ``column`` point at the offending
    position inside ``path``.
    """

    def __init__(
        self,
        source: str,
        message: str,
        *,
        path: Path | str | None = None,
        line: int | None = None,
        column: int | None = None,
        cause: Exception | None = None,
    ):
        self.source = source
        self.path = str(path) if path is not None else None
        self.line = line
        self.column = column
        where = self.path or source
        if line is not None:
            where = f"{where}:{line}" + (f":{column}" if column is not None else "")
        super().__init__(
            f"Malformed {source} source {where}: {message}",
            context=ErrorContext(source=source, path=self.path, line=line, column=column),
            cause=cause,
        )


class CoercionError(ConfigurationError):
    """A value could not be converted to the key's declared type."""

    def __init__(
        self,
        key: str,
        *,
        source: str | None,
        expected: str,
        value: Any,
        reason: str | None = None,
        secret: bool = False,
        cause: Exception | None = None,
    ):
        self.key = key
        self.source = source
        self.expected = expected
        self.secret = secret
        self.value = REDACTED if secret else value
        origin = f" from source {source!r}" if source else ""
        message = f"Invalid value for {key!r}{origin}: expected {expected}, got {self.value!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(
            message,
            context=ErrorContext(key=key, source=source, expected=expected, value=self.value),
            cause=cause,
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.secret and "cause" in result:
            # validator messages echo the raw input
            result["cause"] = type(self.cause).__name__
        return result


class InvalidSettingError(ConfigurationError):
    """A settings check reported an error-severity finding."""

    def __init__(self, warnings: list[SettingsWarning]):
        self.warnings = tuple(warnings)
        details = "; ".join(w.message for w in self.warnings)
        super().__init__(
            f"Settings check failed: {details}",
            context=ErrorContext(metadata={"checks": [w.message for w in self.warnings]}),
        )


__all__ = [
    "REDACTED",
    "ErrorContext",
    "ConfigurationError",
    "MissingSettingError",
    "MalformedSourceError",
    "CoercionError",
    "InvalidSettingError",
]
