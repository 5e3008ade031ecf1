"""
Configuration sources.

Each source turns one origin of settings into a nested mapping keyed by
declared field names.  The resolver ranks them; sources know nothing
about precedence.

Architecture::

    InitSource          explicit constructor arguments     (rank 1)
    EnvironmentSource   process environment                (rank 2)
    DotEnvSource        one or more dotenv files           (rank 3)
    TomlFileSource      structured TOML file               (rank 4)
    DefaultsSource      defaults declared on the schema    (rank 5)

Flat sources (environment, dotenv) delegate to pydantic-settings'
``EnvSettingsSource``: it maps ``APP_DATABASE__URL`` onto ``database.url``
and decodes JSON for lists, dicts and whole groups.  The dotenv variant
feeds it the variables parsed from the dotenv cascade instead of
``os.environ``.

Tags:
    layerconf, sources, environment, dotenv, toml, defaults, pydantic-settings
"""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from pydantic import BaseModel
from pydantic.fields import FieldInfo
from pydantic_settings import EnvSettingsSource, SettingsError

from .errors import CoercionError, MalformedSourceError
from .loader import load_env_files, read_toml
from .logging import get_logger
from .merge import canonicalize, deep_merge, expand_dotted
from .schema import describe_type, is_secret_type, iter_fields

logger = get_logger(__name__)


class _ComplexValueError(ValueError):
    """A list, dict or group value that is not valid JSON."""

    def __init__(self, field_name: str, field: FieldInfo | None, raw: Any, cause: ValueError):
        super().__init__(str(cause))
        self.field_name = field_name
        self.field = field
        self.raw = raw


class MappedEnvSettingsSource(EnvSettingsSource):
    """``EnvSettingsSource`` over an explicit mapping of variables.

    Names are matched case-insensitively.  Only variables carrying the
    prefix are consulted; two spellings of one name with different values
    are a :class:`MalformedSourceError`.
    """

    def __init__(
        self,
        schema: type[BaseModel],
        variables: Mapping[str, str],
        *,
        source: str,
        prefix: str = "",
        delimiter: str = "__",
    ):
        self._variables = variables
        self._source = source
        super().__init__(
            schema,  # type: ignore[arg-type]
            case_sensitive=False,
            env_prefix=prefix,
            env_nested_delimiter=delimiter,
        )

    def _load_env_vars(self) -> Mapping[str, str | None]:
        return self._fold(self._variables)

    def _fold(self, variables: Mapping[str, str]) -> dict[str, str | None]:
        folded: dict[str, str | None] = {}
        spelled: dict[str, str] = {}
        prefix = self.env_prefix.lower()
        for key, value in variables.items():
            name = key.lower()
            if not name.startswith(prefix):
                continue
            if name in folded and folded[name] != value:
                raise MalformedSourceError(
                    self._source, f"variables {spelled[name]!r} and {key!r} differ only in case"
                )
            folded[name] = value
            spelled[name] = key
        return folded

    def decode_complex_value(self, field_name: str, field: FieldInfo, value: Any) -> Any:
        try:
            return super().decode_complex_value(field_name, field, value)
        except ValueError as exc:
            raise _ComplexValueError(field_name, field, value, exc) from exc

    def read(self) -> dict[str, Any]:
        """Run the source, translating its errors to ``ConfigurationError``."""
        try:
            return self()
        except SettingsError as exc:
            cause = exc.__cause__
            if isinstance(cause, _ComplexValueError):
                annotation = cause.field.annotation if cause.field is not None else dict
                raise CoercionError(
                    cause.field_name,
                    source=self._source,
                    expected=f"{describe_type(annotation)} (JSON)",
                    value=cause.raw,
                    reason="invalid JSON",
                    secret=is_secret_type(annotation),
                    cause=cause,
                ) from exc
            raise MalformedSourceError(self._source, str(exc), cause=exc) from exc


class DotEnvFilesSettingsSource(MappedEnvSettingsSource):
    """``EnvSettingsSource`` reading the merged dotenv cascade."""

    def __init__(self, schema: type[BaseModel], files: Sequence[Path], **kwargs: Any):
        self._files = list(files)
        super().__init__(schema, {}, **kwargs)

    def _load_env_vars(self) -> Mapping[str, str | None]:
        return self._fold(load_env_files(self._files))


class InitSource:
    """Explicit initialization arguments.

    Accepts nested mappings, model instances for groups, and dotted keys
    (``{"database.url": "..."}``).
    """

    def __init__(self, values: Mapping[str, Any] | None = None, *, name: str = "init"):
        self.name = name
        self._values = dict(values or {})

    def load(self, schema: type[BaseModel]) -> dict[str, Any]:
        return canonicalize(schema, expand_dotted(self._values), self.name)

    def __repr__(self) -> str:
        return f"InitSource(keys={sorted(self._values)!r})"


class EnvironmentSource:
    """Process environment variables (read-only).

    Parameters
    ----------
    prefix:
        Prefix every variable carries (``"APP_"`` → ``APP_PORT``).
    delimiter:
        Separator between group and key (``APP_DATABASE__URL``).
    environ:
        Mapping to read instead of ``os.environ`` (tests, subprocesses).
    """

    def __init__(
        self,
        prefix: str = "",
        *,
        delimiter: str = "__",
        environ: Mapping[str, str] | None = None,
        name: str = "env",
    ):
        self.name = name
        self.prefix = prefix
        self.delimiter = delimiter
        self._environ = environ

    def load(self, schema: type[BaseModel]) -> dict[str, Any]:
        environ = os.environ if self._environ is None else self._environ
        source = MappedEnvSettingsSource(
            schema, dict(environ), source=self.name, prefix=self.prefix, delimiter=self.delimiter
        )
        return canonicalize(schema, source.read(), self.name)

    def __repr__(self) -> str:
        return f"EnvironmentSource(prefix={self.prefix!r})"


class DotEnvSource:
    """One or more dotenv files, later files overriding earlier ones.

    Missing files are skipped; the source is optional by nature.  Values
    are never exported to ``os.environ``.
    """

    def __init__(
        self,
        files: Path | str | Sequence[Path | str] = ".env",
        *,
        prefix: str = "",
        delimiter: str = "__",
        name: str = "dotenv",
    ):
        self.name = name
        if isinstance(files, (str, Path)):
            files = [files]
        self.files = [Path(f) for f in files]
        self.prefix = prefix
        self.delimiter = delimiter

    def load(self, schema: type[BaseModel]) -> dict[str, Any]:
        source = DotEnvFilesSettingsSource(
            schema, self.files, source=self.name, prefix=self.prefix, delimiter=self.delimiter
        )
        return canonicalize(schema, source.read(), self.name)

    def __repr__(self) -> str:
        return f"DotEnvSource(files={[str(f) for f in self.files]!r})"


class TomlFileSource:
    """A structured TOML file; tables map to settings groups.

    Parameters
    ----------
    path:
        File to read.
    table:
        Optional table path to read from, e.g. ``("tool", "myapp")`` inside
        ``pyproject.toml``.
    required:
        Raise instead of yielding nothing when the file does not exist.
    """

    def __init__(
        self,
        path: Path | str,
        *,
        table: Sequence[str] | None = None,
        required: bool = False,
        name: str = "toml",
    ):
        self.name = name
        self.path = Path(path)
        self.table = tuple(table or ())
        self.required = required

    def load(self, schema: type[BaseModel]) -> dict[str, Any]:
        if not self.path.is_file():
            if self.required:
                raise MalformedSourceError(self.name, "file not found", path=self.path)
            logger.debug("toml_file_missing", path=str(self.path))
            return {}

        data: Any = read_toml(self.path, source=self.name)
        for part in self.table:
            if not isinstance(data, Mapping) or part not in data:
                return {}
            data = data[part]
        if not isinstance(data, Mapping):
            raise MalformedSourceError(
                self.name, f"[{'.'.join(self.table)}] is not a table", path=self.path
            )
        return canonicalize(schema, data, self.name)

    def __repr__(self) -> str:
        return f"TomlFileSource(path={str(self.path)!r})"


class DefaultsSource:
    """Defaults declared on the schema, optionally refined by *overrides*.

    A group field with an explicit default instance contributes that
    instance's values; otherwise the group's own field defaults are used.
    """

    def __init__(self, overrides: Mapping[str, Any] | None = None, *, name: str = "defaults"):
        self.name = name
        self._overrides = dict(overrides or {})

    def load(self, schema: type[BaseModel]) -> dict[str, Any]:
        defaults = self._collect(schema)
        if self._overrides:
            defaults = deep_merge(defaults, canonicalize(schema, expand_dotted(self._overrides), self.name))
        return defaults

    def _collect(self, model: type[BaseModel]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for spec in iter_fields(model):
            if spec.group is not None:
                value = spec.default() if spec.has_default else None
                if isinstance(value, BaseModel):
                    result[spec.name] = value.model_dump()
                elif isinstance(value, Mapping):
                    result[spec.name] = deep_merge(
                        self._collect(spec.group), canonicalize(spec.group, value, self.name)
                    )
                else:
                    result[spec.name] = self._collect(spec.group)
            elif spec.has_default:
                result[spec.name] = spec.default()
        return result

    def __repr__(self) -> str:
        return "DefaultsSource()"


__all__ = [
    "MappedEnvSettingsSource",
    "DotEnvFilesSettingsSource",
    "InitSource",
    "EnvironmentSource",
    "DotEnvSource",
    "TomlFileSource",
    "DefaultsSource",
]
