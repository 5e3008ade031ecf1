"""
Layered settings resolution.

:class:`SettingsResolver` takes an ordered list of sources (highest
precedence first), loads every one of them, and builds one immutable
:class:`ResolvedSettings` snapshot:

1. Every source is loaded before anything is merged; a malformed source
   aborts resolution and no partial result is returned.
2. Leaf keys take the value of the first source that defines them.
   Groups are merged key by key, so a high-precedence source may override
   one key of a group and inherit the rest.
3. A key no source defines falls back to the schema default; a required
   key without a value is reported (all of them at once) as
   :class:`~layerconf.errors.MissingSettingError`.
4. The merged mapping is validated and coerced by pydantic; the first
   failure becomes a :class:`~layerconf.errors.CoercionError` naming the
   key, the source, and the expected type.
5. Registered checks run against the validated model; error-severity
   findings raise :class:`~layerconf.errors.InvalidSettingError`.

Every leaf key records the name of the source that supplied it
(``"defaults"`` for schema defaults), so a value can always be traced back
to where it came from.

Example::

    resolver = SettingsResolver([
        InitSource({"port": 9000}),
        EnvironmentSource("APP_"),
        TomlFileSource("settings.toml"),
        DefaultsSource(),
    ])
    settings = resolver.resolve(AppSettings)
    settings.port                  # 9000
    settings.source_of("port")     # "init"

Tags:
    layerconf, resolver, precedence, provenance, pydantic
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from .audit import LoggingAuditor
from .checks import SettingsWarning, run_checks
from .errors import (
    REDACTED,
    CoercionError,
    ConfigurationError,
    InvalidSettingError,
    MalformedSourceError,
    MissingSettingError,
)
from .logging import LogContext
from .merge import canonicalize
from .protocols import ResolutionAuditor, SettingsCheck, Source
from .schema import FieldSpec, describe_type, find_field, iter_fields, iter_leaves, value_at

S = TypeVar("S", bound=BaseModel)

DEFAULTS_SOURCE = "defaults"

_Layer = tuple[str, Mapping[str, Any]]


@dataclass(frozen=True, slots=True)
class ResolutionRecord:
    """One line of :meth:`ResolvedSettings.explain`."""

    key: str
    value: Any
    source: str


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    if isinstance(value, set):
        return frozenset(value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


class ResolvedSettings(Mapping[str, Any], Generic[S]):
    """Immutable result of one resolution.

    Behaves as a read-only mapping of top-level keys (groups are read-only
    mappings themselves) and exposes the validated model through
    :attr:`model` and attribute access::

        settings["database"]["url"]
        settings.database.url
        settings.get_path("database.url")
        settings.source_of("database.url")
    """

    __slots__ = ("_model", "_data", "_provenance", "_warnings", "_secrets")

    def __init__(
        self,
        model: S,
        provenance: Mapping[str, str],
        warnings: Sequence[SettingsWarning] = (),
    ):
        object.__setattr__(self, "_model", model)
        object.__setattr__(self, "_data", _freeze(model.model_dump()))
        object.__setattr__(self, "_provenance", MappingProxyType(dict(provenance)))
        object.__setattr__(self, "_warnings", tuple(warnings))
        object.__setattr__(
            self, "_secrets", frozenset(spec.dotted for spec in iter_leaves(type(model)) if spec.is_secret)
        )

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return getattr(self._model, name)

    # ── Mapping ──────────────────────────────────────────────────

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    # ── Provenance ───────────────────────────────────────────────

    @property
    def model(self) -> S:
        return self._model

    @property
    def provenance(self) -> Mapping[str, str]:
        """Dotted leaf key → name of the source that supplied it."""
        return self._provenance

    @property
    def warnings(self) -> tuple[SettingsWarning, ...]:
        """Non-fatal findings reported by settings checks."""
        return self._warnings

    def source_of(self, key: str) -> str:
        """Name of the source that supplied the dotted leaf *key*."""
        try:
            return self._provenance[key]
        except KeyError:
            raise KeyError(f"Unknown settings key: {key}") from None

    def get_path(self, key: str) -> Any:
        """Value at the dotted *key* (``"database.url"``)."""
        return value_at(self._data, key)

    def is_secret(self, key: str) -> bool:
        return key in self._secrets

    def explain(self) -> list[ResolutionRecord]:
        """Every leaf key with its value and source; secrets are redacted."""
        return [
            ResolutionRecord(
                key=key,
                value=REDACTED if key in self._secrets else self.get_path(key),
                source=source,
            )
            for key, source in sorted(self._provenance.items())
        ]

    def as_dict(self) -> dict[str, Any]:
        """A mutable deep copy of the values."""
        return _thaw(self._data)

    def __repr__(self) -> str:
        return f"ResolvedSettings({type(self._model).__name__}, keys={list(self._data)})"


class SettingsResolver:
    """Merge ranked sources into validated, provenance-tracked settings.

    Parameters
    ----------
    sources:
        Sources ordered from highest to lowest precedence.  Names must be
        unique; they are what provenance reports.
    checks:
        Settings checks run after type validation.
    auditor:
        Observer of loads, results and failures (default: structured logs).
    """

    def __init__(
        self,
        sources: Sequence[Source],
        *,
        checks: Sequence[SettingsCheck] = (),
        auditor: ResolutionAuditor | None = None,
    ):
        names = [source.name for source in sources]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate source names: {', '.join(duplicates)}")
        self._sources = tuple(sources)
        self._checks = tuple(checks)
        self._auditor = auditor if auditor is not None else LoggingAuditor()

    @property
    def sources(self) -> tuple[Source, ...]:
        return self._sources

    @property
    def checks(self) -> tuple[SettingsCheck, ...]:
        return self._checks

    def resolve(self, schema: type[S]) -> ResolvedSettings[S]:
        """Resolve *schema* against all sources.

        Raises:
            ConfigurationError: any missing, malformed, uncoercible or
                invalid setting.  No partial result is ever returned.
        """
        with LogContext(settings_schema=schema.__name__):
            try:
                layers = self._load(schema)
                provenance: dict[str, str] = {}
                missing: list[str] = []
                raw = self._merge(schema, layers, (), provenance, missing)
                if missing:
                    raise MissingSettingError(missing)
                model = self._validate(schema, raw, provenance)
                warnings = run_checks(self._checks, model)
                errors = [w for w in warnings if w.is_error]
                if errors:
                    raise InvalidSettingError(errors)
            except ConfigurationError as exc:
                self._auditor.failed(schema, exc)
                raise

            resolved: ResolvedSettings[S] = ResolvedSettings(model, provenance, warnings)
            self._auditor.resolved(resolved)
            return resolved

    def _load(self, schema: type[BaseModel]) -> list[_Layer]:
        layers: list[_Layer] = []
        for source in self._sources:
            data = source.load(schema)
            if not isinstance(data, Mapping):
                raise MalformedSourceError(source.name, f"load() returned {type(data).__name__}, not a mapping")
            data = canonicalize(schema, data, source.name)
            self._auditor.source_loaded(source.name, _count_leaves(data))
            layers.append((source.name, data))
        return layers

    def _merge(
        self,
        model: type[BaseModel],
        layers: Sequence[_Layer],
        path: tuple[str, ...],
        provenance: dict[str, str],
        missing: list[str],
    ) -> dict[str, Any]:
        raw: dict[str, Any] = {}
        for spec in iter_fields(model, path):
            if spec.group is not None:
                sublayers: list[_Layer] = []
                for name, data in layers:
                    if spec.name not in data:
                        continue
                    value = data[spec.name]
                    if not isinstance(value, Mapping):
                        raise CoercionError(
                            spec.dotted,
                            source=name,
                            expected=f"{spec.group.__name__} (table of settings)",
                            value=value,
                            secret=spec.is_secret,
                        )
                    sublayers.append((name, value))
                if not sublayers and spec.has_default:
                    for leaf in iter_leaves(spec.group, spec.path):
                        provenance[leaf.dotted] = DEFAULTS_SOURCE
                    continue
                if spec.has_default:
                    sublayers.append((DEFAULTS_SOURCE, _dump_group_default(spec)))
                raw[spec.name] = self._merge(spec.group, sublayers, spec.path, provenance, missing)
                continue

            for name, data in layers:
                if spec.name in data:
                    raw[spec.name] = data[spec.name]
                    provenance[spec.dotted] = name
                    break
            else:
                if spec.has_default:
                    provenance[spec.dotted] = DEFAULTS_SOURCE
                else:
                    missing.append(spec.dotted)
        return raw

    def _validate(self, schema: type[S], raw: dict[str, Any], provenance: Mapping[str, str]) -> S:
        try:
            return schema.model_validate(raw)
        except ValidationError as exc:
            raise _coercion_error(schema, exc, provenance) from exc

    def __repr__(self) -> str:
        return f"SettingsResolver(sources={[s.name for s in self._sources]!r})"


def _dump_group_default(spec: FieldSpec) -> dict[str, Any]:
    """The group's declared default as the lowest merge layer."""
    default = spec.default()
    if isinstance(default, BaseModel):
        return default.model_dump()
    if isinstance(default, Mapping):
        return canonicalize(spec.group, default, DEFAULTS_SOURCE)
    return {}


def _count_leaves(data: Mapping[str, Any]) -> int:
    return sum(_count_leaves(v) if isinstance(v, Mapping) else 1 for v in data.values())


def _coercion_error(
    schema: type[BaseModel], exc: ValidationError, provenance: Mapping[str, str]
) -> ConfigurationError:
    errors = exc.errors(include_url=False)
    first = errors[0]
    names: list[str] = []
    for part in first["loc"]:
        if not isinstance(part, str):
            break
        names.append(part)

    reason = first["msg"]
    if len(errors) > 1:
        reason = f"{reason}; {len(errors) - 1} more error(s)"

    spec = None
    for depth in range(len(names), 0, -1):
        spec = find_field(schema, tuple(names[:depth]))
        if spec is not None:
            break

    if spec is None:
        return ConfigurationError(f"Invalid settings for {schema.__name__}: {reason}", cause=exc)

    return CoercionError(
        spec.dotted,
        source=provenance.get(spec.dotted),
        expected=describe_type(spec.annotation),
        value=first.get("input"),
        reason=reason,
        secret=spec.is_secret,
        cause=exc,
    )


__all__ = [
    "DEFAULTS_SOURCE",
    "ResolutionRecord",
    "ResolvedSettings",
    "SettingsResolver",
]
