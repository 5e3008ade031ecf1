"""
Declared settings schemas.

Applications declare their settings as a frozen pydantic model.  Plain
fields are leaf keys; fields annotated with a :class:`SettingsGroup`
subclass are nested groups, merged key by key during resolution.

Example::

    from pydantic import SecretStr
    from layerconf import SettingsGroup, SettingsSchema

    class Database(SettingsGroup):
        url: str = "sqlite:///app.db"
        pool_size: int = 5
        password: SecretStr | None = None

    class AppSettings(SettingsSchema):
        port: int = 8000
        debug: bool = False
        api_key: str                        # required, no default
        database: Database = Database()

The helpers below walk a schema the same way for every source so that
environment names, defaults and provenance keys always agree.

Tags:
    layerconf, schema, pydantic, settings-groups
"""

from __future__ import annotations

import types
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Union, get_args, get_origin

from pydantic import BaseModel, ConfigDict, SecretBytes, SecretStr
from pydantic.fields import FieldInfo
from pydantic_core import PydanticUndefined

_COMPLEX_ORIGINS = (list, tuple, set, frozenset, dict, Mapping)


class SettingsGroup(BaseModel):
    """A named nested cluster of related settings keys."""

    model_config = ConfigDict(frozen=True, extra="ignore")


class SettingsSchema(BaseModel):
    """Root of an application's declared settings.

    Instances are immutable; undeclared keys are ignored.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """One declared key, as seen by sources and the resolver."""

    name: str
    path: tuple[str, ...]
    info: FieldInfo
    group: type[BaseModel] | None

    @property
    def dotted(self) -> str:
        return ".".join(self.path)

    @property
    def annotation(self) -> Any:
        return self.info.annotation

    @property
    def is_group(self) -> bool:
        return self.group is not None

    @property
    def has_default(self) -> bool:
        return self.info.default is not PydanticUndefined or self.info.default_factory is not None

    @property
    def is_secret(self) -> bool:
        return is_secret_type(self.annotation)

    @property
    def is_complex(self) -> bool:
        """True when a string value must be decoded as JSON first."""
        return self.is_group or _is_complex(self.annotation)

    def default(self) -> Any:
        if self.info.default_factory is not None:
            return self.info.default_factory()  # type: ignore[call-arg]
        return self.info.default


def is_secret_type(annotation: Any) -> bool:
    """True for ``SecretStr``/``SecretBytes`` (optionally wrapped in ``Optional``)."""
    return _contains_type(annotation, (SecretStr, SecretBytes))


def group_type(annotation: Any) -> type[BaseModel] | None:
    """Return the model class when *annotation* is a settings group.

    Only a bare ``BaseModel`` subclass counts; ``Optional[Group]`` is a leaf
    that is replaced wholesale.
    """
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return annotation
    return None


def iter_fields(model: type[BaseModel], prefix: tuple[str, ...] = ()) -> Iterator[FieldSpec]:
    """Yield the direct fields of *model* (groups are not expanded)."""
    for name, info in model.model_fields.items():
        yield FieldSpec(name=name, path=prefix + (name,), info=info, group=group_type(info.annotation))


def iter_leaves(model: type[BaseModel], prefix: tuple[str, ...] = ()) -> Iterator[FieldSpec]:
    """Yield every leaf field of *model*, expanding groups depth-first."""
    for spec in iter_fields(model, prefix):
        if spec.group is not None:
            yield from iter_leaves(spec.group, spec.path)
        else:
            yield spec


def find_field(model: type[BaseModel], path: tuple[str, ...]) -> FieldSpec | None:
    """Locate the field at *path* (``("database", "url")``), or ``None``."""
    current: type[BaseModel] | None = model
    spec: FieldSpec | None = None
    for depth, part in enumerate(path):
        if current is None or part not in current.model_fields:
            return None
        info = current.model_fields[part]
        spec = FieldSpec(name=part, path=path[: depth + 1], info=info, group=group_type(info.annotation))
        current = spec.group
    return spec


def value_at(obj: Any, path: tuple[str, ...] | str) -> Any:
    """Follow a dotted *path* through models and mappings.

    Raises :class:`KeyError` when a segment does not exist.
    """
    parts = tuple(path.split(".")) if isinstance(path, str) else path
    current = obj
    for part in parts:
        if isinstance(current, Mapping):
            current = current[part]
        elif isinstance(current, BaseModel) and part in type(current).model_fields:
            current = getattr(current, part)
        else:
            raise KeyError(".".join(parts))
    return current


def describe_type(annotation: Any) -> str:
    """Readable name for an annotation (``int``, ``list[str]``, ``Database``)."""
    if annotation is None or annotation is type(None):
        return "None"
    if get_origin(annotation) is None and isinstance(annotation, type):
        return annotation.__name__
    return str(annotation).replace("typing.", "")


def _unwrap_optional(annotation: Any) -> list[Any]:
    origin = get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        return [a for a in get_args(annotation) if a is not type(None)]
    return [annotation]


def _is_complex(annotation: Any) -> bool:
    for member in _unwrap_optional(annotation):
        origin = get_origin(member) or member
        if isinstance(origin, type) and (issubclass(origin, _COMPLEX_ORIGINS) or issubclass(origin, BaseModel)):
            return True
    return False


def _contains_type(annotation: Any, targets: tuple[type, ...]) -> bool:
    for member in _unwrap_optional(annotation):
        if isinstance(member, type) and issubclass(member, targets):
            return True
    return False


__all__ = [
    "SettingsGroup",
    "SettingsSchema",
    "FieldSpec",
    "group_type",
    "is_secret_type",
    "iter_fields",
    "iter_leaves",
    "find_field",
    "value_at",
    "describe_type",
]
