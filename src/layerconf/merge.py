"""Mapping helpers shared by sources, profiles and the resolver."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

from .errors import MalformedSourceError
from .schema import group_type


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Return *base* updated by *override*, merging nested mappings key by key.

    Neither argument is modified.
    """
    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        current = result.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            result[key] = deep_merge(current, value)
        else:
            result[key] = value
    return result


def canonicalize(model: type[BaseModel], mapping: Mapping[Any, Any], source: str) -> dict[str, Any]:
    """Re-key *mapping* by the declared field names of *model*.

    Keys match field names case-insensitively at every group level; leaf
    values (including dict-typed leaves) are left untouched.  Undeclared
    keys are dropped.  Two keys naming the same field in different case
    raise :class:`MalformedSourceError`.
    """
    fields = {name.lower(): (name, group_type(info.annotation)) for name, info in model.model_fields.items()}
    result: dict[str, Any] = {}
    spelled: dict[str, Any] = {}
    for key, value in mapping.items():
        folded = str(key).lower()
        if folded not in fields:
            continue
        name, group = fields[folded]
        if name in spelled:
            raise MalformedSourceError(source, f"keys {spelled[name]!r} and {key!r} differ only in case")
        spelled[name] = key
        if group is not None:
            if isinstance(value, BaseModel):
                value = value.model_dump()
            if isinstance(value, Mapping):
                value = canonicalize(group, value, source)
        result[name] = value
    return result


def expand_dotted(mapping: Mapping[str, Any]) -> dict[str, Any]:
    """Turn ``{"database.url": x}`` into ``{"database": {"url": x}}``.

    Dotted and nested spellings of the same group are merged.
    """
    result: dict[str, Any] = {}
    for key, value in mapping.items():
        parts = str(key).split(".")
        nested: Any = value
        for part in reversed(parts[1:]):
            nested = {part: nested}
        head = parts[0]
        if isinstance(nested, BaseModel):
            nested = nested.model_dump()
        current = result.get(head)
        if isinstance(nested, Mapping) and isinstance(current, Mapping):
            result[head] = deep_merge(current, nested)
        else:
            result[head] = nested
    return result


__all__ = ["deep_merge", "canonicalize", "expand_dotted"]
