"""
Canonical protocol definitions for layerconf.

Protocols define contracts without inheritance.  The resolver depends on
shape, not implementation: anything with a ``name`` and a ``load()`` is a
source, anything with a ``check()`` is a settings check, and anything with
the three audit hooks is an auditor.  Capabilities are handed to the
resolver and called by delegation; nothing is mixed into it.

Architecture:
    ::

        protocols.py
        ├── Source             — one ranked origin of settings values
        ├── SettingsCheck      — post-validation rule producing warnings
        └── ResolutionAuditor  — observes loads, results and failures

Tags:
    layerconf, protocols, capability-interfaces, delegation
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pydantic import BaseModel

if TYPE_CHECKING:
    from .checks import SettingsWarning
    from .errors import ConfigurationError
    from .resolver import ResolvedSettings


@runtime_checkable
class Source(Protocol):
    """One ranked origin of settings values.

    ``load`` returns a nested mapping keyed by lower-case field names.  It
    may consult *schema* to know which keys exist (flat sources need it to
    map ``APP_DATABASE__URL`` onto ``database.url``).  It must not write
    anything.
    """

    name: str

    def load(self, schema: type[BaseModel]) -> Mapping[str, Any]:
        ...


@runtime_checkable
class SettingsCheck(Protocol):
    """A rule evaluated against the validated settings."""

    def check(self, settings: BaseModel) -> Iterable[SettingsWarning]:
        ...


@runtime_checkable
class ResolutionAuditor(Protocol):
    """Observer notified as resolution progresses."""

    def source_loaded(self, source: str, keys: int) -> None:
        ...

    def resolved(self, settings: ResolvedSettings) -> None:
        ...

    def failed(self, schema: type[BaseModel], error: ConfigurationError) -> None:
        ...


__all__ = ["Source", "SettingsCheck", "ResolutionAuditor"]
