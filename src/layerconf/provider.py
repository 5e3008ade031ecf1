"""
Lazily resolved, reloadable settings handle.

:class:`SettingsProvider` replaces the module-level cached ``get_settings()``
pattern with an explicit object handed to whoever needs configuration.
The first :meth:`~SettingsProvider.get` resolves; later calls return the
same snapshot until :meth:`~SettingsProvider.reload` or
:meth:`~SettingsProvider.invalidate`.

Usage::

    provider = SettingsProvider(AppSettings, resolver)
    provider.get().port            # resolves once
    provider.settings.database     # typed model

    provider.reload()              # swap in a fresh snapshot

Readers never see a half-built snapshot: a reload resolves completely and
then replaces the reference in one assignment.  When the reload fails the
previous snapshot stays in place and the error propagates.
"""

from __future__ import annotations

import threading
from typing import Generic, TypeVar

from pydantic import BaseModel

from .logging import get_logger
from .resolver import ResolvedSettings, SettingsResolver

logger = get_logger(__name__)

S = TypeVar("S", bound=BaseModel)


class SettingsProvider(Generic[S]):
    """Thread-safe holder of the current settings snapshot."""

    def __init__(self, schema: type[S], resolver: SettingsResolver) -> None:
        self._schema = schema
        self._resolver = resolver
        self._lock = threading.Lock()
        self._resolved: ResolvedSettings[S] | None = None
        self._generation = 0

    # ── Properties ───────────────────────────────────────────────

    @property
    def schema(self) -> type[S]:
        return self._schema

    @property
    def resolver(self) -> SettingsResolver:
        return self._resolver

    @property
    def generation(self) -> int:
        """Number of snapshots built so far."""
        return self._generation

    @property
    def is_resolved(self) -> bool:
        return self._resolved is not None

    @property
    def settings(self) -> S:
        """The validated model of the current snapshot."""
        return self.get().model

    # ── Access ───────────────────────────────────────────────────

    def get(self) -> ResolvedSettings[S]:
        """Return the current snapshot, resolving on first use."""
        resolved = self._resolved
        if resolved is not None:
            return resolved
        with self._lock:
            if self._resolved is None:
                self._resolved = self._resolver.resolve(self._schema)
                self._generation += 1
            return self._resolved

    def reload(self) -> ResolvedSettings[S]:
        """Resolve again and swap the new snapshot in.

        Raises:
            ConfigurationError: resolution failed; the previous snapshot
                is kept.
        """
        with self._lock:
            resolved = self._resolver.resolve(self._schema)
            self._resolved = resolved
            self._generation += 1
        logger.info("settings_reloaded", schema=self._schema.__name__, generation=self._generation)
        return resolved

    def invalidate(self) -> None:
        """Drop the snapshot; the next :meth:`get` resolves again."""
        with self._lock:
            self._resolved = None

    def __repr__(self) -> str:
        state = f"generation={self._generation}" if self.is_resolved else "unresolved"
        return f"SettingsProvider({self._schema.__name__}, {state})"


__all__ = ["SettingsProvider"]
