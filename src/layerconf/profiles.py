"""
TOML-based configuration profiles with inheritance.

Profiles live in ``~/.layerconf/profiles/`` (user scope) or
``<project>/.layerconf/profiles/`` (project scope).  Project-scoped
profiles take precedence over user-scoped ones.

Example profile (``staging.toml``)::

    [profile]
    name = "staging"
    description = "Shared staging stack"
    inherits = "dev"       # or omit

    debug = false

    [database]
    url = "postgresql://staging/app"
    pool_size = 10

Resolving ``staging`` deep-merges ``dev`` first and ``staging`` on top, so
``staging`` may override a single key of the ``[database]`` group and keep
the rest from ``dev``.  A resolved profile feeds the structured-file slot of
the precedence stack through :class:`ProfileSource`.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from .errors import ConfigurationError, ErrorContext
from .loader import read_toml
from .logging import get_logger
from .merge import canonicalize, deep_merge

logger = get_logger(__name__)

PROFILE_DIR_NAME = ".layerconf"


@dataclass
class Profile:
    """A single configuration profile parsed from a TOML file."""

    name: str
    path: Path
    inherits: str | None = None
    description: str | None = None
    settings: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_toml(cls, path: Path) -> Profile:
        """Load a profile from a ``.toml`` file."""
        data = read_toml(path, source="profile")
        meta = data.pop("profile", {})
        if not isinstance(meta, dict):
            raise ConfigurationError(
                f"[profile] in {path} must be a table",
                context=ErrorContext(source="profile", path=str(path)),
            )
        extra = {k: v for k, v in meta.items() if k not in ("name", "inherits", "description")}
        return cls(
            name=meta.get("name", path.stem),
            path=path,
            inherits=meta.get("inherits") or None,
            description=meta.get("description"),
            settings=deep_merge(extra, data),
        )


class ProfileManager:
    """Discover and resolve TOML profiles.

    Parameters
    ----------
    project_root:
        Project directory containing ``.layerconf/profiles/``.
    user_dir:
        User-level profile directory (default ``~/.layerconf/profiles``).
    env_prefix:
        Prefix of the ``{env_prefix}PROFILE`` selection variable.
    environ:
        Environment mapping consulted for the active profile.
    """

    def __init__(
        self,
        project_root: Path | None = None,
        user_dir: Path | None = None,
        *,
        env_prefix: str = "",
        environ: Mapping[str, str] | None = None,
    ):
        self._project_root = (project_root or Path.cwd()).resolve()
        self._user_dir = (user_dir or Path.home() / PROFILE_DIR_NAME / "profiles").resolve()
        self._env_prefix = env_prefix
        self._environ = environ

    @property
    def project_profile_dir(self) -> Path:
        return self._project_root / PROFILE_DIR_NAME / "profiles"

    @property
    def user_profile_dir(self) -> Path:
        return self._user_dir

    # ── Discovery ────────────────────────────────────────────────

    def list_profiles(self, scope: str = "all") -> list[Profile]:
        """List available profiles.

        Parameters
        ----------
        scope:
            ``"all"`` (default), ``"user"``, or ``"project"``.
        """
        profiles: list[Profile] = []
        seen: set[str] = set()

        if scope in ("all", "project"):
            for p in self._scan_dir(self.project_profile_dir):
                profiles.append(p)
                seen.add(p.name)

        if scope in ("all", "user"):
            for p in self._scan_dir(self.user_profile_dir):
                if p.name not in seen:
                    profiles.append(p)

        return profiles

    def _scan_dir(self, directory: Path) -> list[Profile]:
        if not directory.is_dir():
            return []
        return [Profile.from_toml(f) for f in sorted(directory.glob("*.toml")) if f.stem != "config"]

    # ── Lookup ───────────────────────────────────────────────────

    def get_profile(self, name: str) -> Profile | None:
        """Get a profile by name.  Project scope wins over user scope."""
        for directory in (self.project_profile_dir, self.user_profile_dir):
            path = directory / f"{name}.toml"
            if path.is_file():
                return Profile.from_toml(path)
        return None

    def get_active_profile(self) -> str | None:
        """Determine the currently active profile name.

        Resolution order:
        1. ``{env_prefix}PROFILE`` environment variable
        2. Project-level ``.layerconf/config.toml`` → ``default_profile``
        3. User-level ``~/.layerconf/config.toml`` → ``default_profile``
        """
        environ = os.environ if self._environ is None else self._environ
        if name := environ.get(f"{self._env_prefix}PROFILE"):
            return name

        for config in (
            self._project_root / PROFILE_DIR_NAME / "config.toml",
            self._user_dir.parent / "config.toml",
        ):
            if config.is_file():
                if name := read_toml(config, source="profile").get("default_profile"):
                    return name

        return None

    # ── Resolution ───────────────────────────────────────────────

    def resolve_profile(self, name: str, _visited: tuple[str, ...] = ()) -> dict[str, Any]:
        """Resolve a profile down to one nested settings mapping.

        Parents are merged first; child values override them key by key.
        """
        if name in _visited:
            chain = " -> ".join((*_visited, name))
            raise ConfigurationError(
                f"Circular profile inheritance detected: {chain}",
                context=ErrorContext(source="profile", metadata={"profile": name}),
            )

        profile = self.get_profile(name)
        if profile is None:
            raise ConfigurationError(
                f"Profile not found: {name}",
                context=ErrorContext(source="profile", metadata={"profile": name}),
            )

        base: dict[str, Any] = {}
        if profile.inherits:
            base = self.resolve_profile(profile.inherits, (*_visited, name))

        return deep_merge(base, profile.settings)


class ProfileSource:
    """Structured-file source backed by a resolved TOML profile.

    With ``profile=None`` the active profile is looked up at load time; no
    active profile means an empty source.
    """

    def __init__(self, manager: ProfileManager, profile: str | None = None, *, name: str = "profile"):
        self.name = name
        self._manager = manager
        self._profile = profile

    def load(self, schema: type[BaseModel]) -> dict[str, Any]:
        profile = self._profile or self._manager.get_active_profile()
        if not profile:
            return {}
        logger.debug("profile_selected", profile=profile)
        return canonicalize(schema, self._manager.resolve_profile(profile), self.name)

    def __repr__(self) -> str:
        return f"ProfileSource(profile={self._profile!r})"


__all__ = ["Profile", "ProfileManager", "ProfileSource", "PROFILE_DIR_NAME"]
