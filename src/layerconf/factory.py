"""
Factory functions that assemble the standard precedence stack.

Features:
    - ``create_sources()`` — init → env → dotenv → profile → TOML → defaults
    - ``create_resolver()`` — the stack wrapped in a :class:`SettingsResolver`
    - ``create_provider()`` — a lazily resolved :class:`SettingsProvider`
    - ``resolve_settings()`` — one-shot resolution

Relative file paths are taken relative to the project root, which is
discovered from the working directory unless given.

Tags:
    layerconf, configuration, factory-pattern
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel

from .loader import discover_env_files, find_project_root
from .profiles import ProfileManager, ProfileSource
from .protocols import ResolutionAuditor, SettingsCheck, Source
from .provider import SettingsProvider
from .resolver import ResolvedSettings, SettingsResolver
from .sources import DefaultsSource, DotEnvSource, EnvironmentSource, InitSource, TomlFileSource

S = TypeVar("S", bound=BaseModel)


def create_sources(
    *,
    init: Mapping[str, Any] | None = None,
    env_prefix: str = "",
    env_delimiter: str = "__",
    env_files: Sequence[Path | str] | None = None,
    toml_file: Path | str | None = None,
    toml_table: Sequence[str] | None = None,
    toml_required: bool = False,
    profile: str | None = None,
    use_profiles: bool = True,
    user_profile_dir: Path | None = None,
    tier: str | None = None,
    project_root: Path | None = None,
    environ: Mapping[str, str] | None = None,
    defaults: Mapping[str, Any] | None = None,
) -> list[Source]:
    """Build the standard source stack, highest precedence first.

    With ``env_files=None`` the dotenv cascade
    (``.env.base`` → ``.env.{tier}`` → ``.env.local`` → ``.env``) is
    discovered in the project root.  A profile, when one is selected, ranks
    just above *toml_file*.
    """
    root = (project_root or find_project_root()).resolve()

    if env_files is None:
        files: list[Path] = discover_env_files(root, tier, env_prefix=env_prefix, environ=environ)
    else:
        files = [_under(root, f) for f in env_files]

    sources: list[Source] = [
        InitSource(init),
        EnvironmentSource(env_prefix, delimiter=env_delimiter, environ=environ),
        DotEnvSource(files, prefix=env_prefix, delimiter=env_delimiter),
    ]
    if use_profiles:
        manager = ProfileManager(root, user_profile_dir, env_prefix=env_prefix, environ=environ)
        sources.append(ProfileSource(manager, profile))
    if toml_file is not None:
        sources.append(TomlFileSource(_under(root, toml_file), table=toml_table, required=toml_required))
    sources.append(DefaultsSource(defaults))
    return sources


def create_resolver(
    *,
    checks: Sequence[SettingsCheck] = (),
    auditor: ResolutionAuditor | None = None,
    **source_options: Any,
) -> SettingsResolver:
    """Standard stack wrapped in a resolver; see :func:`create_sources`."""
    return SettingsResolver(create_sources(**source_options), checks=checks, auditor=auditor)


def create_provider(
    schema: type[S],
    *,
    checks: Sequence[SettingsCheck] = (),
    auditor: ResolutionAuditor | None = None,
    **source_options: Any,
) -> SettingsProvider[S]:
    """Lazily resolved provider over the standard stack."""
    return SettingsProvider(schema, create_resolver(checks=checks, auditor=auditor, **source_options))


def resolve_settings(schema: type[S], **options: Any) -> ResolvedSettings[S]:
    """Resolve *schema* once against the standard stack."""
    return create_resolver(**options).resolve(schema)


def _under(root: Path, path: Path | str) -> Path:
    path = Path(path)
    return path if path.is_absolute() else root / path


__all__ = ["create_sources", "create_resolver", "create_provider", "resolve_settings"]
