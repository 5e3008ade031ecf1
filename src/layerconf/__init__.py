"""Layered, provenance-tracked application settings.

Manifesto:
    An application reads the same setting from several places: explicit
    arguments, the environment, dotenv files, a TOML file, and the defaults
    declared in code.  Without one resolver each caller merges those by
    hand and nobody can say where a value came from.

    This package provides a **single validated source of truth** with:

    * **Declared schema** -- frozen pydantic ``SettingsSchema`` / ``SettingsGroup``
    * **Ranked sources** -- init → env → dotenv → TOML (profile) → defaults
    * **Provenance** -- every key knows which source supplied it
    * **Checks** -- cross-key rules after type validation
    * **Provider** -- explicit, lazily resolved, atomically reloadable handle

Quick start::

    from layerconf import SettingsSchema, create_provider

    class AppSettings(SettingsSchema):
        port: int = 8000
        debug: bool = False

    provider = create_provider(AppSettings, env_prefix="APP_", toml_file="settings.toml")
    settings = provider.get()
    settings.port                  # 8000
    settings.source_of("port")     # "defaults"

Architecture::

    schema.py      SettingsSchema / SettingsGroup + schema walking helpers
    sources.py     Init / Environment / DotEnv / TomlFile / Defaults sources
    loader.py      dotenv cascade discovery + dotenv / TOML parsing
    profiles.py    TOML profiles with inheritance (.layerconf/profiles/)
    merge.py       deep merge and schema-aware key canonicalization
    resolver.py    SettingsResolver + immutable ResolvedSettings
    checks.py      SettingsWarning + ready-made cross-key checks
    audit.py       LoggingAuditor (structlog)
    provider.py    SettingsProvider (lazy, thread-safe, reloadable)
    factory.py     create_sources / create_resolver / create_provider
    errors.py      ConfigurationError hierarchy
    logging.py     structlog configuration

Guardrails:
    ❌ Parsing env vars ad-hoc in each module
    ✅ Declare the key on the schema and read it from the snapshot
    ❌ A module-level cached ``get_settings()`` singleton
    ✅ A ``SettingsProvider`` passed to whoever needs it
    ❌ Logging resolved values
    ✅ ``settings.explain()`` (secrets redacted)

Tags:
    layerconf, configuration, settings, precedence, provenance, pydantic,
    env-files, TOML, profiles

Doc-Types:
    package-overview, architecture-map, module-index
"""

from .audit import LoggingAuditor
from .checks import OneOf, RequireTogether, SettingsWarning
from .errors import (
    REDACTED,
    CoercionError,
    ConfigurationError,
    ErrorContext,
    InvalidSettingError,
    MalformedSourceError,
    MissingSettingError,
)
from .factory import create_provider, create_resolver, create_sources, resolve_settings
from .loader import discover_env_files, find_project_root
from .profiles import Profile, ProfileManager, ProfileSource
from .protocols import ResolutionAuditor, SettingsCheck, Source
from .provider import SettingsProvider
from .resolver import DEFAULTS_SOURCE, ResolutionRecord, ResolvedSettings, SettingsResolver
from .schema import SettingsGroup, SettingsSchema
from .sources import DefaultsSource, DotEnvSource, EnvironmentSource, InitSource, TomlFileSource

__version__ = "0.1.0"

__all__ = [
    # Schema
    "SettingsSchema",
    "SettingsGroup",
    # Sources
    "Source",
    "InitSource",
    "EnvironmentSource",
    "DotEnvSource",
    "TomlFileSource",
    "DefaultsSource",
    "Profile",
    "ProfileManager",
    "ProfileSource",
    "discover_env_files",
    "find_project_root",
    # Resolution
    "SettingsResolver",
    "ResolvedSettings",
    "ResolutionRecord",
    "DEFAULTS_SOURCE",
    "SettingsProvider",
    # Checks and auditing
    "SettingsCheck",
    "SettingsWarning",
    "RequireTogether",
    "OneOf",
    "ResolutionAuditor",
    "LoggingAuditor",
    # Factory
    "create_sources",
    "create_resolver",
    "create_provider",
    "resolve_settings",
    # Errors
    "REDACTED",
    "ErrorContext",
    "ConfigurationError",
    "MissingSettingError",
    "MalformedSourceError",
    "CoercionError",
    "InvalidSettingError",
]
