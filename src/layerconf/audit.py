"""Resolution auditing through structured logs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from .errors import ConfigurationError
from .logging import get_logger

if TYPE_CHECKING:
    from .resolver import ResolvedSettings


class LoggingAuditor:
    """Default :class:`~layerconf.protocols.ResolutionAuditor`.

    Logs key counts and source names only; values never reach the log.
    """

    def __init__(self, logger: Any | None = None):
        self._logger = logger or get_logger(__name__)

    def source_loaded(self, source: str, keys: int) -> None:
        self._logger.debug("settings_source_loaded", source=source, keys=keys)

    def resolved(self, settings: ResolvedSettings) -> None:
        self._logger.info(
            "settings_resolved",
            schema=type(settings.model).__name__,
            keys=len(settings.provenance),
            sources=sorted(set(settings.provenance.values())),
            warnings=len(settings.warnings),
        )
        for warning in settings.warnings:
            self._logger.warning(
                "settings_check_warning",
                severity=warning.severity,
                check_message=warning.message,
                key=warning.key,
            )

    def failed(self, schema: type[BaseModel], error: ConfigurationError) -> None:
        self._logger.error("settings_resolution_failed", schema=schema.__name__, **error.to_dict())


__all__ = ["LoggingAuditor"]
