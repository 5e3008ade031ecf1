"""
File discovery and parsing for dotenv and TOML sources.

Manifesto:
    Configuration cascading must be predictable and debuggable.  This
    module implements a strict load order with no hidden magic: later
    dotenv files override earlier ones, and every parse failure points at
    the file, line and column that caused it.

Implements the dotenv cascade::

    .env.base  →  .env.{tier}  →  .env.local  →  .env

Dotenv parsing is pure-Python (no ``python-dotenv`` dependency) and never
touches ``os.environ``.  TOML parsing uses the stdlib ``tomllib``.

Tags:
    layerconf, configuration, env-files, toml, cascading, loader

Doc-Types:
    api-reference
"""

from __future__ import annotations

import os
import re
import tomllib
from pathlib import Path
from typing import Any

from .errors import MalformedSourceError
from .logging import get_logger

logger = get_logger(__name__)

_VAR_RE = re.compile(
    r"""
    ^                         # start of line
    \s*                       # optional leading whitespace
    (?:export\s+)?            # optional "export " prefix
    (?P<key>[A-Za-z_][\w.]*)  # variable name
    \s*=\s*                   # equals with optional whitespace
    (?P<value>.*)             # everything after =
    $                         # end of line
    """,
    re.VERBOSE,
)

_TOML_POSITION_RE = re.compile(r"\(at line (?P<line>\d+), column (?P<column>\d+)\)")


def find_project_root(start: Path | None = None) -> Path:
    """Walk upward from *start* to find the project root.

    Recognised root markers (checked in order):

    * ``pyproject.toml``
    * ``.git`` directory
    * ``setup.py``

    Falls back to *start* (or cwd) when no marker is found.
    """
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        if (directory / "pyproject.toml").exists():
            return directory
        if (directory / ".git").exists():
            return directory
        if (directory / "setup.py").exists():
            return directory
    return current


def discover_env_files(
    project_root: Path | None = None,
    tier: str | None = None,
    *,
    env_prefix: str = "",
    environ: dict[str, str] | None = None,
) -> list[Path]:
    """Return an ordered list of ``.env`` files that exist on disk.

    Load order:

    1. ``.env.base``
    2. ``.env.{tier}`` (if *tier* is provided or ``{env_prefix}TIER`` is set)
    3. ``.env.local``
    4. ``.env``

    Parameters
    ----------
    project_root:
        Directory to search in.  Defaults to :func:`find_project_root`.
    tier:
        Explicit tier name (``"dev"``, ``"staging"``, ``"prod"``, ...).
    env_prefix:
        Prefix of the tier environment variable.
    environ:
        Environment mapping to read the tier from (default ``os.environ``).
    """
    root = (project_root or find_project_root()).resolve()
    env = os.environ if environ is None else environ
    tier = tier or env.get(f"{env_prefix}TIER")

    candidates: list[Path] = [root / ".env.base"]
    if tier:
        candidates.append(root / f".env.{tier}")
    candidates.append(root / ".env.local")
    candidates.append(root / ".env")

    return [p for p in candidates if p.is_file()]


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a single ``.env`` file into a ``{key: value}`` mapping.

    Handles:
    * blank/comment lines
    * ``export VAR=value``
    * quoted values (single or double)
    * inline ``# comments`` outside of quotes

    Lines that do not look like assignments are skipped with a warning.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise MalformedSourceError("dotenv", str(exc), path=path, cause=exc) from exc

    result: dict[str, str] = {}
    for lineno, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        match = _VAR_RE.match(line)
        if match is None:
            logger.warning("dotenv_line_skipped", path=str(path), line=lineno)
            continue
        key = match.group("key")
        value = match.group("value").strip()

        if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
            value = value[1:-1]
        elif " #" in value:
            value = value[: value.index(" #")].rstrip()

        result[key] = value
    return result


def load_env_files(files: list[Path]) -> dict[str, str]:
    """Parse and merge several ``.env`` files.

    Later files override earlier values.  Missing files are skipped.
    """
    merged: dict[str, str] = {}
    for path in files:
        if not path.is_file():
            logger.debug("dotenv_file_missing", path=str(path))
            continue
        merged.update(parse_env_file(path))
    return merged


def read_toml(path: Path, *, source: str = "toml") -> dict[str, Any]:
    """Read and parse a TOML file.

    Raises :class:`MalformedSourceError` naming the file and, for syntax
    errors, the line and column reported by the parser.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise MalformedSourceError(source, str(exc), path=path, cause=exc) from exc
    return parse_toml(text, path=path, source=source)


def parse_toml(text: str, *, path: Path | None = None, source: str = "toml") -> dict[str, Any]:
    """Parse TOML *text*, translating parser errors to :class:`MalformedSourceError`."""
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        line, column = _toml_error_position(exc)
        reason = getattr(exc, "msg", None) or _TOML_POSITION_RE.sub("", str(exc)).strip()
        raise MalformedSourceError(source, reason, path=path, line=line, column=column, cause=exc) from exc


def _toml_error_position(exc: tomllib.TOMLDecodeError) -> tuple[int | None, int | None]:
    line = getattr(exc, "lineno", None)
    column = getattr(exc, "colno", None)
    if line is not None:
        return line, column
    match = _TOML_POSITION_RE.search(str(exc))
    if match is None:
        return None, None
    return int(match.group("line")), int(match.group("column"))


__all__ = [
    "find_project_root",
    "discover_env_files",
    "parse_env_file",
    "load_env_files",
    "read_toml",
    "parse_toml",
]
