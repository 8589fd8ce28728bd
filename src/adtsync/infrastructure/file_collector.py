"""
adtsync.infrastructure.file_collector - Resource Selection
============================================================

Expands the configured glob patterns into the list of files to upload.

Rules:
    - Patterns are relative to the base directory (``resources.cwd``);
      empty or absolute patterns are rejected.
    - Patterns are applied in order; a pattern starting with "!" removes
      the files it matches from the files collected so far.
    - Only regular files are collected, dot files included.
    - Paths are returned relative to the base directory in POSIX form,
      in first-match order (sorted within each pattern), without
      duplicates.

Usage:
    >>> collect_files("dist", ["**/*", "!**/*.map"])
    ['Component.js', 'index.html', 'i18n/i18n.properties']
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence, Union

import structlog

from adtsync.core.exceptions import ConfigurationError


logger = structlog.get_logger()


def collect_files(base_dir: Union[str, Path], patterns: Sequence[str]) -> list[str]:
    """Collect the files matching the patterns below base_dir.

    Args:
        base_dir: Base directory the patterns are evaluated in.
        patterns: Glob patterns; "!"-prefixed patterns exclude.

    Returns:
        POSIX paths relative to base_dir.

    Raises:
        ConfigurationError: If base_dir is not an existing directory, no
            pattern is given, or a pattern is empty, absolute or malformed.
    """
    base = Path(base_dir)
    if not base.is_dir():
        raise ConfigurationError(
            message=f'"resources.cwd" is not a directory: {base}',
            error_code="INVALID_RESOURCES",
            details={"cwd": str(base)},
        )
    if not patterns:
        raise ConfigurationError(
            message='"resources.src" must contain at least one pattern',
            error_code="INVALID_RESOURCES",
        )

    selected: dict[str, None] = {}
    for pattern in patterns:
        negated = pattern.startswith("!")
        glob = pattern[1:] if negated else pattern
        if not glob or Path(glob).is_absolute():
            raise ConfigurationError(
                message=f'"resources.src" patterns must be non-empty and relative: {pattern!r}',
                error_code="INVALID_RESOURCES",
                details={"pattern": pattern},
            )
        try:
            matches = sorted(
                p.relative_to(base).as_posix()
                for p in base.glob(glob)
                if p.is_file()
            )
        except (NotImplementedError, ValueError) as e:
            raise ConfigurationError(
                message=f'Invalid "resources.src" pattern {pattern!r}: {e}',
                error_code="INVALID_RESOURCES",
                details={"pattern": pattern},
            ) from e
        for match in matches:
            if negated:
                selected.pop(match, None)
            else:
                selected.setdefault(match)

    files = list(selected)
    logger.debug("files_collected", cwd=str(base), count=len(files))
    return files
