"""
File Manager for agency workflows.

Filesystem gateway used by the metadata store and the workflows:
existence checks, text reads and writes, symlink target lookup, glob
expansion relative to the repository root.
"""

import logging
import os
import re
from pathlib import Path
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

_GLOB_CHARS = re.compile(r"[*?\[\]]")


def is_glob_pattern(value: str) -> bool:
    """Check whether a path contains glob wildcards (``*``, ``**``, ``?``, ``[...]``)."""
    return bool(_GLOB_CHARS.search(value))


def is_outside_root(value: str) -> bool:
    """Check whether a path is absolute or climbs out through a ``..`` segment."""
    if os.path.isabs(value) or value.startswith(("/", "\\")):
        return True
    return ".." in re.split(r"[\\/]", value)


class FileManager:
    """
    Manages filesystem access for agency workflows.

    Paths given to the read/write helpers are absolute or relative to the
    process working directory; glob expansion is always relative to the
    root it is given.
    """

    def exists(self, path: str) -> bool:
        return os.path.lexists(path)

    def read_file(self, path: str) -> str:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    def write_file(self, path: str, content: str) -> None:
        """
        Write text content, creating parent directories.

        Raises:
            OSError: If the file cannot be written
        """
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)

    def read_symlink_target(self, path: str) -> Optional[str]:
        """
        Return the raw target of a symlink.

        Returns:
            The link target as stored, or None if ``path`` is not a symlink
            or cannot be read
        """
        try:
            if not os.path.islink(path):
                return None
            return os.readlink(path)
        except OSError:
            return None

    def expand_globs(self, patterns: Iterable[str], root: str) -> list[str]:
        """
        Expand glob patterns to repository-relative file paths.

        ``**`` matches recursively. Non-glob entries pass through unchanged
        even when the path does not exist. Results are deduplicated in
        first-seen order and never include anything under ``.git/``.
        Absolute entries, entries with a ``..`` segment and patterns that
        cannot be expanded are skipped with a warning.

        Args:
            patterns: File paths or glob patterns
            root: Directory the patterns are relative to

        Returns:
            List of POSIX-style relative paths
        """
        files: dict[str, None] = {}
        root_path = Path(root)

        for pattern in patterns:
            if is_outside_root(pattern):
                logger.warning(f"Ignoring injected file outside the repository: {pattern}")
                continue

            if not is_glob_pattern(pattern):
                files[pattern] = None
                continue

            if pattern.endswith("**"):
                # a trailing ** only yields directories before Python 3.13
                pattern = f"{pattern}/*"

            try:
                matches = sorted(root_path.glob(pattern))
            except (OSError, ValueError, NotImplementedError) as e:
                logger.warning(f"Skipping pattern {pattern}: {e}")
                continue
            if not matches:
                logger.debug(f"Pattern {pattern} matched no files")
            for match in matches:
                if not (match.is_file() or match.is_symlink()):
                    continue
                relative = os.path.relpath(match, root_path).replace(os.sep, "/")
                if relative.startswith("../"):
                    continue
                if relative == ".git" or relative.startswith(".git/"):
                    continue
                files[relative] = None

        return list(files)
