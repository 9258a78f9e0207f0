#!/usr/bin/env python3
"""
Path Selector - Glob-based file selection over a project tree.

Every check family selects its input files through this module, so there is
exactly one glob dialect in the system.

Glob syntax (anchored to the full project-relative POSIX path):
- `**`  matches any number of path segments, including zero
- `*`   matches any run of characters within one segment
- `?`   matches exactly one character within one segment
- everything else is literal

Key Features:
- Translate glob patterns to compiled regular expressions (cached)
- Enumerate regular files matching inclusion patterns and no exclusion pattern
- Route environment-scoped configuration files (`<env>.<ext>`)
- Skip build output and VCS metadata directories
"""

import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Iterable, List, Optional, Sequence


# Directory names never descended into while scanning a project
IGNORED_DIRECTORIES = frozenset({
    'target',
    'bin',
    'build',
    '.git',
    '.idea',
    'node_modules',
})


@lru_cache(maxsize=512)
def glob_to_regex(pattern: str) -> re.Pattern:
    """
    Translate a glob pattern into a compiled, fully anchored regular expression.

    Args:
        pattern: Glob pattern using `**`, `*` and `?` wildcards

    Returns:
        Compiled pattern to be used with `fullmatch` against relative paths

    Example:
        >>> bool(glob_to_regex("**/*.xml").fullmatch("a/b/c.xml"))
        True
        >>> bool(glob_to_regex("**/*.xml").fullmatch("c.xml"))
        True
        >>> bool(glob_to_regex("**/*.xml").fullmatch("c.txt"))
        False
    """
    pattern = pattern.replace('\\', '/')
    parts = []
    i = 0
    length = len(pattern)

    while i < length:
        char = pattern[i]

        if char == '*':
            if pattern.startswith('**', i):
                # `**/` may consume zero or more whole segments
                if pattern.startswith('**/', i):
                    parts.append('(?:.*/)?')
                    i += 3
                else:
                    parts.append('.*')
                    i += 2
            else:
                parts.append('[^/]*')
                i += 1
        elif char == '?':
            parts.append('[^/]')
            i += 1
        else:
            parts.append(re.escape(char))
            i += 1

    return re.compile(''.join(parts), re.DOTALL)


def matches_glob(relative_path: str, pattern: str) -> bool:
    """Check whether a project-relative POSIX path matches a glob pattern."""
    return glob_to_regex(pattern).fullmatch(relative_path) is not None


def to_relative(path: Path, project_root: Path) -> str:
    """Project-relative POSIX path used for matching and in messages."""
    try:
        return path.relative_to(project_root).as_posix()
    except ValueError:
        return path.as_posix()


class PathSelector:
    """
    Predicate over project-relative paths built from inclusion and exclusion globs.

    An empty inclusion set matches nothing.
    """

    def __init__(self, include: Iterable[str], exclude: Optional[Iterable[str]] = None):
        self.include = tuple(include)
        self.exclude = tuple(exclude or ())
        self._include_regexes = [glob_to_regex(p) for p in self.include]
        self._exclude_regexes = [glob_to_regex(p) for p in self.exclude]

    def matches(self, relative_path: str) -> bool:
        """
        Check a relative path against the inclusion and exclusion patterns.

        Args:
            relative_path: POSIX path relative to the project root

        Returns:
            True if at least one inclusion pattern and no exclusion pattern matches
        """
        if not any(r.fullmatch(relative_path) for r in self._include_regexes):
            return False
        return not any(r.fullmatch(relative_path) for r in self._exclude_regexes)

    def select(self, project_root: Path) -> List[Path]:
        """
        Enumerate regular files under the project root accepted by this selector.

        Args:
            project_root: Root directory of the project

        Returns:
            Sorted list of absolute file paths
        """
        if not self.include:
            return []
        return [
            path for path in walk_files(project_root)
            if self.matches(to_relative(path, project_root))
        ]

    def describe(self) -> str:
        """Human-readable pattern list for messages."""
        return ', '.join(self.include)


def walk_files(project_root: Path) -> List[Path]:
    """
    List all regular files under a directory, skipping ignored directories.

    Unreadable directories are skipped rather than aborting the walk.

    Args:
        project_root: Directory to walk

    Returns:
        Sorted list of file paths (deterministic order per run)
    """
    project_root = Path(project_root)
    if not project_root.is_dir():
        return []

    files = []
    for dirpath, dirnames, filenames in os.walk(project_root):
        dirnames[:] = sorted(d for d in dirnames if d not in IGNORED_DIRECTORIES)
        for filename in filenames:
            path = Path(dirpath) / filename
            if path.is_file():
                files.append(path)

    return sorted(files)


def select_files(project_root: Path, include: Sequence[str], exclude: Optional[Sequence[str]] = None) -> List[Path]:
    """Convenience wrapper: files under project_root matching include but not exclude."""
    return PathSelector(include, exclude).select(project_root)


def split_environment_name(file_name: str) -> tuple[str, str]:
    """
    Split a file name into base name and extension at the last dot.

    Example:
        >>> split_environment_name("dev.properties")
        ('dev', '.properties')
        >>> split_environment_name("Makefile")
        ('Makefile', '')
    """
    if '.' not in file_name:
        return file_name, ''
    index = file_name.rindex('.')
    return file_name[:index], file_name[index:]


def is_environment_file(path: Path, environments: Sequence[str], extensions: Sequence[str]) -> bool:
    """
    Check whether a file is an environment-scoped configuration file.

    A file qualifies when its base name equals one of the environment labels and
    its extension is one of the given extensions (compared with the leading dot).
    """
    base_name, extension = split_environment_name(path.name)
    normalized = {e if e.startswith('.') else f'.{e}' for e in extensions}
    return base_name in environments and extension in normalized


def select_environment_files(project_root: Path, environments: Sequence[str], extensions: Sequence[str]) -> List[Path]:
    """Environment-scoped configuration files anywhere under the project root."""
    return [
        path for path in walk_files(project_root)
        if is_environment_file(path, environments, extensions)
    ]


if __name__ == '__main__':
    import sys

    if len(sys.argv) < 3:
        print("Usage: path_selector.py <project_root> <glob> [<glob> ...]")
        sys.exit(1)

    root = Path(sys.argv[1])
    for match in select_files(root, sys.argv[2:]):
        print(to_relative(match, root))
