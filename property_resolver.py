#!/usr/bin/env python3
"""
Property Resolver - Load `.properties` files and resolve placeholders.

A resolver is built once per project. It eagerly loads every key/value pair of
every `.properties` file under the project's resource directory (later files
overwrite earlier ones for the same key) and is read-only afterwards.

Placeholder forms:
- `${key}`
- `#[p('key')]` / `#[p("key")]` (whitespace tolerated)

An unknown key resolves to the UNRESOLVED sentinel, never to the placeholder text.
"""

import logging
import re
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple, Union

from path_selector import walk_files


logger = logging.getLogger(__name__)

DEFAULT_RESOURCES_DIR = 'src/main/resources'

DOLLAR_PLACEHOLDER = re.compile(r'^\$\{([^}]+)\}$')
FUNCTION_PLACEHOLDER = re.compile(r'''^#\[\s*p\s*\(\s*['"]([^'"]+)['"]\s*\)\s*\]$''')

_ESCAPES = {'t': '\t', 'n': '\n', 'r': '\r', 'f': '\f'}


class _Unresolved:
    """Sentinel for a placeholder whose key is not defined."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return 'UNRESOLVED'

    def __bool__(self) -> bool:
        return False


UNRESOLVED = _Unresolved()


def _logical_lines(text: str) -> Iterator[str]:
    """Join backslash-continued lines, dropping comments and blank lines."""
    pending = ''
    for raw in text.splitlines():
        line = raw.lstrip()
        if not pending and (not line or line[0] in '#!'):
            continue

        trailing = len(line) - len(line.rstrip('\\'))
        if trailing % 2 == 1:
            pending += line[:-1]
            continue

        yield pending + line
        pending = ''

    if pending:
        yield pending


def _unescape(value: str) -> str:
    out = []
    i = 0
    while i < len(value):
        char = value[i]
        if char != '\\' or i + 1 >= len(value):
            out.append(char)
            i += 1
            continue

        nxt = value[i + 1]
        if nxt == 'u' and re.fullmatch(r'[0-9a-fA-F]{4}', value[i + 2:i + 6] or ''):
            out.append(chr(int(value[i + 2:i + 6], 16)))
            i += 6
        else:
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2

    return ''.join(out)


def _split_key_value(line: str) -> Tuple[str, str]:
    """Split at the first unescaped `=`, `:` or whitespace."""
    i = 0
    while i < len(line):
        char = line[i]
        if char == '\\':
            i += 2
            continue
        if char in '=:' or char.isspace():
            break
        i += 1

    key = line[:i]
    rest = line[i:].lstrip(' \t\f')
    if rest and rest[0] in '=:':
        rest = rest[1:].lstrip(' \t\f')

    return _unescape(key), _unescape(rest)


def parse_properties(text: str) -> Dict[str, str]:
    """
    Parse Java-style `.properties` content.

    Supports `=`, `:` and whitespace separators, `#`/`!` comments, backslash
    line continuations and the usual escapes (`\\t`, `\\n`, `\\uXXXX`, ...).

    Args:
        text: File content

    Returns:
        Mapping of keys to values (later duplicates win)

    Example:
        >>> parse_properties("http.port = 8081\\n# comment\\napi.name:orders")
        {'http.port': '8081', 'api.name': 'orders'}
    """
    properties = {}
    for line in _logical_lines(text):
        key, value = _split_key_value(line)
        if key:
            properties[key] = value
    return properties


def load_properties_file(path: Path) -> Dict[str, str]:
    """Read and parse a single properties file (ISO-8859-1 tolerant)."""
    raw = path.read_bytes()
    try:
        text = raw.decode('utf-8')
    except UnicodeDecodeError:
        text = raw.decode('latin-1')
    return parse_properties(text)


def placeholder_key(value: str) -> Optional[str]:
    """
    Extract the referenced key when the whole value is a placeholder.

    Example:
        >>> placeholder_key("${db.host}")
        'db.host'
        >>> placeholder_key("#[p('db.host')]")
        'db.host'
        >>> placeholder_key("localhost") is None
        True
    """
    stripped = value.strip()
    for pattern in (DOLLAR_PLACEHOLDER, FUNCTION_PLACEHOLDER):
        match = pattern.match(stripped)
        if match:
            return match.group(1)
    return None


class PropertyResolver:
    """
    Read-only store of project properties with placeholder resolution.

    Attributes:
        project_root: Root directory of the project
        resources_dir: Directory scanned for `.properties` files
        sources: Files that were loaded, in load order
    """

    def __init__(self, project_root: Path, resources_dir: str = DEFAULT_RESOURCES_DIR,
                 properties: Optional[Dict[str, str]] = None):
        """
        Load every `.properties` file under the resource directory.

        Args:
            project_root: Root directory of the project
            resources_dir: Resource directory relative to the project root
            properties: Pre-loaded properties (used instead of scanning when given)
        """
        self.project_root = Path(project_root)
        self.resources_dir = self.project_root / resources_dir
        self.sources = []
        self._properties: Dict[str, str] = {}

        if properties is not None:
            self._properties.update(properties)
            return

        for path in walk_files(self.resources_dir):
            if not path.name.lower().endswith('.properties'):
                continue
            try:
                self._properties.update(load_properties_file(path))
                self.sources.append(path)
            except OSError as e:
                logger.warning("Could not load property file %s: %s", path, e)

    def get(self, key: str) -> Optional[str]:
        return self._properties.get(key)

    def __contains__(self, key: str) -> bool:
        return key in self._properties

    def __len__(self) -> int:
        return len(self._properties)

    def resolve(self, value: Optional[str]) -> Union[str, None, _Unresolved]:
        """
        Resolve a value that may be a property placeholder.

        Args:
            value: Raw value, e.g. an XML attribute value

        Returns:
            - the stored value when `value` is a placeholder for a known key
            - UNRESOLVED when `value` is a placeholder for an unknown key
            - `value` unchanged when it is not a placeholder
        """
        if value is None:
            return None

        key = placeholder_key(value)
        if key is None:
            return value

        resolved = self._properties.get(key)
        if resolved is None:
            return UNRESOLVED
        return resolved


def is_unresolved(value: object) -> bool:
    return value is UNRESOLVED
