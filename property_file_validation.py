#!/usr/bin/env python3
"""
Property File Validation Check - Key/value assertions in environment files.

Only environment-scoped files are inspected: a file qualifies when its base
name is one of the `environments` labels and its extension is one of
`fileExtensions` (e.g. `dev.properties`, `prod.policy`).

Parse modes:
- PROPERTIES_FORMAT: `propertyNames` must be keys of each file; `properties`
  entries additionally restrict the value to a set of allowed values
- SUBSTRING_SEARCH: `propertyNames` (or `tokens`) must occur as text
- REGEX_PATTERN: each `nameRegex=valueRegex` pattern must fully match the
  name and value of at least one property
- CLIENT_ID_MAP / SECURE_PROPERTY: at least one line across the files must
  match a fixed pattern for authorization client-id maps or encrypted
  `secure::` properties
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple

from check_params import Matcher, get_bool, get_enum, get_list, get_str, get_str_list, read_text
from path_selector import select_environment_files
from property_resolver import parse_properties
from rule_model import CheckConfigError, CheckResult, PropertyConfig
from token_matcher import contains_substring


logger = logging.getLogger(__name__)


class ParseMode(str, Enum):
    PROPERTIES_FORMAT = 'PROPERTIES_FORMAT'
    SUBSTRING_SEARCH = 'SUBSTRING_SEARCH'
    REGEX_PATTERN = 'REGEX_PATTERN'
    CLIENT_ID_MAP = 'CLIENT_ID_MAP'
    SECURE_PROPERTY = 'SECURE_PROPERTY'


LINE_PATTERNS = {
    ParseMode.CLIENT_ID_MAP: (
        re.compile(
            r'truist\.authz\.policy\.clientIDmap\.(GET|POST|PUT|DELETE|PATCH)'
            r':[^=]+=([^:;]+:[^:;]+)(;[^:;]+:[^:;]+)*;?'
        ),
        'truist.authz.policy.clientIDmap.<METHOD>:/<path>=<id>:<name>;<id>:<name>;...',
    ),
    ParseMode.SECURE_PROPERTY: (
        re.compile(r'secure::.+=\^\{.+=\}'),
        'secure::<name>=^{<encrypted-value>=}',
    ),
}


def _optional_bool(entry: Mapping[str, Any], key: str) -> Optional[bool]:
    if entry.get(key) is None:
        return None
    return get_bool(entry, key, True)


def parse_property_config(entry: Any) -> PropertyConfig:
    """
    Build a PropertyConfig from a rule-set mapping.

    Example:
        >>> parse_property_config({'name': 'log.level', 'values': ['INFO', 'WARN']})
        PropertyConfig(name='log.level', values=('INFO', 'WARN'), case_sensitive_name=None, case_sensitive_value=None)
    """
    if not isinstance(entry, Mapping):
        raise CheckConfigError('properties', "Entries of 'properties' must be mappings")
    name = get_str(entry, 'name')
    if not name:
        raise CheckConfigError('properties', "Entries of 'properties' require a 'name'")
    return PropertyConfig(
        name=name,
        values=tuple(get_str_list(entry, 'values', 'value')),
        case_sensitive_name=_optional_bool(entry, 'caseSensitiveName'),
        case_sensitive_value=_optional_bool(entry, 'caseSensitiveValue'),
    )


def parse_regex_pattern(pattern: str) -> Tuple[re.Pattern, re.Pattern]:
    """Split `nameRegex=valueRegex` and compile both halves."""
    if '=' not in pattern:
        raise CheckConfigError(
            'regexPatterns', f"Invalid regex pattern format '{pattern}'. Expected 'namePattern=valuePattern'"
        )
    name_part, value_part = pattern.split('=', 1)
    try:
        return re.compile(name_part.strip()), re.compile(value_part.strip())
    except re.error as e:
        raise CheckConfigError('regexPatterns', f"Invalid regex pattern '{pattern}': {e}")


@dataclass(frozen=True)
class PropertyFileConfig:
    """Typed parameters of a property file check."""
    file_extensions: Tuple[str, ...]
    environments: Tuple[str, ...]
    parse_mode: ParseMode = ParseMode.PROPERTIES_FORMAT
    property_names: Tuple[str, ...] = ()
    properties: Tuple[PropertyConfig, ...] = ()
    regex_patterns: Tuple[str, ...] = ()
    delimiter: str = '='
    case_sensitive_names: bool = True
    case_sensitive_values: bool = True
    case_sensitive: bool = True

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> 'PropertyFileConfig':
        parse_mode = get_enum(params, 'parseMode', ParseMode, ParseMode.PROPERTIES_FORMAT)
        if parse_mode == ParseMode.CLIENT_ID_MAP and get_str(params, 'validationType', '').upper() == 'SECURE':
            parse_mode = ParseMode.SECURE_PROPERTY
        config = cls(
            file_extensions=tuple(get_str_list(params, 'fileExtensions', required=True)),
            environments=tuple(get_str_list(params, 'environments', required=True)),
            parse_mode=parse_mode,
            property_names=tuple(get_str_list(params, 'propertyNames', 'tokens')),
            properties=tuple(parse_property_config(e) for e in get_list(params, 'properties')),
            regex_patterns=tuple(get_str_list(params, 'regexPatterns')),
            delimiter=get_str(params, 'delimiter', '='),
            case_sensitive_names=get_bool(params, 'caseSensitiveNames', True),
            case_sensitive_values=get_bool(params, 'caseSensitiveValues', True),
            case_sensitive=get_bool(params, 'caseSensitive', True),
        )

        if parse_mode == ParseMode.REGEX_PATTERN:
            if not config.regex_patterns:
                raise CheckConfigError(
                    'regexPatterns', "Parameter 'regexPatterns' is required for REGEX_PATTERN mode"
                )
            for pattern in config.regex_patterns:
                parse_regex_pattern(pattern)
        elif parse_mode == ParseMode.SUBSTRING_SEARCH:
            if not config.property_names:
                raise CheckConfigError('propertyNames', "Missing required parameter 'propertyNames'")
        elif parse_mode == ParseMode.PROPERTIES_FORMAT and not (config.property_names or config.properties):
            raise CheckConfigError('propertyNames', "Parameter 'propertyNames' or 'properties' is required")

        return config


def _same(actual: str, expected: str, case_sensitive: bool) -> bool:
    if case_sensitive:
        return actual == expected
    return actual.lower() == expected.lower()


def delimited_pairs(content: str, delimiter: str) -> List[Tuple[str, str]]:
    """
    Name/value pairs of every non-comment line split at the first delimiter.

    Example:
        >>> delimited_pairs("a = 1\\n# c\\nb=2", "=")
        [('a', '1'), ('b', '2')]
    """
    pairs = []
    for line in content.splitlines():
        line = line.strip()
        if not line or line[0] in '#!':
            continue
        index = line.find(delimiter)
        if index > 0:
            pairs.append((line[:index].strip(), line[index + len(delimiter):].strip()))
    return pairs


class PropertyFileCheck(Matcher):
    """Validate properties in environment-scoped configuration files."""
    family = 'property file'
    config_class = PropertyFileConfig

    def evaluate(self, project_root: Path) -> CheckResult:
        config = self.config
        files = select_environment_files(project_root, config.environments, config.file_extensions)

        if not files:
            return self.fail(
                f"No environment files found for environments [{', '.join(config.environments)}] "
                f"with extensions [{', '.join(config.file_extensions)}]"
            )

        if config.parse_mode in LINE_PATTERNS:
            return self._line_pattern(files, project_root)

        failures = []
        for path in files:
            rel = self.relative(path, project_root)
            try:
                content = read_text(path)
            except OSError as e:
                logger.debug("Could not read %s: %s", path, e)
                failures.append(f"Could not read file: {rel} (Error: {e})")
                continue

            if config.parse_mode == ParseMode.REGEX_PATTERN:
                failures.extend(self._regex_patterns(content, rel))
            elif config.parse_mode == ParseMode.SUBSTRING_SEARCH:
                failures.extend(self._substrings(content, rel))
            else:
                failures.extend(self._property_names(content, rel))
                failures.extend(self._property_values(content, rel))

        if failures:
            return self.fail("Validation failures:", failures)

        if config.parse_mode == ParseMode.REGEX_PATTERN:
            return self.ok("All regex patterns matched successfully")
        if config.properties and not config.property_names:
            return self.ok("All required properties found with correct values")
        names = list(config.property_names) + [p.name for p in config.properties]
        return self.ok(f"Required properties ({', '.join(names)}) found in all relevant files")

    def _property_names(self, content: str, rel: str) -> List[str]:
        keys = list(parse_properties(content))
        sensitive = self.config.case_sensitive_names
        return [
            f"Property '{name}' not found in file: {rel}"
            for name in self.config.property_names
            if not any(_same(key, name, sensitive) for key in keys)
        ]

    def _property_values(self, content: str, rel: str) -> List[str]:
        config = self.config
        if not config.properties:
            return []

        pairs = delimited_pairs(content, config.delimiter)
        failures = []
        for prop in config.properties:
            name_sensitive = prop.name_sensitive(config.case_sensitive_names)
            value_sensitive = prop.value_sensitive(config.case_sensitive_values)

            values = [v for k, v in pairs if _same(k, prop.name, name_sensitive)]
            if not values:
                failures.append(f"Property '{prop.name}' not found in file: {rel}")
            elif prop.values and not any(
                _same(v, expected, value_sensitive) for v in values for expected in prop.values
            ):
                expected_list = '[' + ', '.join(prop.values) + ']'
                failures.append(
                    f"Property '{prop.name}' found but value does not match expected values "
                    f"{expected_list} in file: {rel}"
                )
        return failures

    def _substrings(self, content: str, rel: str) -> List[str]:
        return [
            f"Property '{name}' not found in file: {rel}"
            for name in self.config.property_names
            if not contains_substring(content, name, self.config.case_sensitive)
        ]

    def _regex_patterns(self, content: str, rel: str) -> List[str]:
        entries = parse_properties(content).items()
        failures = []
        for pattern in self.config.regex_patterns:
            name_regex, value_regex = parse_regex_pattern(pattern)
            if not any(name_regex.fullmatch(k) and value_regex.fullmatch(v.strip()) for k, v in entries):
                failures.append(f"Pattern '{pattern}' not matched in file: {rel}")
        return failures

    def _line_pattern(self, files: List[Path], project_root: Path) -> CheckResult:
        pattern, shape = LINE_PATTERNS[self.config.parse_mode]
        mode = self.config.parse_mode.value
        scanned = []
        found = False

        for path in files:
            rel = self.relative(path, project_root)
            scanned.append(rel)
            try:
                content = read_text(path)
            except OSError as e:
                return self.fail(f"Could not read file: {rel} (Error: {e})")
            for line in content.splitlines():
                line = line.strip()
                if line and line[0] not in '#!' and pattern.fullmatch(line):
                    found = True

        if not found:
            return self.fail(
                f"No valid properties matching the {mode} pattern found in environment files.\n"
                f"Files scanned: {', '.join(scanned)}\n"
                f"Expected pattern: {shape}"
            )
        plural = '' if len(scanned) == 1 else 's'
        return self.ok(f"All {mode} properties match the required pattern (validated {len(scanned)} file{plural})")
