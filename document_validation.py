#!/usr/bin/env python3
"""
Document Validation Check - Field assertions over JSON/YAML documents.

Criteria (any combination):
- requiredFields (or requiredStrings): field -> exact value
- requiredElements: fields that must exist
- minVersions: field -> minimum version (numeric, segment-wise)
- forbiddenElements: fields that must not exist
- forbiddenFieldValues: [{field, forbiddenValue}]

Field names may be dotted paths into nested mappings. A check with only
forbidden criteria passes when no document matches the file pattern; any
required criterion makes a missing document a failure.

Example params (mule-artifact.json):
    filePattern: mule-artifact.json
    minVersions: {minMuleVersion: "4.4.0"}
    requiredFields: {javaSpecificationVersions: "17"}
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Tuple

import yaml

from check_params import Matcher, first_key, get_list, get_mapping, get_str, get_str_list, read_text
from path_selector import PathSelector
from rule_model import CheckConfigError, CheckResult
from version_compare import compare_versions


logger = logging.getLogger(__name__)

YAML_EXTENSIONS = ('.yaml', '.yml')

_MISSING = object()


def lookup(document: Any, field: str) -> Any:
    """
    Find a field by literal key or dotted path.

    Returns:
        The value, or a private sentinel when absent (see `has_field`)

    Example:
        >>> lookup({'a': {'b': 1}}, 'a.b')
        1
    """
    if not isinstance(document, Mapping):
        return _MISSING
    if field in document:
        return document[field]

    current = document
    for part in field.split('.'):
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


def has_field(document: Any, field: str) -> bool:
    return lookup(document, field) is not _MISSING


def render_scalar(value: Any) -> str:
    """
    Text form used to compare a document value with a configured string.

    Example:
        >>> render_scalar(True), render_scalar(17), render_scalar(["17"])
        ('true', '17', '["17"]')
    """
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if value is None:
        return 'null'
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def load_document(path: Path) -> Any:
    """
    Parse a JSON or YAML document based on its extension.

    Raises:
        OSError, ValueError, yaml.YAMLError
    """
    content = read_text(path)
    if path.suffix.lower() in YAML_EXTENSIONS:
        return yaml.safe_load(content)
    return json.loads(content)


def _string_mapping(params: Mapping[str, Any], *keys: str) -> Tuple[Tuple[str, str], ...]:
    key = first_key(params, *keys) or keys[0]
    return tuple((str(k), render_scalar(v)) for k, v in get_mapping(params, key).items())


def _forbidden_values(params: Mapping[str, Any]) -> Tuple[Tuple[str, str], ...]:
    pairs = []
    for entry in get_list(params, 'forbiddenFieldValues'):
        if not isinstance(entry, Mapping) or get_str(entry, 'field') is None or 'forbiddenValue' not in entry:
            raise CheckConfigError(
                'forbiddenFieldValues', "Entries of 'forbiddenFieldValues' require 'field' and 'forbiddenValue'"
            )
        pairs.append((get_str(entry, 'field'), render_scalar(entry['forbiddenValue'])))
    return tuple(pairs)


@dataclass(frozen=True)
class DocumentValidationConfig:
    """Typed parameters of a document validation check."""
    file_pattern: str
    required_fields: Tuple[Tuple[str, str], ...] = ()
    required_elements: Tuple[str, ...] = ()
    min_versions: Tuple[Tuple[str, str], ...] = ()
    forbidden_elements: Tuple[str, ...] = ()
    forbidden_field_values: Tuple[Tuple[str, str], ...] = ()

    @property
    def required_mode(self) -> bool:
        return bool(self.required_fields or self.required_elements or self.min_versions)

    @property
    def selector(self) -> PathSelector:
        """A bare file name matches at any depth."""
        pattern = self.file_pattern
        if '/' not in pattern and '*' not in pattern and '?' not in pattern:
            pattern = f"**/{pattern}"
        return PathSelector([pattern])

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> 'DocumentValidationConfig':
        config = cls(
            file_pattern=get_str(params, 'filePattern', required=True),
            required_fields=_string_mapping(params, 'requiredFields', 'requiredStrings'),
            required_elements=tuple(get_str_list(params, 'requiredElements')),
            min_versions=_string_mapping(params, 'minVersions'),
            forbidden_elements=tuple(get_str_list(params, 'forbiddenElements')),
            forbidden_field_values=_forbidden_values(params),
        )
        if not (config.required_mode or config.forbidden_elements or config.forbidden_field_values):
            raise CheckConfigError(
                'requiredFields',
                "At least one of 'requiredFields', 'requiredElements', 'minVersions', "
                "'forbiddenElements' or 'forbiddenFieldValues' is required",
            )
        return config


class DocumentValidationCheck(Matcher):
    """Validate fields of JSON/YAML documents."""
    family = 'document validation'
    config_class = DocumentValidationConfig

    def evaluate(self, project_root: Path) -> CheckResult:
        config = self.config
        files = config.selector.select(project_root)

        if not files:
            message = f"No files found matching pattern: {config.file_pattern}"
            return self.fail(message) if config.required_mode else self.ok(message)

        failures = []
        for path in files:
            rel = self.relative(path, project_root)
            try:
                document = load_document(path)
            except OSError as e:
                failures.append(f"Could not read file: {rel} ({e})")
                continue
            except (ValueError, yaml.YAMLError) as e:
                logger.debug("Could not parse %s: %s", path, e)
                failures.append(f"Error parsing document {rel}: {e}")
                continue

            failures.extend(self._required(document, rel))
            failures.extend(self._forbidden(document, rel))

        if failures:
            header = "Document validation failures:" if config.required_mode else "Forbidden elements found:"
            return self.fail(header, failures)
        if config.required_mode:
            return self.ok("All required elements found")
        return self.ok("No forbidden elements found")

    def _required(self, document: Any, rel: str) -> List[str]:
        config = self.config
        failures = []

        for field, minimum in config.min_versions:
            value = lookup(document, field)
            if value is _MISSING:
                failures.append(f"Field '{field}' missing in {rel}")
            elif compare_versions(render_scalar(value), minimum) < 0:
                failures.append(
                    f"Field '{field}' version too low in {rel}: expected >= {minimum}, got {render_scalar(value)}"
                )

        for field, expected in config.required_fields:
            value = lookup(document, field)
            if value is _MISSING:
                failures.append(f"Field '{field}' missing in {rel}")
            elif render_scalar(value) != expected:
                failures.append(
                    f"Field '{field}' has wrong value in {rel}: expected '{expected}', got '{render_scalar(value)}'"
                )

        for field in config.required_elements:
            if not has_field(document, field):
                failures.append(f"Element '{field}' missing in {rel}")

        return failures

    def _forbidden(self, document: Any, rel: str) -> List[str]:
        config = self.config
        failures = [
            f"Forbidden element '{field}' found in {rel}"
            for field in config.forbidden_elements
            if has_field(document, field)
        ]
        for field, forbidden in config.forbidden_field_values:
            value = lookup(document, field)
            if value is not _MISSING and render_scalar(value) == forbidden:
                failures.append(f"Forbidden value '{forbidden}' found for field '{field}' in {rel}")
        return failures
