#!/usr/bin/env python3
"""
POM Validation Check - Assertions over a Maven build descriptor.

Validation Types:
- DEPENDENCY_EXISTS / DEPENDENCY_NOT_EXISTS
- PLUGIN_EXISTS / PLUGIN_NOT_EXISTS
- PROPERTY_EXISTS / PROPERTY_NOT_EXISTS
- PARENT_EXISTS: declared parent coordinate (version may use `*` wildcards)
- PLUGIN_VERSION: a plugin's declared version equals or exceeds a target

Dependencies are looked up in both `<dependencies>` and
`<dependencyManagement>`, plugins in both `<build><plugins>` and
`<pluginManagement>`. Versions written as `${...}` are resolved through the
POM's own `<properties>` and then through the project's property files.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from lxml import etree

from check_params import Matcher, get_enum, get_list, get_mapping, get_str
from property_resolver import UNRESOLVED, is_unresolved, placeholder_key
from rule_model import Check, CheckConfigError, CheckResult, EvaluationContext
from version_compare import compare_versions
from xml_validation import local_name, parse_xml


logger = logging.getLogger(__name__)

DEFAULT_POM_FILE = 'pom.xml'
DEFAULT_PLUGIN_GROUP = 'org.apache.maven.plugins'


# ============================================================================
# POM model
# ============================================================================

@dataclass(frozen=True)
class Coordinate:
    """Maven coordinate as declared in a POM (version unresolved)."""
    group_id: str
    artifact_id: str
    version: Optional[str] = None
    managed: bool = False
    configured_version: Optional[str] = None

    @property
    def key(self) -> str:
        return f"{self.group_id}:{self.artifact_id}"


def _children(element: Optional[etree._Element], name: str) -> List[etree._Element]:
    if element is None:
        return []
    return [c for c in element if isinstance(c.tag, str) and local_name(c.tag) == name]


def _child(element: Optional[etree._Element], name: str) -> Optional[etree._Element]:
    found = _children(element, name)
    return found[0] if found else None


def _child_text(element: Optional[etree._Element], name: str) -> Optional[str]:
    child = _child(element, name)
    if child is None or child.text is None:
        return None
    return child.text.strip()


def _path(element: Optional[etree._Element], *names: str) -> Optional[etree._Element]:
    for name in names:
        element = _child(element, name)
    return element


@dataclass
class PomModel:
    """The parts of a POM that checks inspect."""
    group_id: Optional[str] = None
    artifact_id: Optional[str] = None
    version: Optional[str] = None
    parent: Optional[Coordinate] = None
    properties: Dict[str, str] = field(default_factory=dict)
    dependencies: List[Coordinate] = field(default_factory=list)
    plugins: List[Coordinate] = field(default_factory=list)

    @classmethod
    def from_tree(cls, tree: etree._ElementTree) -> 'PomModel':
        project = tree.getroot()
        model = cls(
            group_id=_child_text(project, 'groupId'),
            artifact_id=_child_text(project, 'artifactId'),
            version=_child_text(project, 'version'),
        )

        parent = _child(project, 'parent')
        if parent is not None:
            model.parent = Coordinate(
                _child_text(parent, 'groupId') or '',
                _child_text(parent, 'artifactId') or '',
                _child_text(parent, 'version'),
            )
            model.group_id = model.group_id or model.parent.group_id
            model.version = model.version or model.parent.version

        properties = _child(project, 'properties')
        for prop in (properties if properties is not None else []):
            if isinstance(prop.tag, str):
                model.properties[local_name(prop.tag)] = (prop.text or '').strip()

        for managed, container in ((False, _path(project, 'dependencies')),
                                   (True, _path(project, 'dependencyManagement', 'dependencies'))):
            for dep in _children(container, 'dependency'):
                model.dependencies.append(Coordinate(
                    _child_text(dep, 'groupId') or '',
                    _child_text(dep, 'artifactId') or '',
                    _child_text(dep, 'version'),
                    managed,
                ))

        for managed, container in ((False, _path(project, 'build', 'plugins')),
                                   (True, _path(project, 'build', 'pluginManagement', 'plugins'))):
            for plugin in _children(container, 'plugin'):
                model.plugins.append(Coordinate(
                    _child_text(plugin, 'groupId') or DEFAULT_PLUGIN_GROUP,
                    _child_text(plugin, 'artifactId') or '',
                    _child_text(plugin, 'version'),
                    managed,
                    _child_text(_child(plugin, 'configuration'), 'version'),
                ))

        return model

    def find_dependencies(self, group_id: str, artifact_id: str) -> List[Coordinate]:
        return [d for d in self.dependencies if d.group_id == group_id and d.artifact_id == artifact_id]

    def find_plugins(self, group_id: str, artifact_id: str) -> List[Coordinate]:
        return [p for p in self.plugins if p.group_id == group_id and p.artifact_id == artifact_id]


# ============================================================================
# Configuration
# ============================================================================

class PomValidationType(str, Enum):
    DEPENDENCY_EXISTS = 'DEPENDENCY_EXISTS'
    DEPENDENCY_NOT_EXISTS = 'DEPENDENCY_NOT_EXISTS'
    PLUGIN_EXISTS = 'PLUGIN_EXISTS'
    PLUGIN_NOT_EXISTS = 'PLUGIN_NOT_EXISTS'
    PROPERTY_EXISTS = 'PROPERTY_EXISTS'
    PROPERTY_NOT_EXISTS = 'PROPERTY_NOT_EXISTS'
    PARENT_EXISTS = 'PARENT_EXISTS'
    PLUGIN_VERSION = 'PLUGIN_VERSION'


FORBIDDEN_TYPES = frozenset({
    PomValidationType.DEPENDENCY_NOT_EXISTS,
    PomValidationType.PLUGIN_NOT_EXISTS,
    PomValidationType.PROPERTY_NOT_EXISTS,
})


@dataclass(frozen=True)
class ExpectedCoordinate:
    group_id: str
    artifact_id: str
    version: Optional[str] = None

    @property
    def key(self) -> str:
        return f"{self.group_id}:{self.artifact_id}"


def parse_coordinate(key: str, entry: Any, default_group: Optional[str] = None) -> ExpectedCoordinate:
    """
    Parse `"groupId:artifactId[:version]"` or a `{groupId, artifactId, version}` mapping.

    Example:
        >>> parse_coordinate('dependencies', 'org.mule:mule-core')
        ExpectedCoordinate(group_id='org.mule', artifact_id='mule-core', version=None)
    """
    if isinstance(entry, Mapping):
        group_id = get_str(entry, 'groupId', default_group)
        artifact_id = get_str(entry, 'artifactId')
        version = get_str(entry, 'version')
    elif isinstance(entry, str):
        parts = entry.strip().split(':')
        if len(parts) == 1 and default_group:
            parts = [default_group] + parts
        if len(parts) not in (2, 3):
            raise CheckConfigError(key, f"Invalid coordinate '{entry}'. Expected 'groupId:artifactId'")
        group_id, artifact_id = parts[0], parts[1]
        version = parts[2] if len(parts) == 3 else None
    else:
        raise CheckConfigError(key, f"Invalid coordinate in '{key}': {entry!r}")

    if not group_id or not artifact_id:
        raise CheckConfigError(key, f"Entries of '{key}' require groupId and artifactId")
    return ExpectedCoordinate(group_id, artifact_id, version)


def _parse_properties(entries: List[Any]) -> Tuple[Tuple[str, Optional[str]], ...]:
    parsed = []
    for entry in entries:
        if isinstance(entry, Mapping):
            name = get_str(entry, 'name')
            value = get_str(entry, 'value')
        else:
            name, value = str(entry), None
        if not name:
            raise CheckConfigError('properties', "Entries of 'properties' require a 'name'")
        parsed.append((name, value))
    return tuple(parsed)


@dataclass(frozen=True)
class PomValidationConfig:
    """Typed parameters of a POM validation check."""
    validation_type: PomValidationType
    pom_file: str = DEFAULT_POM_FILE
    dependencies: Tuple[ExpectedCoordinate, ...] = ()
    plugins: Tuple[ExpectedCoordinate, ...] = ()
    properties: Tuple[Tuple[str, Optional[str]], ...] = ()
    parent: Optional[ExpectedCoordinate] = None
    plugin: Optional[ExpectedCoordinate] = None
    version_property: Optional[str] = None
    min_version: Optional[str] = None
    expected_version: Optional[str] = None

    @property
    def required_mode(self) -> bool:
        return self.validation_type not in FORBIDDEN_TYPES

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> 'PomValidationConfig':
        if not get_str(params, 'validationType'):
            raise CheckConfigError('validationType', "Missing required parameter 'validationType'")
        validation_type = get_enum(params, 'validationType', PomValidationType, PomValidationType.DEPENDENCY_EXISTS)
        values: Dict[str, Any] = dict(
            validation_type=validation_type,
            pom_file=get_str(params, 'pomFile', DEFAULT_POM_FILE),
        )

        if validation_type in (PomValidationType.DEPENDENCY_EXISTS, PomValidationType.DEPENDENCY_NOT_EXISTS):
            values['dependencies'] = tuple(
                parse_coordinate('dependencies', e) for e in get_list(params, 'dependencies', required=True)
            )

        elif validation_type in (PomValidationType.PLUGIN_EXISTS, PomValidationType.PLUGIN_NOT_EXISTS):
            values['plugins'] = tuple(
                parse_coordinate('plugins', e, DEFAULT_PLUGIN_GROUP)
                for e in get_list(params, 'plugins', required=True)
            )

        elif validation_type in (PomValidationType.PROPERTY_EXISTS, PomValidationType.PROPERTY_NOT_EXISTS):
            values['properties'] = _parse_properties(get_list(params, 'properties', required=True))

        elif validation_type == PomValidationType.PARENT_EXISTS:
            parent = get_mapping(params, 'parent') or params
            coordinate = parse_coordinate('parent', {
                'groupId': parent.get('groupId'),
                'artifactId': parent.get('artifactId'),
                'version': parent.get('version', parent.get('versionPattern')),
            })
            values['parent'] = coordinate

        elif validation_type == PomValidationType.PLUGIN_VERSION:
            plugin = params.get('plugin')
            if plugin is None:
                raise CheckConfigError('plugin', "Missing required parameter 'plugin'")
            values['plugin'] = parse_coordinate('plugin', plugin, DEFAULT_PLUGIN_GROUP)
            values['version_property'] = get_str(params, 'property')
            values['min_version'] = get_str(params, 'minVersion')
            values['expected_version'] = get_str(params, 'expectedVersion') or get_str(params, 'expectedValue')
            if not values['min_version'] and not values['expected_version']:
                raise CheckConfigError('minVersion', "Parameter 'minVersion' or 'expectedVersion' is required")

        return cls(**values)


def wildcard_matches(pattern: str, value: Optional[str]) -> bool:
    """
    Match a version against a pattern where `*` stands for any text.

    Example:
        >>> wildcard_matches("1.*", "1.4.2")
        True
    """
    if value is None:
        return False
    regex = '.*'.join(re.escape(part) for part in pattern.split('*'))
    return re.fullmatch(regex, value) is not None


# ============================================================================
# Check
# ============================================================================

class PomValidationCheck(Matcher):
    """Validate dependencies, plugins, properties and parent of a POM."""
    family = 'pom validation'
    config_class = PomValidationConfig

    def __init__(self, check: Check, config: PomValidationConfig, context: EvaluationContext):
        super().__init__(check, config, context)
        self.model: Optional[PomModel] = None

    def evaluate(self, project_root: Path) -> CheckResult:
        config = self.config
        pom_path = project_root / config.pom_file

        if not pom_path.is_file():
            message = f"Build descriptor not found: {config.pom_file}"
            return self.fail(message) if config.required_mode else self.ok(message)

        try:
            self.model = PomModel.from_tree(parse_xml(pom_path))
        except etree.XMLSyntaxError as e:
            logger.debug("Could not parse %s: %s", pom_path, e)
            return self.fail(f"Error parsing XML file {config.pom_file}: {e}")
        except OSError as e:
            return self.fail(f"Could not read file: {config.pom_file} ({e})")

        handler = {
            PomValidationType.DEPENDENCY_EXISTS: self._dependencies,
            PomValidationType.DEPENDENCY_NOT_EXISTS: self._dependencies,
            PomValidationType.PLUGIN_EXISTS: self._plugins,
            PomValidationType.PLUGIN_NOT_EXISTS: self._plugins,
            PomValidationType.PROPERTY_EXISTS: self._properties,
            PomValidationType.PROPERTY_NOT_EXISTS: self._properties,
            PomValidationType.PARENT_EXISTS: self._parent,
            PomValidationType.PLUGIN_VERSION: self._plugin_version,
        }[config.validation_type]
        return handler()

    def resolve(self, value: Optional[str], seen: Tuple[str, ...] = ()) -> Any:
        """
        Resolve a `${...}` POM value through POM properties, then project properties.

        Returns the value unchanged when it is not a placeholder, UNRESOLVED
        when the key is unknown or refers back to itself.
        """
        if value is None:
            return None
        key = placeholder_key(value)
        if key is None:
            return value
        if key in seen:
            return UNRESOLVED

        builtins = {
            'project.version': self.model.version,
            'project.groupId': self.model.group_id,
            'project.artifactId': self.model.artifact_id,
        }
        if key in self.model.properties:
            return self.resolve(self.model.properties[key], seen + (key,))
        if builtins.get(key) is not None:
            return builtins[key]

        resolver = self.context.property_resolver
        if resolver is not None and resolver.get(key) is not None:
            return resolver.get(key)
        return UNRESOLVED

    def _report(self, failures: List[str], success: str) -> CheckResult:
        if not failures:
            return self.ok(success)
        if len(failures) == 1:
            return self.fail(failures[0])
        return self.fail("Build descriptor validation failures:", failures)

    def _unresolved(self, declared: List[Coordinate]) -> Optional[str]:
        """Failure message for the first declared version whose placeholder cannot be resolved."""
        for coordinate in declared:
            if coordinate.version and is_unresolved(self.resolve(coordinate.version)):
                return f'Property not found in {self.config.pom_file}. Placeholder: "{coordinate.version}"'
        return None

    def _version_matches(self, declared: Coordinate, expected: Optional[str]) -> bool:
        if expected is None:
            return True
        return self.resolve(declared.version) == expected

    def _dependencies(self) -> CheckResult:
        should_exist = self.config.validation_type == PomValidationType.DEPENDENCY_EXISTS
        failures = []

        for expected in self.config.dependencies:
            declared = self.model.find_dependencies(expected.group_id, expected.artifact_id)
            matching = [d for d in declared if self._version_matches(d, expected.version)]
            unresolved = self._unresolved(declared)

            if should_exist and not declared:
                failures.append(f"Required dependency not found: {expected.key}")
            elif should_exist and not matching and unresolved:
                failures.append(unresolved)
            elif should_exist and not matching:
                found = ', '.join(str(self.resolve(d.version)) for d in declared)
                failures.append(
                    f"Dependency {expected.key} has incorrect version. "
                    f"Expected: '{expected.version}', Found: '{found}'"
                )
            elif not should_exist and matching:
                label = expected.key if expected.version is None else f"{expected.key}:{expected.version}"
                failures.append(f"Forbidden dependency found: {label}")

        success = "All required dependencies are present" if should_exist else "No forbidden dependencies found"
        return self._report(failures, success)

    def _plugins(self) -> CheckResult:
        should_exist = self.config.validation_type == PomValidationType.PLUGIN_EXISTS
        failures = []

        for expected in self.config.plugins:
            declared = self.model.find_plugins(expected.group_id, expected.artifact_id)
            matching = [p for p in declared if self._version_matches(p, expected.version)]
            unresolved = self._unresolved(declared)

            if should_exist and not matching and unresolved:
                failures.append(unresolved)
            elif should_exist and not matching:
                failures.append(f"Required plugin not found: {expected.key}")
            elif not should_exist and matching:
                failures.append(f"Forbidden plugin found: {expected.key}")

        success = "All required plugins are present" if should_exist else "No forbidden plugins found"
        return self._report(failures, success)

    def _properties(self) -> CheckResult:
        should_exist = self.config.validation_type == PomValidationType.PROPERTY_EXISTS
        failures = []

        for name, expected in self.config.properties:
            actual = self.model.properties.get(name)
            if should_exist and actual is None:
                failures.append(f"Required property not found: {name}")
            elif not should_exist and actual is not None:
                failures.append(f"Forbidden property found: {name}")
            elif should_exist and expected is not None and actual != expected:
                failures.append(
                    f"Property '{name}' has incorrect value. Expected: '{expected}', Found: '{actual}'"
                )

        success = "All required properties are present" if should_exist else "No forbidden properties found"
        return self._report(failures, success)

    def _parent(self) -> CheckResult:
        expected = self.config.parent
        parent = self.model.parent
        if parent is None:
            return self.fail(f"No <parent> defined in {self.config.pom_file}")

        actual = parent.key + (f":{parent.version}" if parent.version else '')
        matches = (
            parent.group_id == expected.group_id
            and parent.artifact_id == expected.artifact_id
            and (expected.version is None or wildcard_matches(expected.version, parent.version))
        )
        wanted = expected.key + (f":{expected.version}" if expected.version else '')
        if matches:
            return self.ok(f"Correct parent found: {actual}")
        return self.fail(f"Expected parent {wanted}, found {actual}")

    def _plugin_version(self) -> CheckResult:
        config = self.config
        target = config.plugin
        declared = self.model.find_plugins(target.group_id, target.artifact_id)

        raw = None
        if config.version_property:
            raw = self.model.properties.get(config.version_property)
        if raw is None:
            raw = next((p.version or p.configured_version for p in declared
                        if p.version or p.configured_version), None)

        if not declared and raw is None:
            return self.fail(f"Required plugin not found: {target.key}")
        if raw is None:
            return self.fail(f"No version declared for plugin: {target.key}")

        version = self.resolve(raw)
        if is_unresolved(version):
            return self.fail(f'Property not found in {config.pom_file}. Placeholder: "{raw}"')

        if config.expected_version is not None and version != config.expected_version:
            return self.fail(
                f"Plugin {target.key} version mismatch. Expected: '{config.expected_version}', Found: '{version}'"
            )
        if config.min_version is not None and compare_versions(version, config.min_version) < 0:
            return self.fail(
                f"Plugin {target.key} version {version} is below minimum {config.min_version}"
            )
        return self.ok(f"Plugin {target.key} version {version} is compliant")
