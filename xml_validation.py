#!/usr/bin/env python3
"""
XML Validation Check - Structural assertions over markup files.

Validation Types:
- EXISTS: each XPath expression must match in at least one file
- NOT_EXISTS: no XPath expression may match in any file
- ATTRIBUTE_VALUE: nodes selected by an XPath must carry an expected value,
  optionally after property placeholder resolution
- ATTRIBUTE_EXISTS: every `elementName` element must carry `requiredAttribute`
- FORBIDDEN_VALUE: no `elementName` element may contain a forbidden value
- FORBIDDEN_ATTRIBUTE: no listed element may carry a listed attribute
- ELEMENT_CONTENT_REQUIRED: an element instance must contain all required tokens
- ELEMENT_CONTENT_FORBIDDEN: no element instance may contain a forbidden token

Files are parsed with lxml without network access, DTD loading or entity
expansion. XPath prefixes resolve against the namespaces declared on each
document's root element plus an optional `namespaces` parameter.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from lxml import etree

from check_params import (
    Matcher, get_bool, get_enum, get_list, get_mapping, get_str, get_str_list,
)
from path_selector import PathSelector
from property_resolver import PropertyResolver, is_unresolved
from rule_model import CheckConfigError, CheckResult
from token_matcher import MatchMode, contains_token


logger = logging.getLogger(__name__)

DEFAULT_FILE_PATTERN = 'src/main/mule/**/*.xml'


def make_parser() -> etree.XMLParser:
    """XML parser that never touches the network or expands entities."""
    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        load_dtd=False,
        recover=False,
        remove_comments=True,
    )


def parse_xml(path: Path) -> etree._ElementTree:
    """
    Parse an XML file.

    Raises:
        OSError: File cannot be read
        etree.XMLSyntaxError: File is not well-formed
    """
    return etree.parse(str(path), make_parser())


def local_name(tag: str) -> str:
    """Strip a `{namespace}` prefix from a Clark-notation tag or attribute name."""
    return tag.rsplit('}', 1)[-1] if tag.startswith('{') else tag


def element_matches(element: etree._Element, name: str) -> bool:
    """
    Check whether an element has the given name.

    A bare name matches in any namespace; `prefix:name` also requires the
    element's prefix to match.
    """
    if not isinstance(element.tag, str):
        return False
    if ':' in name:
        prefix, local = name.split(':', 1)
        return element.prefix == prefix and local_name(element.tag) == local
    return local_name(element.tag) == name


def iter_elements(tree: etree._ElementTree, name: str) -> Iterator[etree._Element]:
    for element in tree.getroot().iter():
        if element_matches(element, name):
            yield element


def element_text(element: etree._Element) -> str:
    return ''.join(element.itertext())


def node_value(node: Any) -> str:
    """String value of an XPath result node (attribute, text or element)."""
    if isinstance(node, etree._Element):
        return element_text(node)
    return str(node)


def xpath_has_result(result: Any) -> bool:
    if isinstance(result, list):
        return len(result) > 0
    return bool(result)


class ValidationType(str, Enum):
    EXISTS = 'EXISTS'
    NOT_EXISTS = 'NOT_EXISTS'
    ATTRIBUTE_VALUE = 'ATTRIBUTE_VALUE'
    ATTRIBUTE_EXISTS = 'ATTRIBUTE_EXISTS'
    FORBIDDEN_VALUE = 'FORBIDDEN_VALUE'
    FORBIDDEN_ATTRIBUTE = 'FORBIDDEN_ATTRIBUTE'
    ELEMENT_CONTENT_REQUIRED = 'ELEMENT_CONTENT_REQUIRED'
    ELEMENT_CONTENT_FORBIDDEN = 'ELEMENT_CONTENT_FORBIDDEN'


# Validation types that fail when no file matches the selector
REQUIRED_TYPES = frozenset({
    ValidationType.EXISTS,
    ValidationType.ATTRIBUTE_VALUE,
    ValidationType.ELEMENT_CONTENT_REQUIRED,
})


def _compile_xpath(key: str, expression: str) -> None:
    try:
        etree.XPath(expression)
    except etree.XPathSyntaxError as e:
        raise CheckConfigError(key, f"Invalid XPath expression '{expression}': {e}")


def _element_pairs(params: Mapping[str, Any], key: str, tokens_key: str) -> Tuple[Tuple[str, Tuple[str, ...]], ...]:
    pairs = []
    for entry in get_list(params, key, required=True):
        if not isinstance(entry, Mapping):
            raise CheckConfigError(key, f"Entries of '{key}' must be mappings with 'element' and '{tokens_key}'")
        element = get_str(entry, 'element')
        tokens = get_str_list(entry, tokens_key)
        if not element or not tokens:
            raise CheckConfigError(key, f"Entries of '{key}' must define 'element' and '{tokens_key}'")
        pairs.append((element, tuple(tokens)))
    return tuple(pairs)


@dataclass(frozen=True)
class XmlValidationConfig:
    """Typed parameters of an XML validation check."""
    validation_type: ValidationType
    file_patterns: Tuple[str, ...] = (DEFAULT_FILE_PATTERN,)
    exclude_patterns: Tuple[str, ...] = ()
    xpaths: Tuple[str, ...] = ()
    failure_message: Optional[str] = None
    require_all: bool = True
    expected_values: Tuple[str, ...] = ()
    property_resolution: bool = False
    element_name: Optional[str] = None
    required_attribute: Optional[str] = None
    forbidden_values: Tuple[str, ...] = ()
    elements: Tuple[str, ...] = ()
    attributes: Tuple[str, ...] = ()
    content_pairs: Tuple[Tuple[str, Tuple[str, ...]], ...] = ()
    match_mode: MatchMode = MatchMode.SUBSTRING
    case_sensitive: bool = True
    namespaces: Dict[str, str] = field(default_factory=dict)

    @property
    def required_mode(self) -> bool:
        return self.validation_type in REQUIRED_TYPES

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> 'XmlValidationConfig':
        if not get_str(params, 'validationType'):
            raise CheckConfigError('validationType', "Missing required parameter 'validationType'")
        validation_type = get_enum(params, 'validationType', ValidationType, ValidationType.EXISTS)

        file_patterns = get_str_list(params, 'filePatterns', 'path') or [DEFAULT_FILE_PATTERN]
        namespaces = {str(k): str(v) for k, v in get_mapping(params, 'namespaces').items()}

        values: Dict[str, Any] = dict(
            validation_type=validation_type,
            file_patterns=tuple(file_patterns),
            exclude_patterns=tuple(get_str_list(params, 'excludePatterns')),
            failure_message=get_str(params, 'failureMessage'),
            require_all=get_bool(params, 'requireAll', True),
            match_mode=get_enum(params, 'matchMode', MatchMode, MatchMode.SUBSTRING),
            case_sensitive=get_bool(params, 'caseSensitive', True),
            namespaces=namespaces,
        )

        if validation_type in (ValidationType.EXISTS, ValidationType.NOT_EXISTS):
            xpaths = get_str_list(params, 'xpath') + get_str_list(params, 'xpaths')
            if not xpaths:
                raise CheckConfigError('xpath', "Parameter 'xpath' or 'xpaths' is required")
            for expression in xpaths:
                _compile_xpath('xpath', expression)
            values['xpaths'] = tuple(xpaths)

        elif validation_type == ValidationType.ATTRIBUTE_VALUE:
            xpath = get_str(params, 'xpath', required=True)
            _compile_xpath('xpath', xpath)
            expected = get_str_list(params, 'expectedValue') + get_str_list(params, 'expectedValues')
            if not expected:
                raise CheckConfigError('expectedValue', "Parameter 'expectedValue' or 'expectedValues' is required")
            values['xpaths'] = (xpath,)
            values['expected_values'] = tuple(expected)
            values['property_resolution'] = get_bool(params, 'propertyResolution', False)

        elif validation_type == ValidationType.ATTRIBUTE_EXISTS:
            values['element_name'] = get_str(params, 'elementName', required=True)
            values['required_attribute'] = get_str(params, 'requiredAttribute', required=True)

        elif validation_type == ValidationType.FORBIDDEN_VALUE:
            values['element_name'] = get_str(params, 'elementName', required=True)
            forbidden = get_str_list(params, 'forbiddenValue') + get_str_list(params, 'forbiddenValues')
            if not forbidden:
                raise CheckConfigError('forbiddenValue', "Parameter 'forbiddenValue' or 'forbiddenValues' is required")
            values['forbidden_values'] = tuple(forbidden)

        elif validation_type == ValidationType.FORBIDDEN_ATTRIBUTE:
            values['elements'] = tuple(get_str_list(params, 'elements', 'elementName', required=True))
            values['attributes'] = tuple(get_str_list(params, 'attributes', required=True))

        elif validation_type == ValidationType.ELEMENT_CONTENT_REQUIRED:
            values['content_pairs'] = _element_pairs(params, 'elementContentPairs', 'requiredTokens')

        elif validation_type == ValidationType.ELEMENT_CONTENT_FORBIDDEN:
            values['content_pairs'] = _element_pairs(params, 'elementTokenPairs', 'forbiddenTokens')

        return cls(**values)


@dataclass
class _Document:
    rel: str
    tree: etree._ElementTree

    def namespaces(self, extra: Mapping[str, str]) -> Dict[str, str]:
        namespaces = {k: v for k, v in self.tree.getroot().nsmap.items() if k}
        namespaces.update(extra)
        return namespaces


class XmlValidationCheck(Matcher):
    """Evaluate XPath and element/attribute assertions over XML files."""
    family = 'xml validation'
    config_class = XmlValidationConfig

    def evaluate(self, project_root: Path) -> CheckResult:
        config = self.config
        selector = PathSelector(config.file_patterns, config.exclude_patterns)
        files = selector.select(project_root)

        if not files:
            message = f"No XML files found matching: {selector.describe()}"
            return self.fail(message) if config.required_mode else self.ok(message)

        documents, errors = self._load(files, project_root)

        handler = {
            ValidationType.EXISTS: self._xpath_exists,
            ValidationType.NOT_EXISTS: self._xpath_not_exists,
            ValidationType.ATTRIBUTE_VALUE: self._attribute_value,
            ValidationType.ATTRIBUTE_EXISTS: self._attribute_exists,
            ValidationType.FORBIDDEN_VALUE: self._forbidden_value,
            ValidationType.FORBIDDEN_ATTRIBUTE: self._forbidden_attribute,
            ValidationType.ELEMENT_CONTENT_REQUIRED: self._content_required,
            ValidationType.ELEMENT_CONTENT_FORBIDDEN: self._content_forbidden,
        }[config.validation_type]

        return handler(documents, errors, project_root)

    def _load(self, files: List[Path], project_root: Path) -> Tuple[List[_Document], List[str]]:
        documents = []
        errors = []
        for path in files:
            rel = self.relative(path, project_root)
            try:
                documents.append(_Document(rel, parse_xml(path)))
            except etree.XMLSyntaxError as e:
                logger.debug("Could not parse %s: %s", path, e)
                errors.append(f"Error parsing XML file {rel}: {e}")
            except OSError as e:
                logger.debug("Could not read %s: %s", path, e)
                errors.append(f"Could not read file: {rel} ({e})")
        return documents, errors

    def _select(self, document: _Document, expression: str, errors: List[str]) -> Any:
        try:
            return document.tree.xpath(expression, namespaces=document.namespaces(self.config.namespaces))
        except etree.XPathError as e:
            errors.append(f"Invalid XPath expression '{expression}' in {document.rel}: {e}")
            return []

    def _finish(self, failures: List[str], errors: List[str], header: str, success: str) -> CheckResult:
        if not failures and not errors:
            return self.ok(success)
        if failures and self.config.failure_message:
            return self.fail(self.config.failure_message, errors)
        items = failures + errors
        if len(items) == 1:
            return self.fail(items[0])
        return self.fail(header, items)

    # ------------------------------------------------------------------ XPath

    def _xpath_hits(self, documents: List[_Document], errors: List[str]) -> Dict[str, List[str]]:
        hits = {}
        for expression in self.config.xpaths:
            hits[expression] = [
                doc.rel for doc in documents
                if xpath_has_result(self._select(doc, expression, errors))
            ]
        return hits

    def _xpath_exists(self, documents, errors, project_root) -> CheckResult:
        hits = self._xpath_hits(documents, errors)
        missing = [f"XPath not found: {x}" for x, files in hits.items() if not files]
        found = [x for x, files in hits.items() if files]

        if not self.config.require_all and found:
            missing = []
        return self._finish(
            missing, errors, "XPath validation failures:",
            "XPath found: " + ', '.join(found),
        )

    def _xpath_not_exists(self, documents, errors, project_root) -> CheckResult:
        hits = self._xpath_hits(documents, errors)
        found = [
            f"Forbidden XPath found: {x} in file: {rel}"
            for x, files in hits.items()
            for rel in files
        ]
        return self._finish(
            found, errors, "XPath validation failures:",
            "XPath not found (as expected): " + ', '.join(self.config.xpaths),
        )

    def _attribute_value(self, documents, errors, project_root) -> CheckResult:
        config = self.config
        xpath = config.xpaths[0]
        resolver = None
        if config.property_resolution:
            resolver = self.context.property_resolver or PropertyResolver(project_root)

        failures = []
        matched = 0
        expected_text = ' | '.join(config.expected_values)

        for doc in documents:
            result = self._select(doc, xpath, errors)
            nodes = result if isinstance(result, list) else [result]
            for node in nodes:
                matched += 1
                actual = node_value(node)
                value = resolver.resolve(actual) if resolver is not None else actual
                if is_unresolved(value):
                    failures.append(f'Property not found in {doc.rel}. Placeholder: "{actual}"')
                elif value not in config.expected_values:
                    failures.append(
                        f'Incorrect value in {doc.rel}. Found: "{value}", Expected: "{expected_text}"'
                    )

        if matched == 0 and not errors:
            return self.fail(f"No nodes found for XPath: {xpath}")
        return self._finish(failures, errors, "Attribute value validation failures:",
                            "All attribute values are correct")

    # -------------------------------------------------------- Element scans

    def _attribute_exists(self, documents, errors, project_root) -> CheckResult:
        config = self.config
        failures = []
        for doc in documents:
            missing = [
                element for element in iter_elements(doc.tree, config.element_name)
                if not any(local_name(a) == config.required_attribute for a in element.attrib)
            ]
            if missing:
                failures.append(
                    f"Found <{config.element_name}> element without required "
                    f"'{config.required_attribute}' attribute in file {doc.rel}"
                )
        return self._finish(failures, errors, "Missing required attributes:",
                            "All elements have required attributes")

    def _contains(self, text: str, token: str) -> bool:
        return contains_token(text, token, self.config.match_mode, self.config.case_sensitive)

    def _forbidden_value(self, documents, errors, project_root) -> CheckResult:
        config = self.config
        failures = []
        for doc in documents:
            for value in config.forbidden_values:
                for element in iter_elements(doc.tree, config.element_name):
                    candidates = list(element.attrib.values()) + [element.text or '']
                    if any(self._contains(c, value) for c in candidates):
                        failures.append(
                            f"Found forbidden value '{value}' in <{config.element_name}> element in file {doc.rel}"
                        )
                        break
        return self._finish(failures, errors, "Forbidden values found:", "No forbidden values found")

    def _forbidden_attribute(self, documents, errors, project_root) -> CheckResult:
        config = self.config
        failures = []
        for doc in documents:
            found = []
            for name in config.elements:
                present = set()
                for element in iter_elements(doc.tree, name):
                    present.update(local_name(a) for a in element.attrib)
                found.extend(f"'{a}' in <{name}>" for a in config.attributes if a in present)
            if found:
                failures.append(f"File: {doc.rel} - Found: {', '.join(found)}")
        return self._finish(failures, errors, "Found forbidden attributes:", "No forbidden attributes found")

    def _content_required(self, documents, errors, project_root) -> CheckResult:
        satisfied = []
        missing = []
        for element_name, tokens in self.config.content_pairs:
            hit = any(
                all(self._contains(element_text(element), t) for t in tokens)
                for doc in documents
                for element in iter_elements(doc.tree, element_name)
            )
            label = f"element '{element_name}' with tokens: {', '.join(tokens)}"
            (satisfied if hit else missing).append(label)

        if not self.config.require_all and satisfied:
            missing = []
        failures = [f"Missing required {label}" for label in missing]
        return self._finish(failures, errors, "Element content validation failures:",
                            "All required element content found")

    def _content_forbidden(self, documents, errors, project_root) -> CheckResult:
        failures = []
        for element_name, tokens in self.config.content_pairs:
            for doc in documents:
                texts = [element_text(e) for e in iter_elements(doc.tree, element_name)]
                for token in tokens:
                    if any(self._contains(text, token) for text in texts):
                        failures.append(
                            f"Forbidden token '{token}' found in element '{element_name}' in file: {doc.rel}"
                        )
        return self._finish(failures, errors, "Forbidden element content found:",
                            "No forbidden element content found")
