#!/usr/bin/env python3
"""
Check Registry - Map check type identifiers to matcher implementations.

The registry is a closed table: every type name routes to one of the five
check families, optionally with pinned default parameters. Legacy type names
are kept as aliases of the consolidated matchers so older rule sets keep
working.

Parameter precedence when a check is bound:
1. alias defaults (lowest)
2. the check's own params
3. environments injected by the engine (only when the check declares none)
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Type

from check_params import Matcher
from document_validation import DocumentValidationCheck
from pom_validation import PomValidationCheck
from property_file_validation import PropertyFileCheck
from rule_model import Check, EvaluationContext, UnknownCheckTypeError
from token_search import TokenSearchCheck
from xml_validation import XmlValidationCheck


@dataclass(frozen=True)
class CheckType:
    """A registered check type: its matcher and pinned default parameters."""
    matcher: Type[Matcher]
    defaults: Mapping[str, Any] = field(default_factory=dict)


def _type(matcher: Type[Matcher], **defaults: Any) -> CheckType:
    return CheckType(matcher, MappingProxyType(defaults))


MULE_SOURCES = 'src/main/mule/**/*.xml'

CHECK_TYPES: Dict[str, CheckType] = {
    # Token search
    'GENERIC_TOKEN_SEARCH': _type(TokenSearchCheck),
    'GENERIC_TOKEN_SEARCH_REQUIRED': _type(TokenSearchCheck, searchMode='REQUIRED'),
    'GENERIC_TOKEN_SEARCH_FORBIDDEN': _type(TokenSearchCheck, searchMode='FORBIDDEN'),
    'GENERIC_CODE_TOKEN_CHECK': _type(TokenSearchCheck),
    'DLP_REFERENCE_CHECK': _type(TokenSearchCheck),
    'GENERIC_CONFIG_TOKEN_CHECK': _type(TokenSearchCheck),
    'SUBSTRING_TOKEN_CHECK': _type(TokenSearchCheck),
    'FORBIDDEN_TOKEN_IN_ELEMENT': _type(TokenSearchCheck, matchMode='ELEMENT_ATTRIBUTE'),
    'UNSUPPORTED_ERROR_EXPRESSIONS': _type(
        TokenSearchCheck, filePatterns=[MULE_SOURCES, 'src/main/resources/**/*.dwl'],
    ),

    # XML
    'GENERIC_XML_VALIDATION': _type(XmlValidationCheck),
    'XML_XPATH_EXISTS': _type(XmlValidationCheck, validationType='EXISTS'),
    'XML_XPATH_NOT_EXISTS': _type(XmlValidationCheck, validationType='NOT_EXISTS'),
    'XML_ATTRIBUTE_EXISTS': _type(XmlValidationCheck, validationType='ATTRIBUTE_EXISTS'),
    'XML_ATTRIBUTE_NOT_EXISTS': _type(XmlValidationCheck, validationType='FORBIDDEN_ATTRIBUTE'),
    'UNSUPPORTED_XML_ATTRIBUTE': _type(XmlValidationCheck, validationType='FORBIDDEN_ATTRIBUTE'),
    'XML_ELEMENT_CONTENT_REQUIRED': _type(XmlValidationCheck, validationType='ELEMENT_CONTENT_REQUIRED'),
    'XML_ELEMENT_CONTENT_FORBIDDEN': _type(XmlValidationCheck, validationType='ELEMENT_CONTENT_FORBIDDEN'),
    'IBM_MQ_CIPHER_CHECK': _type(XmlValidationCheck, validationType='ATTRIBUTE_VALUE'),
    'CRYPTO_JCE_ENCRYPT_PBE_CHECK': _type(XmlValidationCheck, validationType='FORBIDDEN_VALUE'),
    'CRYPTO_JCE_CONFIG_TYPE_CHECK': _type(XmlValidationCheck, validationType='ATTRIBUTE_EXISTS'),

    # POM
    'GENERIC_POM_VALIDATION': _type(PomValidationCheck),
    'POM_DEPENDENCY_ADDED': _type(PomValidationCheck, validationType='DEPENDENCY_EXISTS'),
    'POM_DEPENDENCY_REMOVED': _type(PomValidationCheck, validationType='DEPENDENCY_NOT_EXISTS'),
    'POM_PLUGIN_REMOVED': _type(PomValidationCheck, validationType='PLUGIN_NOT_EXISTS'),
    'POM_PARENT': _type(PomValidationCheck, validationType='PARENT_EXISTS'),
    'POM_PROPERTY': _type(
        PomValidationCheck, validationType='PLUGIN_VERSION', plugin='org.mule.tools.maven:mule-maven-plugin',
    ),
    'POM_PLUGIN_VERSION': _type(PomValidationCheck, validationType='PLUGIN_VERSION'),

    # Property files
    'GENERIC_PROPERTY_FILE': _type(PropertyFileCheck),
    'CONFIG_PROPERTY_EXISTS': _type(PropertyFileCheck, parseMode='PROPERTIES_FORMAT'),
    'CONFIG_POLICY_EXISTS': _type(PropertyFileCheck, parseMode='SUBSTRING_SEARCH'),
    'MANDATORY_SUBSTRING_CHECK': _type(PropertyFileCheck, parseMode='SUBSTRING_SEARCH'),
    'MANDATORY_PROPERTY_VALUE_CHECK': _type(PropertyFileCheck, parseMode='PROPERTIES_FORMAT'),
    'CLIENTIDMAP_VALIDATOR': _type(PropertyFileCheck, parseMode='CLIENT_ID_MAP'),

    # JSON / YAML documents
    'GENERIC_JSON_VALIDATION': _type(DocumentValidationCheck),
    'JSON_VALIDATION_REQUIRED': _type(DocumentValidationCheck),
    'JSON_VALIDATION_FORBIDDEN': _type(DocumentValidationCheck),
    'MULE_ARTIFACT_JSON_FULL': _type(DocumentValidationCheck, filePattern='mule-artifact.json'),
}


def lookup(check_type: str) -> CheckType:
    """
    Find the registered entry for a check type (case-insensitive).

    Raises:
        UnknownCheckTypeError: If the type is not registered
    """
    entry = CHECK_TYPES.get((check_type or '').strip().upper())
    if entry is None:
        raise UnknownCheckTypeError(check_type)
    return entry


def effective_params(check: Check, context: EvaluationContext) -> Dict[str, Any]:
    """
    Parameters a matcher sees for a check under an evaluation context.

    The check's own mapping is never modified; a new dict is returned.

    Example:
        >>> check = Check('POM_DEPENDENCY_ADDED', {'dependencies': ['org.mule:mule-core']})
        >>> effective_params(check, EvaluationContext('RULE-006'))['validationType']
        'DEPENDENCY_EXISTS'
    """
    params = dict(lookup(check.type).defaults)
    params.update(check.params)
    if context.environments and not check.params.get('environments'):
        params['environments'] = list(context.environments)
    return params


def create(check: Check, context: EvaluationContext) -> Matcher:
    """
    Bind a check to its matcher.

    Args:
        check: Check definition
        context: Per-rule evaluation context

    Returns:
        Matcher ready to `run(project_root)`

    Raises:
        UnknownCheckTypeError: If the check type is not registered
        CheckConfigError: If the check's parameters are missing or malformed
    """
    entry = lookup(check.type)
    return entry.matcher.from_params(check, effective_params(check, context), context)


def registered_types() -> List[str]:
    return sorted(CHECK_TYPES)


def describe(check_type: str) -> str:
    """Family name of a registered check type."""
    return lookup(check_type).matcher.family


if __name__ == '__main__':
    for name in registered_types():
        print(f"{name:35} {describe(name)}")
