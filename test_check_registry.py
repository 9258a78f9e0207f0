#!/usr/bin/env python3
"""
Test suite for check type dispatch.
"""

import pytest
import check_registry
from check_registry import CHECK_TYPES, create, describe, effective_params, lookup, registered_types
from pom_validation import PomValidationCheck
from rule_model import Check, EvaluationContext, UnknownCheckTypeError
from token_search import TokenSearchCheck
from xml_validation import XmlValidationCheck


def test_every_type_routes_to_a_family():
    families = {describe(name) for name in registered_types()}
    assert families == {
        'token search', 'xml validation', 'pom validation', 'property file', 'document validation',
    }


def test_registered_types_sorted():
    types = registered_types()
    assert types == sorted(types)
    assert len(types) == len(CHECK_TYPES)


def test_lookup_is_case_insensitive():
    assert lookup('xml_xpath_exists').matcher is XmlValidationCheck
    assert lookup(' POM_PARENT ').matcher is PomValidationCheck


def test_unknown_type():
    with pytest.raises(UnknownCheckTypeError) as info:
        lookup('NOT_A_CHECK')
    assert str(info.value) == "Unknown check type: NOT_A_CHECK"


def test_alias_defaults_apply_when_unset():
    params = effective_params(Check('POM_DEPENDENCY_REMOVED', {'dependencies': ['a:b']}), EvaluationContext())
    assert params['validationType'] == 'DEPENDENCY_NOT_EXISTS'


def test_legacy_aliases_route_to_their_modes():
    pom = effective_params(Check('POM_PROPERTY', {'property': 'app.runtime', 'expectedValue': '4.9.0'}),
                           EvaluationContext())
    client = effective_params(Check('CLIENTIDMAP_VALIDATOR', {'fileExtensions': ['.properties']}),
                              EvaluationContext())

    assert pom['validationType'] == 'PLUGIN_VERSION'
    assert pom['plugin'] == 'org.mule.tools.maven:mule-maven-plugin'
    assert client['parseMode'] == 'CLIENT_ID_MAP'
    assert describe('CLIENTIDMAP_VALIDATOR') == 'property file'


def test_check_params_override_alias_defaults():
    check = Check('UNSUPPORTED_ERROR_EXPRESSIONS', {'filePatterns': ['custom/*.xml'], 'tokens': ['x']})
    assert effective_params(check, EvaluationContext())['filePatterns'] == ['custom/*.xml']


def test_context_environments_injected_only_when_absent():
    context = EvaluationContext('RULE-100', environments=('dev', 'qa'))

    injected = effective_params(Check('CONFIG_PROPERTY_EXISTS', {'propertyNames': ['a']}), context)
    own = effective_params(Check('CONFIG_PROPERTY_EXISTS', {'environments': ['prod']}), context)

    assert injected['environments'] == ['dev', 'qa']
    assert own['environments'] == ['prod']


def test_effective_params_never_mutate_check():
    check = Check('CONFIG_PROPERTY_EXISTS', {'propertyNames': ['a']})
    effective_params(check, EvaluationContext('RULE-100', environments=('dev',)))
    assert 'environments' not in check.params
    assert 'parseMode' not in check.params


def test_create_binds_matcher_with_context():
    context = EvaluationContext('RULE-014')
    matcher = create(Check('GENERIC_TOKEN_SEARCH', {'filePatterns': ['*.xml'], 'tokens': ['x']}), context)

    assert isinstance(matcher, TokenSearchCheck)
    assert matcher.context is context
    assert matcher.config.tokens == ('x',)


def test_registry_module_has_no_mutable_state_between_binds():
    first = create(Check('FORBIDDEN_TOKEN_IN_ELEMENT', {
        'filePatterns': ['*.xml'], 'tokens': ['a'], 'elementName': 'flow',
    }), EvaluationContext())
    second = create(Check('GENERIC_TOKEN_SEARCH', {'filePatterns': ['*.xml'], 'tokens': ['a']}), EvaluationContext())

    assert first.config.match_mode.value == 'ELEMENT_ATTRIBUTE'
    assert second.config.match_mode.value == 'SUBSTRING'
    assert dict(check_registry.CHECK_TYPES['GENERIC_TOKEN_SEARCH'].defaults) == {}


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
