#!/usr/bin/env python3
"""
Tests for property_file_validation.py - environment file assertions.
"""

import unittest
import tempfile
from pathlib import Path
from check_registry import create
from property_file_validation import delimited_pairs, parse_property_config, parse_regex_pattern
from rule_model import Check, CheckConfigError, EvaluationContext


class PropertyFileTestCase(unittest.TestCase):
    """Base fixture: dev/qa property files plus a non-environment file."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.write('src/main/resources/config/dev.properties',
                   'http.port=8081\nlog.level = DEBUG\napi.url=https://dev.example.com\n')
        self.write('src/main/resources/config/qa.properties',
                   'http.port=8082\ntimeout=30000\nlog.level=INFO\napi.url=https://qa.example.com\n')
        self.write('src/main/resources/app.properties', 'unrelated=true\n')

    def tearDown(self):
        self.temp_dir.cleanup()

    def write(self, rel, content):
        path = self.root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path

    def run_check(self, check_type='GENERIC_PROPERTY_FILE', context=None, **params):
        params.setdefault('fileExtensions', ['.properties'])
        check = Check(check_type, params, description='property check')
        return create(check, context or EvaluationContext('RULE-100')).run(self.root)


class TestHelpers(unittest.TestCase):
    """Test parsing helpers."""

    def test_delimited_pairs_skip_comments(self):
        self.assertEqual(delimited_pairs("a = 1\n# c\n!x=y\nb=2\nnovalue", "="), [('a', '1'), ('b', '2')])

    def test_custom_delimiter(self):
        self.assertEqual(delimited_pairs("a: 1", ":"), [('a', '1')])

    def test_parse_property_config(self):
        prop = parse_property_config({'name': 'log.level', 'value': 'INFO', 'caseSensitiveValue': 'false'})
        self.assertEqual(prop.values, ('INFO',))
        self.assertFalse(prop.case_sensitive_value)
        self.assertIsNone(prop.case_sensitive_name)

    def test_parse_regex_pattern_errors(self):
        with self.assertRaises(CheckConfigError):
            parse_regex_pattern('no-separator')
        with self.assertRaises(CheckConfigError):
            parse_regex_pattern('name=([')


class TestPropertiesFormat(PropertyFileTestCase):
    """Test PROPERTIES_FORMAT names and values."""

    def test_missing_property_names_file(self):
        result = self.run_check('CONFIG_PROPERTY_EXISTS', environments=['dev', 'qa'],
                                propertyNames=['http.port', 'timeout'])
        self.assertFalse(result.passed)
        self.assertEqual(
            result.message,
            "Validation failures:\n• Property 'timeout' not found in file: src/main/resources/config/dev.properties",
        )

    def test_all_names_present(self):
        result = self.run_check('CONFIG_PROPERTY_EXISTS', environments=['dev', 'qa'], propertyNames=['http.port'])
        self.assertTrue(result.passed)
        self.assertEqual(result.message, "Required properties (http.port) found in all relevant files")

    def test_name_case_sensitivity(self):
        sensitive = self.run_check(environments=['qa'], propertyNames=['HTTP.PORT'])
        insensitive = self.run_check(environments=['qa'], propertyNames=['HTTP.PORT'], caseSensitiveNames=False)
        self.assertFalse(sensitive.passed)
        self.assertTrue(insensitive.passed)

    def test_value_in_allowed_set(self):
        result = self.run_check('MANDATORY_PROPERTY_VALUE_CHECK', environments=['dev', 'qa'],
                                properties=[{'name': 'log.level', 'values': ['DEBUG', 'INFO']}])
        self.assertTrue(result.passed)
        self.assertEqual(result.message, "All required properties found with correct values")

    def test_value_mismatch(self):
        result = self.run_check('MANDATORY_PROPERTY_VALUE_CHECK', environments=['dev'],
                                properties=[{'name': 'log.level', 'values': ['INFO', 'WARN']}])
        self.assertFalse(result.passed)
        self.assertIn(
            "Property 'log.level' found but value does not match expected values [INFO, WARN] "
            "in file: src/main/resources/config/dev.properties",
            result.message,
        )

    def test_value_case_override(self):
        result = self.run_check('MANDATORY_PROPERTY_VALUE_CHECK', environments=['dev'], properties=[
            {'name': 'log.level', 'values': ['debug'], 'caseSensitiveValue': False},
        ])
        self.assertTrue(result.passed)

    def test_non_environment_files_are_ignored(self):
        result = self.run_check(environments=['app'], propertyNames=['unrelated'])
        self.assertTrue(result.passed)
        result = self.run_check(environments=['dev'], propertyNames=['unrelated'])
        self.assertFalse(result.passed)

    def test_no_environment_files_always_fails(self):
        result = self.run_check(environments=['prod'], propertyNames=['http.port'])
        self.assertFalse(result.passed)
        self.assertEqual(
            result.message,
            "No environment files found for environments [prod] with extensions [.properties]",
        )

    def test_environments_injected_by_context(self):
        context = EvaluationContext('RULE-100', environments=('qa',))
        result = self.run_check(context=context, propertyNames=['timeout'])
        self.assertTrue(result.passed)

    def test_environments_required(self):
        with self.assertRaises(CheckConfigError) as ctx:
            create(Check('GENERIC_PROPERTY_FILE', {'fileExtensions': ['.properties'], 'propertyNames': ['a']}),
                   EvaluationContext())
        self.assertEqual(ctx.exception.key, 'environments')


class TestSubstringAndRegex(PropertyFileTestCase):
    """Test SUBSTRING_SEARCH and REGEX_PATTERN modes."""

    def test_substring_search(self):
        self.write('src/main/resources/policies/dev.policy', 'rate-limiting:\n  enabled: true\n')
        passing = self.run_check('CONFIG_POLICY_EXISTS', environments=['dev'], fileExtensions=['.policy'],
                                 tokens=['rate-limiting'])
        failing = self.run_check('CONFIG_POLICY_EXISTS', environments=['dev'], fileExtensions=['.policy'],
                                 tokens=['client-id-enforcement'])
        self.assertTrue(passing.passed)
        self.assertFalse(failing.passed)
        self.assertIn("'client-id-enforcement'", failing.message)

    def test_substring_case_insensitive(self):
        result = self.run_check('MANDATORY_SUBSTRING_CHECK', environments=['qa'],
                                propertyNames=['TIMEOUT'], caseSensitive=False)
        self.assertTrue(result.passed)

    def test_regex_patterns(self):
        passing = self.run_check(environments=['dev', 'qa'], parseMode='REGEX_PATTERN',
                                 regexPatterns=[r'api\.url=https://.*\.example\.com'])
        failing = self.run_check(environments=['dev', 'qa'], parseMode='REGEX_PATTERN',
                                 regexPatterns=[r'http\.port=808[12]', r'timeout=\d+'])
        self.assertTrue(passing.passed)
        self.assertEqual(passing.message, "All regex patterns matched successfully")
        self.assertFalse(failing.passed)
        self.assertIn("Pattern 'timeout=\\d+' not matched in file: src/main/resources/config/dev.properties",
                      failing.message)

    def test_regex_requires_full_match(self):
        result = self.run_check(environments=['qa'], parseMode='regex_pattern', regexPatterns=['timeout=300'])
        self.assertFalse(result.passed)

    def test_regex_mode_requires_patterns(self):
        with self.assertRaises(CheckConfigError):
            create(Check('GENERIC_PROPERTY_FILE', {
                'fileExtensions': ['.properties'], 'environments': ['dev'], 'parseMode': 'REGEX_PATTERN',
            }), EvaluationContext())



class TestClientIdMap(PropertyFileTestCase):
    """Test the fixed client-id map and secure property line patterns."""

    CLIENT_MAP = 'truist.authz.policy.clientIDmap.GET:/orders=abc123:orders-app;def456:billing-app\n'

    def test_client_id_map_found(self):
        self.write('src/main/resources/config/prod.properties', '# policies\n' + self.CLIENT_MAP)

        result = self.run_check('CLIENTIDMAP_VALIDATOR', environments=['prod'])

        self.assertTrue(result.passed)
        self.assertEqual(result.message,
                         "All CLIENT_ID_MAP properties match the required pattern (validated 1 file)")

    def test_double_colon_does_not_match(self):
        self.write('src/main/resources/config/prod.properties',
                   'truist.authz.policy.clientIDmap.GET:/orders=abc123:orders:app\n')

        result = self.run_check('CLIENTIDMAP_VALIDATOR', environments=['prod'])

        self.assertFalse(result.passed)
        self.assertIn("Files scanned: src/main/resources/config/prod.properties", result.message)

    def test_missing_map_names_expected_shape(self):
        result = self.run_check('CLIENTIDMAP_VALIDATOR', environments=['dev', 'qa'])

        self.assertFalse(result.passed)
        self.assertIn("No valid properties matching the CLIENT_ID_MAP pattern", result.message)
        self.assertIn("Expected pattern: truist.authz.policy.clientIDmap.<METHOD>", result.message)

    def test_secure_validation_type(self):
        self.write('src/main/resources/config/prod.properties', 'secure::db.password=^{c2VjcmV0=}\n')

        secure = self.run_check('CLIENTIDMAP_VALIDATOR', environments=['prod'], validationType='SECURE')
        client = self.run_check('CLIENTIDMAP_VALIDATOR', environments=['prod'])

        self.assertTrue(secure.passed)
        self.assertIn("SECURE_PROPERTY", secure.message)
        self.assertFalse(client.passed)

    def test_injected_environments(self):
        self.write('src/main/resources/config/prod.properties', self.CLIENT_MAP)
        context = EvaluationContext('RULE-105', environments=('prod',))

        self.assertTrue(self.run_check('CLIENTIDMAP_VALIDATOR', context=context).passed)


if __name__ == '__main__':
    unittest.main()
