#!/usr/bin/env python3
"""
Tests for validation_engine.py - rule evaluation and multi-project scans.
"""

import unittest
import tempfile
from pathlib import Path
from unittest import mock
from rule_model import Check, EngineSettings, Rule
from validation_engine import (
    ValidationEngine,
    discover_projects,
    is_config_project,
    rules_for_project,
    scan_projects,
)


POM = """<project xmlns="http://maven.apache.org/POM/4.0.0">
    <artifactId>orders-api</artifactId>
    <dependencies>
        <dependency>
            <groupId>org.mule.connectors</groupId>
            <artifactId>mule-http-connector</artifactId>
        </dependency>
    </dependencies>
</project>
"""

SETTINGS = EngineSettings(environments=('dev', 'qa'), environment_rule_range=(100, 199),
                          folder_pattern='.*-config$')


def token_rule(rule_id, tokens, enabled=True):
    return Rule(rule_id, f"Tokens {rule_id}", enabled=enabled, checks=[
        Check('GENERIC_TOKEN_SEARCH', {'filePatterns': ['src/main/mule/*.xml'], 'tokens': tokens}, 'tokens'),
    ])


def write(root, rel, content):
    path = Path(root) / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


class TestValidationEngine(unittest.TestCase):
    """Test single-project evaluation."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        write(self.root, 'pom.xml', POM)
        write(self.root, 'src/main/mule/app.xml', '<mule><dlp:scan/></mule>')
        write(self.root, 'src/main/resources/dev.properties', 'http.port=8081\n')

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_rules_partitioned_into_passed_failed_skipped(self):
        rules = [
            token_rule('RULE-001', ['tobase64']),
            token_rule('RULE-002', ['dlp:']),
            token_rule('RULE-003', ['dlp:'], enabled=False),
        ]
        report = ValidationEngine(rules).validate(self.root, label='orders-api')

        self.assertEqual([r.rule_id for r in report.passed], ['RULE-001'])
        self.assertEqual([r.rule_id for r in report.failed], ['RULE-002'])
        self.assertEqual(report.skipped, ['RULE-003: Tokens RULE-003'])
        self.assertEqual(report.format_summary(), 'orders-api: 1 passed, 1 failed, 1 skipped')

    def test_rule_fails_if_any_check_fails(self):
        rule = Rule('RULE-006', 'Dependencies', checks=[
            Check('POM_DEPENDENCY_ADDED', {'dependencies': ['org.mule.connectors:mule-http-connector']}),
            Check('POM_DEPENDENCY_ADDED', {'dependencies': ['org.mule:mule-core']}, 'core'),
        ])
        report = ValidationEngine([rule]).validate(self.root)

        result = report.failed[0]
        self.assertEqual([c.passed for c in result.check_results], [True, False])
        self.assertIn('org.mule:mule-core', result.failed_checks[0].message)

    def test_unknown_type_becomes_configuration_error(self):
        rule = Rule('RULE-009', 'Bad', checks=[Check('NOT_A_CHECK'), Check('GENERIC_TOKEN_SEARCH', {
            'filePatterns': ['src/main/mule/*.xml'], 'tokens': ['tobase64'],
        })])
        with self.assertLogs('validation_engine', level='WARNING'):
            report = ValidationEngine([rule]).validate(self.root)

        checks = report.failed[0].check_results
        self.assertEqual(checks[0].message, 'Configuration error: Unknown check type: NOT_A_CHECK')
        self.assertEqual(checks[0].description, 'NOT_A_CHECK')
        self.assertTrue(checks[1].passed)

    def test_missing_parameter_becomes_configuration_error(self):
        rule = Rule('RULE-010', 'Bad', checks=[Check('GENERIC_TOKEN_SEARCH', {'tokens': ['x']})])
        report = ValidationEngine([rule]).validate(self.root)

        message = report.failed[0].check_results[0].message
        self.assertTrue(message.startswith('Configuration error:'))
        self.assertIn('filePatterns', message)

    def test_unexpected_exception_becomes_execution_error(self):
        rule = token_rule('RULE-011', ['x'])
        with mock.patch('token_search.TokenSearchCheck.evaluate', side_effect=RuntimeError('boom')):
            report = ValidationEngine([rule]).validate(self.root)

        self.assertEqual(report.failed[0].check_results[0].message, 'Execution error: boom')

    def test_environment_rules_receive_global_environments(self):
        rule = Rule('RULE-101', 'Props', checks=[
            Check('CONFIG_PROPERTY_EXISTS', {'fileExtensions': ['.properties'], 'propertyNames': ['http.port']}),
        ])
        report = ValidationEngine([rule], SETTINGS).validate(self.root)
        self.assertEqual(report.passed_count, 1)

    def test_non_environment_rules_get_no_environments(self):
        rule = Rule('RULE-050', 'Props', checks=[
            Check('CONFIG_PROPERTY_EXISTS', {'fileExtensions': ['.properties'], 'propertyNames': ['http.port']}),
        ])
        report = ValidationEngine([rule], SETTINGS).validate(self.root)
        self.assertIn('environments', report.failed[0].check_results[0].message)

    def test_rules_are_not_modified_by_evaluation(self):
        check = Check('CONFIG_PROPERTY_EXISTS', {'fileExtensions': ['.properties'], 'propertyNames': ['http.port']})
        rule = Rule('RULE-101', 'Props', checks=[check])
        ValidationEngine([rule], SETTINGS).validate(self.root)
        self.assertNotIn('environments', check.params)
        self.assertIs(rule.checks[0], check)

    def test_missing_project_root(self):
        rules = [token_rule('RULE-001', ['x']), token_rule('RULE-002', ['x'], enabled=False)]
        missing = self.root / 'nowhere'
        report = ValidationEngine(rules).validate(missing)

        self.assertEqual(report.failed_count, 1)
        self.assertEqual(report.failed[0].check_results[0].message, f'Project root not found: {missing}')
        self.assertEqual(len(report.skipped), 1)

    def test_report_label_defaults_to_path(self):
        report = ValidationEngine([]).validate(self.root)
        self.assertEqual(report.project_label, str(self.root))
        self.assertFalse(report.has_failures)


class TestProjectScan(unittest.TestCase):
    """Test folder discovery and rule routing."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.parent = Path(self.temp_dir.name)
        write(self.parent, 'orders-api/pom.xml', POM)
        write(self.parent, 'orders-api/src/main/mule/app.xml', '<mule/>')
        write(self.parent, 'orders-config/dev.properties', 'http.port=8081\n')
        write(self.parent, 'orders-config/qa.properties', 'timeout=1\n')
        write(self.parent, 'notes/readme.txt', 'not a project')
        write(self.parent, 'conformance-reports/pom.xml', POM)
        write(self.parent, 'build/pom.xml', POM)

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_is_config_project(self):
        self.assertTrue(is_config_project('orders-config', '.*-config$'))
        self.assertFalse(is_config_project('orders-config-old', '.*-config$'))
        self.assertFalse(is_config_project('orders-config', None))

    def test_discover_projects(self):
        names = [p.name for p in discover_projects(self.parent, '.*-config$')]
        self.assertEqual(names, ['orders-api', 'orders-config'])

    def test_rules_for_project(self):
        rules = [Rule('RULE-001', 'a'), Rule('RULE-100', 'b'), Rule('RULE-200', 'c')]
        self.assertEqual([r.id for r in rules_for_project(rules, SETTINGS, True)], ['RULE-100'])
        self.assertEqual([r.id for r in rules_for_project(rules, SETTINGS, False)], ['RULE-001', 'RULE-200'])

    def test_scan_routes_rules_by_project_kind(self):
        rules = [
            token_rule('RULE-001', ['dlp:']),
            Rule('RULE-101', 'Props', checks=[
                Check('CONFIG_PROPERTY_EXISTS', {'fileExtensions': ['.properties'], 'propertyNames': ['http.port']}),
            ]),
        ]
        results = dict(scan_projects(self.parent, rules, SETTINGS))

        self.assertEqual(sorted(results), ['orders-api', 'orders-config'])
        code = results['orders-api']
        self.assertEqual([r.rule_id for r in code.passed], ['RULE-001'])
        self.assertEqual(code.failed_count, 0)

        config = results['orders-config']
        self.assertEqual([r.rule_id for r in config.failed], ['RULE-101'])
        self.assertIn('qa.properties', config.failed[0].check_results[0].message)

    def test_scan_keeps_disabled_rules_as_skipped(self):
        rules = [token_rule('RULE-001', ['dlp:'], enabled=False)]
        results = dict(scan_projects(self.parent, rules, SETTINGS))
        self.assertEqual(results['orders-api'].skipped, ['RULE-001: Tokens RULE-001'])
        self.assertEqual(results['orders-config'].skipped, [])


if __name__ == '__main__':
    unittest.main()
