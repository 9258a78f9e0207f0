#!/usr/bin/env python3
"""
Validation Engine - Evaluate a rule set against one project.

For each rule in declaration order:
- disabled rules are recorded as skipped
- every check is bound through the check registry and run; a check that
  cannot be bound or raises is recorded as a failing result and evaluation
  continues with the next check
- the rule passes iff all of its check results passed

Environment-scoped rules (rule number inside the configured range) get the
global environment list through their EvaluationContext. Rule and Check
objects are never modified, so one rule list can be shared by concurrent
evaluations of different projects.
"""

import logging
import re
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import check_registry
from property_resolver import PropertyResolver
from rule_model import (
    Check, CheckConfigError, CheckResult, EngineSettings, EvaluationContext,
    Rule, RuleResult, UnknownCheckTypeError, ValidationReport,
)


logger = logging.getLogger(__name__)

REPORTS_FOLDER = 'conformance-reports'
IGNORED_PROJECT_FOLDERS = frozenset({REPORTS_FOLDER, 'target', 'bin', 'build'})
PROJECT_MARKERS = ('pom.xml', 'mule-artifact.json')


class ValidationEngine:
    """
    Evaluate rules against project trees.

    Attributes:
        rules: Ordered rule definitions (shared, read-only)
        settings: Environment injection and resolver configuration
    """

    def __init__(self, rules: Sequence[Rule], settings: Optional[EngineSettings] = None):
        self.rules = list(rules)
        self.settings = settings or EngineSettings()

    def context_for(self, rule: Rule, resolver: Optional[PropertyResolver]) -> EvaluationContext:
        """Evaluation context of one rule; injects environments for environment-scoped rules."""
        environments = None
        if self.settings.environments and self.settings.is_environment_rule(rule):
            environments = self.settings.environments
        return EvaluationContext(rule.id, environments, resolver)

    def run_check(self, check: Check, context: EvaluationContext, project_root: Path) -> CheckResult:
        """
        Bind and run one check, converting every failure into a CheckResult.

        Returns:
            The matcher's result, or a failing result describing the error
        """
        description = check.description or check.type
        try:
            matcher = check_registry.create(check, context)
            return matcher.run(project_root)
        except (CheckConfigError, UnknownCheckTypeError) as e:
            logger.warning("Rule %s: invalid %s check: %s", context.rule_id, check.type, e)
            return CheckResult.failed_result(context.rule_id, description, f"Configuration error: {e}")
        except Exception as e:
            logger.warning("Rule %s: %s check raised %s: %s", context.rule_id, check.type, type(e).__name__, e)
            return CheckResult.failed_result(context.rule_id, description, f"Execution error: {e}")

    def evaluate_rule(self, rule: Rule, project_root: Path, resolver: Optional[PropertyResolver]) -> RuleResult:
        context = self.context_for(rule, resolver)
        results = []
        for check in rule.checks:
            result = self.run_check(check, context, project_root)
            logger.debug("%s %s: %s", rule.id, check.type, 'passed' if result.passed else 'failed')
            results.append(result)
        return RuleResult.from_checks(rule, results)

    def validate(self, project_root: Path, label: Optional[str] = None) -> ValidationReport:
        """
        Evaluate every rule against a project.

        Args:
            project_root: Root directory of the project
            label: Report label (defaults to the project path)

        Returns:
            Completed ValidationReport
        """
        project_root = Path(project_root)
        report = ValidationReport(label or str(project_root))
        logger.info("Validating %s against %d rules", project_root, len(self.rules))

        if not project_root.is_dir():
            logger.warning("Project root not found: %s", project_root)
            for rule in self.rules:
                if not rule.enabled:
                    report.add_skipped(rule.label)
                    continue
                failure = CheckResult.failed_result(
                    rule.id, rule.description or rule.name, f"Project root not found: {project_root}"
                )
                report.add_failed(RuleResult.from_checks(rule, [failure]))
            return report

        resolver = PropertyResolver(project_root, self.settings.resources_dir)

        for rule in self.rules:
            if not rule.enabled:
                report.add_skipped(rule.label)
                continue
            report.add(self.evaluate_rule(rule, project_root, resolver))

        logger.info(
            "Finished %s: %d passed, %d failed, %d skipped",
            report.project_label, report.passed_count, report.failed_count, len(report.skipped),
        )
        return report


# ============================================================================
# Multi-project scan
# ============================================================================

def is_config_project(name: str, folder_pattern: Optional[str]) -> bool:
    return bool(folder_pattern) and re.fullmatch(folder_pattern, name) is not None


def discover_projects(parent: Path, folder_pattern: Optional[str] = None) -> List[Path]:
    """
    Child folders of `parent` that are code or configuration projects.

    A code project contains a `pom.xml` or `mule-artifact.json`; a
    configuration project has a name matching `folder_pattern`.
    """
    projects = []
    for child in sorted(Path(parent).iterdir()):
        name = child.name
        if not child.is_dir() or name in IGNORED_PROJECT_FOLDERS or name.startswith('.'):
            continue
        is_code = any((child / marker).is_file() for marker in PROJECT_MARKERS)
        if is_code or is_config_project(name, folder_pattern):
            projects.append(child)
    return projects


def rules_for_project(rules: Sequence[Rule], settings: EngineSettings, config_project: bool) -> List[Rule]:
    """Configuration projects get environment-scoped rules, code projects the rest."""
    return [rule for rule in rules if settings.is_environment_rule(rule) == config_project]


def scan_projects(parent: Path, rules: Sequence[Rule], settings: Optional[EngineSettings] = None,
                  folder_pattern: Optional[str] = None) -> List[Tuple[str, ValidationReport]]:
    """
    Validate every project folder under a parent directory.

    Args:
        parent: Directory containing project folders
        rules: Full rule set
        settings: Engine settings
        folder_pattern: Regex for configuration project names (defaults to settings.folder_pattern)

    Returns:
        (project name, report) pairs in name order
    """
    settings = settings or EngineSettings()
    folder_pattern = folder_pattern or settings.folder_pattern

    results = []
    for project in discover_projects(parent, folder_pattern):
        config_project = is_config_project(project.name, folder_pattern)
        selected = rules_for_project(rules, settings, config_project)
        kind = 'configuration' if config_project else 'code'
        logger.info("Scanning %s project %s (%d rules)", kind, project.name, len(selected))

        report = ValidationEngine(selected, settings).validate(project, label=project.name)
        results.append((project.name, report))
    return results
