#!/usr/bin/env python3
"""
Rule Model - Rule definitions, evaluation results and error taxonomy.

Rule and Check objects are built once when a rule set is loaded and are never
modified afterwards; they can be shared between concurrent project
evaluations. Everything an evaluation derives (the owning rule id, injected
environment lists, the project's property resolver) travels separately in an
EvaluationContext.

Key Features:
- Frozen Rule/Check definitions with read-only parameter mappings
- CheckResult/RuleResult/ValidationReport produced by the validation engine
- PropertyConfig for property-value assertions
- ConformanceError hierarchy for configuration, dispatch and rule-set errors
"""

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple


BULLET = '\n• '


# ============================================================================
# Errors
# ============================================================================

class ConformanceError(Exception):
    """Base exception for rule evaluation errors."""
    pass


class CheckConfigError(ConformanceError):
    """Raised when a check parameter is missing or malformed."""

    def __init__(self, key: str, message: str):
        super().__init__(message)
        self.key = key


class UnknownCheckTypeError(ConformanceError):
    """Raised when a check type has no registered matcher."""

    def __init__(self, check_type: str):
        super().__init__(f"Unknown check type: {check_type}")
        self.check_type = check_type


class RuleSetError(ConformanceError):
    """Raised when a rule-set file cannot be loaded or is invalid."""

    def __init__(self, message: str, problems: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.problems = list(problems or [])

    def __str__(self) -> str:
        if not self.problems:
            return self.args[0]
        return self.args[0] + BULLET + BULLET.join(self.problems)


def format_items(header: str, items: Sequence[str]) -> str:
    """
    Render a header followed by bullet items.

    Example:
        >>> print(format_items("Missing:", ["a", "b"]))
        Missing:
        • a
        • b
    """
    if not items:
        return header
    return header + BULLET + BULLET.join(items)


# ============================================================================
# Definitions
# ============================================================================

@dataclass(frozen=True)
class Check:
    """
    A single parameterized assertion against a project.

    Attributes:
        type: Check type identifier, selects the matcher
        params: Matcher-specific parameters (read-only)
        description: Human-readable description used in results
    """
    type: str
    params: Mapping[str, Any] = field(default_factory=dict)
    description: str = ''

    def __post_init__(self):
        object.__setattr__(self, 'params', MappingProxyType(dict(self.params)))


_RULE_NUMBER = re.compile(r'(\d+)$')


@dataclass(frozen=True)
class Rule:
    """
    A named, severity-tagged unit of compliance.

    A rule passes iff every one of its checks passes.
    """
    id: str
    name: str
    description: str = ''
    enabled: bool = True
    severity: str = 'MEDIUM'
    checks: Tuple[Check, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'checks', tuple(self.checks))

    @property
    def number(self) -> Optional[int]:
        """Trailing number of the rule id (`RULE-105` -> 105), None without digits."""
        match = _RULE_NUMBER.search(self.id.strip())
        return int(match.group(1)) if match else None

    @property
    def label(self) -> str:
        return f"{self.id}: {self.name}"


@dataclass(frozen=True)
class PropertyConfig:
    """
    Expected values for one property (OR semantics across values).

    Attributes:
        name: Property key
        values: Acceptable values
        case_sensitive_name: Overrides the check-wide name sensitivity when set
        case_sensitive_value: Overrides the check-wide value sensitivity when set
    """
    name: str
    values: Tuple[str, ...] = ()
    case_sensitive_name: Optional[bool] = None
    case_sensitive_value: Optional[bool] = None

    def name_sensitive(self, default: bool) -> bool:
        return default if self.case_sensitive_name is None else self.case_sensitive_name

    def value_sensitive(self, default: bool) -> bool:
        return default if self.case_sensitive_value is None else self.case_sensitive_value


@dataclass(frozen=True)
class EngineSettings:
    """
    Caller configuration for a validation engine.

    Attributes:
        environments: Global environment labels injected into environment-scoped rules
        environment_rule_range: Inclusive (start, end) rule-number range, or None
        resources_dir: Directory scanned by the property resolver
        folder_pattern: Regex naming configuration projects in a folder scan
    """
    environments: Tuple[str, ...] = ()
    environment_rule_range: Optional[Tuple[int, int]] = None
    resources_dir: str = 'src/main/resources'
    folder_pattern: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'environments', tuple(self.environments))

    def is_environment_rule(self, rule: Rule) -> bool:
        if self.environment_rule_range is None:
            return False
        number = rule.number
        if number is None:
            return False
        start, end = self.environment_rule_range
        return start <= number <= end


@dataclass(frozen=True)
class EvaluationContext:
    """
    Per-rule evaluation state passed alongside a Check into the dispatcher.

    Attributes:
        rule_id: Owning rule identifier (diagnostics only)
        environments: Environment labels injected by the engine, or None
        property_resolver: The project's PropertyResolver, or None
    """
    rule_id: str = ''
    environments: Optional[Tuple[str, ...]] = None
    property_resolver: Any = None


# ============================================================================
# Results
# ============================================================================

@dataclass(frozen=True)
class CheckResult:
    """Outcome of one check."""
    rule_id: str
    description: str
    passed: bool
    message: str

    @classmethod
    def passed_result(cls, rule_id: str, description: str, message: str) -> 'CheckResult':
        return cls(rule_id, description, True, message)

    @classmethod
    def failed_result(cls, rule_id: str, description: str, message: str) -> 'CheckResult':
        return cls(rule_id, description, False, message)

    def format_result(self) -> str:
        """
        Format check result for console output.

        Example:
            [FAIL] Dependency check
              Required dependency not found: org.mule:mule-core
        """
        tag = '[PASS]' if self.passed else '[FAIL]'
        lines = [f"{tag} {self.description}".rstrip()]
        for line in self.message.splitlines():
            lines.append(f"  {line}")
        return "\n".join(lines)


@dataclass(frozen=True)
class RuleResult:
    """Verdict of one rule with its check results as evidence."""
    rule_id: str
    name: str
    severity: str
    passed: bool
    check_results: Tuple[CheckResult, ...] = ()

    @classmethod
    def from_checks(cls, rule: Rule, check_results: Sequence[CheckResult]) -> 'RuleResult':
        results = tuple(check_results)
        return cls(
            rule_id=rule.id,
            name=rule.name,
            severity=rule.severity,
            passed=all(r.passed for r in results),
            check_results=results,
        )

    @property
    def failed_checks(self) -> List[CheckResult]:
        return [r for r in self.check_results if not r.passed]


@dataclass
class ValidationReport:
    """
    Report of one project evaluation.

    Built incrementally by the engine and treated as read-only once returned.
    """
    project_label: str
    passed: List[RuleResult] = field(default_factory=list)
    failed: List[RuleResult] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    def add_passed(self, result: RuleResult) -> None:
        self.passed.append(result)

    def add_failed(self, result: RuleResult) -> None:
        self.failed.append(result)

    def add_skipped(self, label: str) -> None:
        self.skipped.append(label)

    def add(self, result: RuleResult) -> None:
        if result.passed:
            self.add_passed(result)
        else:
            self.add_failed(result)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    @property
    def passed_count(self) -> int:
        return len(self.passed)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    def format_summary(self) -> str:
        """Totals line for console output."""
        return (
            f"{self.project_label}: {self.passed_count} passed, "
            f"{self.failed_count} failed, {len(self.skipped)} skipped"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Plain data for an external report renderer."""
        def rule_dict(result: RuleResult) -> Dict[str, Any]:
            return {
                'id': result.rule_id,
                'name': result.name,
                'severity': result.severity,
                'passed': result.passed,
                'checks': [
                    {
                        'description': c.description,
                        'passed': c.passed,
                        'message': c.message,
                    }
                    for c in result.check_results
                ],
            }

        return {
            'project': self.project_label,
            'passed': [rule_dict(r) for r in self.passed],
            'failed': [rule_dict(r) for r in self.failed],
            'skipped': list(self.skipped),
        }
