#!/usr/bin/env python3
"""
Rule Loader - Read rule-set YAML files into Rule/Check objects.

Loading steps:
1. Parse the YAML document (yaml.safe_load)
2. Validate it against rules_schema.json (JSON Schema Draft 7)
3. Build frozen Rule/Check objects and EngineSettings
4. Bind every check once through the check registry so unknown types and
   malformed parameters are reported before any project is scanned

Schema problems always raise RuleSetError. Check configuration problems raise
in strict mode; otherwise they are logged and the engine reports them as
failing checks when the rule is evaluated.
"""

import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from jsonschema import Draft7Validator

import check_registry
from rule_model import (
    Check, CheckConfigError, EngineSettings, EvaluationContext, Rule, RuleSetError,
    UnknownCheckTypeError,
)


logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / 'rules_schema.json'


@dataclass
class RuleSet:
    """Rules of a rule-set file together with its engine settings."""
    rules: List[Rule] = field(default_factory=list)
    settings: EngineSettings = field(default_factory=EngineSettings)
    source: str = '<memory>'

    @property
    def enabled_rules(self) -> List[Rule]:
        return [r for r in self.rules if r.enabled]


@lru_cache(maxsize=1)
def load_schema() -> Dict[str, Any]:
    with open(SCHEMA_PATH, encoding='utf-8') as f:
        schema = json.load(f)
    Draft7Validator.check_schema(schema)
    return schema


def schema_problems(data: Any) -> List[str]:
    """
    Validate a parsed rule-set document against the schema.

    Returns:
        Human-readable problems, one per schema violation (empty when valid)
    """
    validator = Draft7Validator(load_schema())
    problems = []
    for error in sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path)):
        location = '/'.join(str(p) for p in error.absolute_path) or '<root>'
        problems.append(f"{location}: {error.message}")
    return problems


def build_settings(config: Mapping[str, Any]) -> EngineSettings:
    environment_rules = config.get('environmentRules')
    rule_range = None
    if environment_rules:
        rule_range = (int(environment_rules['start']), int(environment_rules['end']))

    return EngineSettings(
        environments=tuple(config.get('environments') or ()),
        environment_rule_range=rule_range,
        resources_dir=config.get('resourcesDir') or 'src/main/resources',
        folder_pattern=config.get('folderPattern'),
    )


def build_rule(data: Mapping[str, Any]) -> Rule:
    checks = tuple(
        Check(
            type=c['type'],
            params=c.get('params') or {},
            description=c.get('description', ''),
        )
        for c in data.get('checks') or []
    )
    return Rule(
        id=data['id'],
        name=data['name'],
        description=data.get('description', ''),
        enabled=data.get('enabled', True),
        severity=data.get('severity', 'MEDIUM'),
        checks=checks,
    )


def check_problems(rules: List[Rule], settings: EngineSettings) -> List[str]:
    """
    Bind every check through the registry and collect configuration problems.

    Environment-scoped rules are bound with the global environments injected,
    as the engine would bind them.
    """
    problems = []
    seen = set()

    for rule in rules:
        if rule.id in seen:
            problems.append(f"{rule.id}: duplicate rule id")
        seen.add(rule.id)

        environments = settings.environments if settings.is_environment_rule(rule) else None
        context = EvaluationContext(rule.id, environments or None)

        for index, check in enumerate(rule.checks, start=1):
            try:
                check_registry.create(check, context)
            except (CheckConfigError, UnknownCheckTypeError) as e:
                problems.append(f"{rule.id} check {index} ({check.type}): {e}")

    return problems


def parse_rule_set(data: Any, source: str = '<memory>', strict: bool = False) -> RuleSet:
    """
    Build a RuleSet from a parsed YAML/JSON document.

    Args:
        data: Parsed rule-set document
        source: Name used in error messages
        strict: Raise on check configuration problems instead of logging them

    Returns:
        RuleSet

    Raises:
        RuleSetError: If the document violates the schema (or, in strict
            mode, if any check is misconfigured)
    """
    problems = schema_problems(data)
    if problems:
        raise RuleSetError(f"Invalid rule set {source}", problems)

    settings = build_settings(data.get('config') or {})
    if settings.environment_rule_range:
        start, end = settings.environment_rule_range
        if start > end:
            raise RuleSetError(f"Invalid rule set {source}", [
                f"config/environmentRules: start {start} is greater than end {end}"
            ])

    rules = [build_rule(r) for r in data['rules']]

    problems = check_problems(rules, settings)
    if problems and strict:
        raise RuleSetError(f"Invalid check configuration in {source}", problems)
    for problem in problems:
        logger.warning("%s: %s", source, problem)

    logger.debug("Loaded %d rules from %s", len(rules), source)
    return RuleSet(rules, settings, source)


def load_rule_set(path: Path, strict: bool = False) -> RuleSet:
    """
    Load and validate a rule-set YAML file.

    Raises:
        RuleSetError: If the file cannot be read, parsed or validated
    """
    path = Path(path)
    try:
        text = path.read_text(encoding='utf-8')
    except OSError as e:
        raise RuleSetError(f"Cannot read rule set {path}: {e}")

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise RuleSetError(f"Invalid YAML in rule set {path}: {e}")

    if data is None:
        raise RuleSetError(f"Rule set {path} is empty")

    return parse_rule_set(data, str(path), strict)


def default_rules_path() -> Optional[Path]:
    """Bundled example rule set, if present."""
    path = Path(__file__).parent / 'rules.yaml'
    return path if path.is_file() else None
