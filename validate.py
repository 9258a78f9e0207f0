#!/usr/bin/env python3
"""
Conformance validation CLI.

Usage:
    validate.py project <path> [--rules FILE] [--env ENV ...] [--json]
    validate.py scan <parent> [--rules FILE] [--env ENV ...] [--json]
    validate.py types

Exit codes:
    0 - all evaluated rules passed
    1 - at least one rule failed
    2 - configuration error (invalid rule set, missing path)
"""

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Callable, Dict, List, Tuple

import check_registry
from rule_loader import RuleSet, default_rules_path, load_rule_set
from rule_model import RuleResult, RuleSetError, ValidationReport
from validation_engine import ValidationEngine, scan_projects


def format_rule(tag: str, result: RuleResult) -> List[str]:
    lines = [f"[{tag}] {result.rule_id}: {result.name} ({result.severity})"]
    for check in result.check_results:
        for line in check.format_result().splitlines():
            lines.append(f"    {line}")
    return lines


def format_report(report: ValidationReport) -> str:
    """
    Render a report for the console.

    Example:
        === orders-api ===
        [PASS] RULE-001: Parent POM (HIGH)
            [PASS] Parent is com.myorg:mule-parent 2.x
              Correct parent found: com.myorg:mule-parent:2.1.0
        [SKIP] RULE-015: Logger categories
        orders-api: 1 passed, 0 failed, 1 skipped
    """
    lines = [f"=== {report.project_label} ==="]
    for result in report.failed:
        lines.extend(format_rule('FAIL', result))
    for result in report.passed:
        lines.extend(format_rule('PASS', result))
    for label in report.skipped:
        lines.append(f"[SKIP] {label}")
    lines.append(report.format_summary())
    return "\n".join(lines)


def load_rules(args) -> RuleSet:
    path = Path(args.rules) if args.rules else default_rules_path()
    if path is None:
        raise RuleSetError("No rule set given and no bundled rules.yaml found")

    rule_set = load_rule_set(path, strict=args.strict)
    if args.env:
        rule_set.settings = dataclasses.replace(rule_set.settings, environments=tuple(args.env))
    return rule_set


def emit(reports: List[Tuple[str, ValidationReport]], as_json: bool) -> int:
    if as_json:
        print(json.dumps([r.to_dict() for _, r in reports], indent=2))
    else:
        for _, report in reports:
            print(format_report(report))
            print()

    return 1 if any(r.has_failures for _, r in reports) else 0


def validate_project(args) -> int:
    """Validate a single project folder."""
    project = Path(args.path)
    if not project.is_dir():
        print(f"[ERROR] Project folder not found: {project}", file=sys.stderr)
        return 2

    rule_set = load_rules(args)
    engine = ValidationEngine(rule_set.rules, rule_set.settings)
    report = engine.validate(project, label=project.name)
    return emit([(project.name, report)], args.json)


def validate_scan(args) -> int:
    """Validate every project folder under a parent folder."""
    parent = Path(args.path)
    if not parent.is_dir():
        print(f"[ERROR] Parent folder not found: {parent}", file=sys.stderr)
        return 2

    rule_set = load_rules(args)
    results = scan_projects(parent, rule_set.rules, rule_set.settings, args.folder_pattern)
    if not results:
        print(f"No projects found under {parent}")
        return 0

    code = emit(results, args.json)
    if not args.json:
        failed = sum(1 for _, r in results if r.has_failures)
        print(f"Scanned {len(results)} projects: {len(results) - failed} passed, {failed} failed")
    return code


def list_types(args) -> int:
    """Print every registered check type with its family."""
    for name in check_registry.registered_types():
        print(f"{name:35} {check_registry.describe(name)}")
    return 0


def main() -> int:
    """Main entry point for the conformance CLI."""
    parser = argparse.ArgumentParser(
        description="Validate migrated projects against a conformance rule set",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s project ../orders-api --rules rules.yaml
  %(prog)s scan ../apis --env dev --env prod
  %(prog)s types
        """
    )
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(
        dest='command',
        required=True,
        help='Command to run'
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('path', help='Folder to validate')
    common.add_argument('--rules', help='Rule-set YAML file (default: bundled rules.yaml)')
    common.add_argument('--env', action='append', help='Environment label (repeatable, overrides the rule set)')
    common.add_argument('--json', action='store_true', help='Print reports as JSON')
    common.add_argument('--strict', action='store_true', help='Treat check configuration problems as fatal')

    subparsers.add_parser('project', parents=[common], help='Validate a single project')

    parser_scan = subparsers.add_parser('scan', parents=[common], help='Validate all projects under a folder')
    parser_scan.add_argument('--folder-pattern', help='Regex naming configuration projects')

    subparsers.add_parser('types', help='List registered check types')

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    handlers: Dict[str, Callable[[argparse.Namespace], int]] = {
        'project': validate_project,
        'scan': validate_scan,
        'types': list_types,
    }

    try:
        return handlers[args.command](args)
    except RuleSetError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
