#!/usr/bin/env python3
"""
Check Parameters - Typed readers over check parameter mappings, and the
matcher base class shared by every check family.

Each check family turns its raw parameter mapping into a frozen config
dataclass through these readers. A missing or malformed value raises
CheckConfigError naming the offending key, so problems surface when a rule set
is loaded rather than in the middle of a scan.
"""

from enum import Enum
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Type, TypeVar

from path_selector import to_relative
from rule_model import Check, CheckConfigError, CheckResult, EvaluationContext, format_items


E = TypeVar('E', bound=Enum)

_TRUE = {'true', 'yes', '1', 'on'}
_FALSE = {'false', 'no', '0', 'off'}


def first_key(params: Mapping[str, Any], *keys: str) -> Optional[str]:
    """First key present in params with a non-None value."""
    for key in keys:
        if params.get(key) is not None:
            return key
    return None


def get_str(params: Mapping[str, Any], key: str, default: Optional[str] = None,
            required: bool = False) -> Optional[str]:
    value = params.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise CheckConfigError(key, f"Missing required parameter '{key}'")
        return default
    if isinstance(value, (dict, list, tuple)):
        raise CheckConfigError(key, f"Parameter '{key}' must be a string")
    return str(value)


def get_bool(params: Mapping[str, Any], key: str, default: bool) -> bool:
    """
    Read a boolean parameter; accepts booleans and "true"/"false" strings.

    Example:
        >>> get_bool({'caseSensitive': 'false'}, 'caseSensitive', True)
        False
    """
    value = params.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise CheckConfigError(key, f"Parameter '{key}' must be a boolean, got: {value!r}")


def get_int(params: Mapping[str, Any], key: str, default: Optional[int] = None) -> Optional[int]:
    value = params.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise CheckConfigError(key, f"Parameter '{key}' must be an integer, got: {value!r}")


def get_str_list(params: Mapping[str, Any], *keys: str, required: bool = False) -> List[str]:
    """
    Read a list of strings from the first present key.

    A single string is accepted as a one-element list; empty entries are dropped.

    Args:
        params: Parameter mapping
        *keys: Key and its accepted aliases, in priority order
        required: Raise CheckConfigError when no non-empty list is found

    Returns:
        List of strings
    """
    key = first_key(params, *keys)
    value = params.get(key) if key else None

    if value is None:
        items = []
    elif isinstance(value, str):
        items = [value]
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        raise CheckConfigError(key, f"Parameter '{key}' must be a list of strings")

    result = []
    for item in items:
        if isinstance(item, (dict, list, tuple)):
            raise CheckConfigError(key, f"Parameter '{key}' must be a list of strings")
        if item is not None and str(item).strip():
            result.append(str(item))

    if required and not result:
        raise CheckConfigError(keys[0], f"Missing required parameter '{keys[0]}'")
    return result


def get_list(params: Mapping[str, Any], key: str, required: bool = False) -> List[Any]:
    value = params.get(key)
    if value is None:
        if required:
            raise CheckConfigError(key, f"Missing required parameter '{key}'")
        return []
    if not isinstance(value, (list, tuple)):
        raise CheckConfigError(key, f"Parameter '{key}' must be a list")
    if required and not value:
        raise CheckConfigError(key, f"Missing required parameter '{key}'")
    return list(value)


def get_mapping(params: Mapping[str, Any], key: str, required: bool = False) -> Mapping[str, Any]:
    value = params.get(key)
    if value is None:
        if required:
            raise CheckConfigError(key, f"Missing required parameter '{key}'")
        return {}
    if not isinstance(value, Mapping):
        raise CheckConfigError(key, f"Parameter '{key}' must be a mapping")
    return value


def get_enum(params: Mapping[str, Any], key: str, enum_class: Type[E], default: E) -> E:
    """
    Read an enum parameter by name, case-insensitively.

    Example:
        >>> from token_matcher import MatchMode
        >>> get_enum({'matchMode': 'regex'}, 'matchMode', MatchMode, MatchMode.SUBSTRING)
        <MatchMode.REGEX: 'REGEX'>
    """
    value = params.get(key)
    if value is None or not str(value).strip():
        return default
    name = str(value).strip().upper()
    try:
        return enum_class[name]
    except KeyError:
        allowed = ', '.join(m.name for m in enum_class)
        raise CheckConfigError(key, f"Invalid value for '{key}': {value} (expected one of {allowed})")


def read_text(path: Path) -> str:
    """Read a file as UTF-8 text, replacing undecodable bytes."""
    return path.read_text(encoding='utf-8', errors='replace')


class Matcher:
    """
    A check family implementation bound to one check, its typed config and
    the evaluation context.

    Subclasses set `family` and `config_class` and implement `evaluate()`.
    `run()` never lets a configuration error escape; other faults propagate
    to the engine, which records them as execution errors.
    """
    family = ''
    config_class = None

    def __init__(self, check: Check, config: Any, context: EvaluationContext):
        self.check = check
        self.config = config
        self.context = context

    @classmethod
    def from_params(cls, check: Check, params: Mapping[str, Any], context: EvaluationContext) -> 'Matcher':
        return cls(check, cls.config_class.from_params(params), context)

    def run(self, project_root: Path) -> CheckResult:
        try:
            return self.evaluate(Path(project_root))
        except CheckConfigError as e:
            return self.fail(f"Configuration error: {e}")

    def evaluate(self, project_root: Path) -> CheckResult:
        raise NotImplementedError

    def ok(self, message: str) -> CheckResult:
        return CheckResult.passed_result(self.context.rule_id, self.check.description, message)

    def fail(self, message: str, items: Sequence[str] = ()) -> CheckResult:
        return CheckResult.failed_result(
            self.context.rule_id, self.check.description, format_items(message, items)
        )

    @staticmethod
    def relative(path: Path, project_root: Path) -> str:
        return to_relative(path, project_root)
