#!/usr/bin/env python3
"""
Token Search Check - Free-text scanning of project files for tokens.

Search modes:
- FORBIDDEN (default): fail when any selected file contains any token
- REQUIRED: fail when tokens are missing; with `requireAll` every token must be
  found in at least one file, otherwise one token anywhere is enough

Match modes come from token_matcher (SUBSTRING, REGEX, ELEMENT_ATTRIBUTE).

Example params:
    filePatterns: ["src/main/mule/**/*.xml"]
    tokens: ["dlp:", "tobase64"]
    searchMode: FORBIDDEN
    matchMode: SUBSTRING
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from check_params import Matcher, get_bool, get_enum, get_str, get_str_list, read_text
from path_selector import PathSelector
from rule_model import CheckConfigError, CheckResult
from token_matcher import MatchMode, contains_token


logger = logging.getLogger(__name__)


class SearchMode(str, Enum):
    REQUIRED = 'REQUIRED'
    FORBIDDEN = 'FORBIDDEN'


@dataclass(frozen=True)
class TokenSearchConfig:
    """Typed parameters of a token search check."""
    file_patterns: Tuple[str, ...]
    tokens: Tuple[str, ...]
    exclude_patterns: Tuple[str, ...] = ()
    search_mode: SearchMode = SearchMode.FORBIDDEN
    match_mode: MatchMode = MatchMode.SUBSTRING
    case_sensitive: bool = True
    require_all: bool = True
    element_name: Optional[str] = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> 'TokenSearchConfig':
        config = cls(
            file_patterns=tuple(get_str_list(params, 'filePatterns', required=True)),
            tokens=tuple(get_str_list(params, 'tokens', 'unsupportedTokens', required=True)),
            exclude_patterns=tuple(get_str_list(params, 'excludePatterns')),
            search_mode=get_enum(params, 'searchMode', SearchMode, SearchMode.FORBIDDEN),
            match_mode=get_enum(params, 'matchMode', MatchMode, MatchMode.SUBSTRING),
            case_sensitive=get_bool(params, 'caseSensitive', True),
            require_all=get_bool(params, 'requireAll', True),
            element_name=get_str(params, 'elementName'),
        )
        if config.match_mode == MatchMode.ELEMENT_ATTRIBUTE and not config.element_name:
            raise CheckConfigError(
                'elementName', "Parameter 'elementName' is required when matchMode is ELEMENT_ATTRIBUTE"
            )
        return config


class TokenSearchCheck(Matcher):
    """Scan selected files for required or forbidden tokens."""
    family = 'token search'
    config_class = TokenSearchConfig

    def evaluate(self, project_root: Path) -> CheckResult:
        config = self.config
        selector = PathSelector(config.file_patterns, config.exclude_patterns)
        files = selector.select(project_root)

        if not files:
            if config.search_mode == SearchMode.FORBIDDEN:
                return self.ok(f"No files found matching patterns: {selector.describe()}")
            return self.fail(f"No files found matching patterns: {selector.describe()}")

        hits: Dict[str, List[str]] = {token: [] for token in config.tokens}
        errors = []

        for path in files:
            rel = self.relative(path, project_root)
            try:
                content = read_text(path)
            except OSError as e:
                logger.debug("Could not read %s: %s", path, e)
                errors.append(f"Could not read file: {rel} ({e})")
                continue

            for token in config.tokens:
                if contains_token(content, token, config.match_mode, config.case_sensitive, config.element_name):
                    hits[token].append(rel)

        if config.search_mode == SearchMode.FORBIDDEN:
            return self._forbidden_result(hits, errors)
        return self._required_result(hits, errors, selector.describe())

    def _forbidden_result(self, hits: Dict[str, List[str]], errors: List[str]) -> CheckResult:
        violations = [
            f"Forbidden token '{token}' found in file: {rel}"
            for token, files in hits.items()
            for rel in files
        ]
        if violations or errors:
            if len(violations) == 1 and not errors:
                return self.fail(violations[0])
            header = "Forbidden tokens found:" if violations else "Files could not be read:"
            return self.fail(header, violations + errors)
        return self.ok("No forbidden tokens found")

    def _required_result(self, hits: Dict[str, List[str]], errors: List[str], patterns: str) -> CheckResult:
        found = [token for token, files in hits.items() if files]
        missing = [token for token, files in hits.items() if not files]

        satisfied = not missing if self.config.require_all else bool(found)
        if satisfied and not errors:
            return self.ok("Required token(s) found: " + ', '.join(f"'{t}'" for t in found))

        items = []
        if not satisfied:
            items = [f"Required token '{t}' not found in files matching: {patterns}" for t in missing]
        if len(items) == 1 and not errors:
            return self.fail(items[0])
        header = "Required tokens missing:" if items else "Files could not be read:"
        return self.fail(header, items + errors)
