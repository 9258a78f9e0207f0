#!/usr/bin/env python3
"""
Token Matcher - Decide whether a text blob contains a token.

Match modes:
- SUBSTRING: plain containment test (optionally case-insensitive)
- REGEX: `re.search` with the token as pattern; an invalid pattern silently
  falls back to SUBSTRING semantics
- ELEMENT_ATTRIBUTE: the token must occur inside the opening tag of a named
  markup element (scoped regex, not a parse)
"""

import re
from enum import Enum
from functools import lru_cache
from typing import Optional


class MatchMode(str, Enum):
    """How a token is compared against content."""
    SUBSTRING = 'SUBSTRING'
    REGEX = 'REGEX'
    ELEMENT_ATTRIBUTE = 'ELEMENT_ATTRIBUTE'


def contains_substring(content: str, token: str, case_sensitive: bool = True) -> bool:
    if case_sensitive:
        return token in content
    return token.lower() in content.lower()


@lru_cache(maxsize=1024)
def _compile(pattern: str, flags: int) -> Optional[re.Pattern]:
    try:
        return re.compile(pattern, flags)
    except re.error:
        return None


def matches_regex(content: str, pattern: str, case_sensitive: bool = True) -> bool:
    """
    Search content for a regular expression.

    Invalid patterns fall back to substring containment of the raw pattern text,
    so a rule author's typo degrades to a literal search instead of an error.

    Args:
        content: Text to search
        pattern: Regular expression
        case_sensitive: Apply re.IGNORECASE when False

    Returns:
        True if the pattern matches anywhere in content
    """
    flags = re.MULTILINE if case_sensitive else re.MULTILINE | re.IGNORECASE
    compiled = _compile(pattern, flags)
    if compiled is None:
        return contains_substring(content, pattern, case_sensitive)
    return compiled.search(content) is not None


def matches_in_element(content: str, element_name: str, token: str, case_sensitive: bool = True) -> bool:
    """
    Check whether a token appears inside the opening tag of an element.

    The element may carry any namespace prefix, e.g. `<http:request-config ...>`
    for element_name `request-config`.

    Example:
        >>> matches_in_element('<http:listener path="/api"/>', 'listener', 'path="/api"')
        True
        >>> matches_in_element('<flow name="x"/> path="/api"', 'flow', 'path="/api"')
        False
    """
    regex = r'<(?:[A-Za-z0-9_.-]+:)?{element}\b[^>]*?{token}[^>]*?>'.format(
        element=re.escape(element_name),
        token=re.escape(token),
    )
    flags = re.DOTALL if case_sensitive else re.DOTALL | re.IGNORECASE
    return re.search(regex, content, flags) is not None


def contains_token(
    content: str,
    token: str,
    mode: MatchMode = MatchMode.SUBSTRING,
    case_sensitive: bool = True,
    element_name: Optional[str] = None,
) -> bool:
    """
    Report whether content contains a token under the given match mode.

    Args:
        content: File content as text
        token: Literal token or regular expression (REGEX mode)
        mode: Match mode
        case_sensitive: Case-sensitive comparison when True
        element_name: Element to scope the search to (ELEMENT_ATTRIBUTE mode)

    Returns:
        True if the token occurs

    Example:
        >>> contains_token("Hello World", "world", MatchMode.SUBSTRING, case_sensitive=False)
        True
        >>> contains_token("version=4.9.1", r"version=4\\.\\d+", MatchMode.REGEX)
        True
    """
    if mode == MatchMode.REGEX:
        return matches_regex(content, token, case_sensitive)

    if mode == MatchMode.ELEMENT_ATTRIBUTE and element_name:
        return matches_in_element(content, element_name, token, case_sensitive)

    return contains_substring(content, token, case_sensitive)
