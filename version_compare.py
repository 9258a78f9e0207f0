#!/usr/bin/env python3
"""
Version Comparator - Numeric comparison of dot-separated version strings.

Each segment is compared as an integer. A segment with a non-numeric suffix
(`1-SNAPSHOT`, `9rc1`) is truncated to its leading digits, or zero when it has
none. The shorter version is padded with zero segments.
"""

import re
from typing import List


_LEADING_DIGITS = re.compile(r'^\d+')


def parse_segment(segment: str) -> int:
    """
    Leading integer of a version segment.

    Example:
        >>> parse_segment("10")
        10
        >>> parse_segment("1-SNAPSHOT")
        1
        >>> parse_segment("beta")
        0
    """
    match = _LEADING_DIGITS.match(segment.strip())
    return int(match.group(0)) if match else 0


def version_key(version: str) -> List[int]:
    return [parse_segment(s) for s in version.strip().split('.')]


def compare_versions(left: str, right: str) -> int:
    """
    Compare two version strings.

    Args:
        left: First version, e.g. "4.9.1"
        right: Second version, e.g. "4.10"

    Returns:
        -1 if left < right, 0 if equal, 1 if left > right

    Example:
        >>> compare_versions("1.10", "1.9")
        1
        >>> compare_versions("2", "2.0.0")
        0
    """
    left_key = version_key(left)
    right_key = version_key(right)

    width = max(len(left_key), len(right_key))
    left_key += [0] * (width - len(left_key))
    right_key += [0] * (width - len(right_key))

    if left_key < right_key:
        return -1
    if left_key > right_key:
        return 1
    return 0


def is_version_at_least(version: str, minimum: str) -> bool:
    """True when `version` is greater than or equal to `minimum`."""
    return compare_versions(version, minimum) >= 0
