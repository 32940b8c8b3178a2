# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Exclusion pattern matching for source tree copies.

A pattern is either an exact basename ("node_modules", ".env") or a glob
with a single "*" standing for any run of characters:

    "*.log"     suffix match      app.log, server.log
    "cache*"    prefix match      cache, cache-v2
    "npm-*.log" prefix + suffix   npm-debug.log

Matching is always against the basename only and is case-sensitive.
"""

from typing import Iterable

WILDCARD = "*"


def matches_exclusion(name: str, pattern: str) -> bool:
    """
    Check a single basename against a single exclusion pattern.

    Args:
        name: File or directory basename
        pattern: Exact name or wildcard pattern

    Returns:
        True if the entry should be excluded
    """
    if WILDCARD not in pattern:
        return name == pattern

    parts = pattern.split(WILDCARD)
    prefix, suffix = parts[0], parts[-1]

    if len(name) < len(prefix) + len(suffix):
        return False
    if not name.startswith(prefix) or not name.endswith(suffix):
        return False

    # Middle fragments of multi-wildcard patterns must appear in order
    position = len(prefix)
    end = len(name) - len(suffix)
    for fragment in parts[1:-1]:
        found = name.find(fragment, position, end)
        if found < 0:
            return False
        position = found + len(fragment)

    return True


def is_excluded(name: str, patterns: Iterable[str]) -> bool:
    """Return True if the basename matches any of the patterns."""
    return any(matches_exclusion(name, pattern) for pattern in patterns)
