"""
Keyword matchers.

A keyword specification is turned into a predicate over the raw bytes
of a dump line:

- ``regex <pattern>`` searches the decoded line with a regular expression
- ``a,b,c`` requires every comma-separated keyword to be present
- anything else requires the whole string to be present
"""

import re
from typing import Callable

from urlhunter.core.errors import MatcherError


REGEX_PREFIX = "regex "

Matcher = Callable[[bytes], bool]


def regex_matcher(pattern: str) -> Matcher:
    try:
        compiled = re.compile(pattern)
    except re.error as e:
        raise MatcherError(f"invalid regex {pattern!r}: {e}") from e

    def match(line: bytes) -> bool:
        return compiled.search(line.decode("utf-8", errors="replace")) is not None

    return match


def all_keywords_matcher(spec: str) -> Matcher:
    needles = [k.encode("utf-8") for k in spec.split(",")]

    def match(line: bytes) -> bool:
        return all(needle in line for needle in needles)

    return match


def substring_matcher(spec: str) -> Matcher:
    needle = spec.encode("utf-8")

    def match(line: bytes) -> bool:
        return needle in line

    return match


def build_matcher(spec: str) -> Matcher:
    """
    Build a line predicate from one keyword specification.

    Raises:
        MatcherError: If the specification is malformed
    """
    if not spec:
        raise MatcherError("empty keyword specification")
    if spec.startswith(REGEX_PREFIX):
        pattern = spec[len(REGEX_PREFIX):]
        if not pattern:
            raise MatcherError("regex keyword without a pattern")
        return regex_matcher(pattern)
    if "," in spec:
        return all_keywords_matcher(spec)
    return substring_matcher(spec)
