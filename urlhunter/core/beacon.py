"""
Beacon dump parsing.

URLTeam dumps are BEACON-style text files: an optional header block of
``#KEY: value`` lines followed by one pipe-delimited mapping per line.
This module turns a raw line plus its file's header into a
source/target pair.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

from urlhunter.core.errors import BeaconParseError
from urlhunter.utils.validators import is_url


URL_SCHEMES = ("http://", "https://")
MAX_FIELDS = 3

HEADER_KEYS = {
    "#PREFIX": "prefix",
    "#TARGET": "target",
    "#RELATION": "relation",
    "#MESSAGE": "message",
    "#ANNOTATION": "annotation",
}


@dataclass(frozen=True)
class BeaconMetadata:
    prefix: str = ""
    target: str = ""
    relation: str = ""
    message: str = ""
    annotation: str = ""


@dataclass(frozen=True)
class BeaconLine:
    source: str
    target: str

    def render(self) -> str:
        return f"{self.source},{self.target}"


def parse_header_lines(lines) -> BeaconMetadata:
    """
    Build metadata from the leading ``#`` lines of a dump.

    Iteration stops at the first line that does not start with ``#``.
    Lines without a colon and unknown keys are ignored.
    """
    values = {}
    for line in lines:
        line = line.rstrip("\r\n")
        if not line.startswith("#"):
            break
        key, sep, value = line.partition(":")
        if not sep:
            continue
        field = HEADER_KEYS.get(key)
        if field:
            values[field] = value.strip()
    return BeaconMetadata(**values)


def read_metadata(path: Union[str, Path]) -> BeaconMetadata:
    """Read the header block of a dump file."""
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return parse_header_lines(f)


def split_fields(line: str) -> List[str]:
    """
    Split a line on ``|`` without breaking URLs apart.

    Once an ``http://`` or ``https://`` prefix is seen, pipes are part of
    the URL until the next whitespace character.
    """
    fields = []
    start = 0
    in_url = False
    i = 0
    length = len(line)
    while i < length:
        if line.startswith(URL_SCHEMES, i):
            in_url = True
            i += 1
            continue
        char = line[i]
        if in_url and char.isspace():
            in_url = False
        elif char == "|" and not in_url:
            fields.append(line[start:i].strip())
            start = i + 1
        i += 1
    fields.append(line[start:].strip())
    return fields


def join_urls(base: str, path: str) -> str:
    """Join two parts with exactly one slash between them."""
    return base.rstrip("/") + "/" + path.lstrip("/")


def apply_header(value: str, stem: str) -> str:
    """
    Combine a header PREFIX/TARGET value with a line stem.

    A URL header value is the base and the stem is appended to it;
    otherwise the stem is the base and the header value is appended.
    A stem that already carries the header value is returned as is.
    """
    if not value:
        return stem
    if is_url(value):
        base = value.rstrip("/")
        if stem == base or stem.startswith(base + "/"):
            return stem
        return join_urls(value, stem)
    suffix = value.lstrip("/")
    if stem.endswith("/" + suffix):
        return stem
    return join_urls(stem, value)


def parse_line(line: str, metadata: BeaconMetadata) -> BeaconLine:
    """
    Parse one dump line into a source/target pair.

    Raises:
        BeaconParseError: If the line holds more than three fields
    """
    fields = split_fields(line)
    if len(fields) > MAX_FIELDS:
        raise BeaconParseError("invalid line: too many parts")

    source = fields[0]
    if len(fields) == 2 and is_url(fields[1]):
        target = fields[1]
    elif len(fields) == 3:
        target = fields[2]
    else:
        target = fields[0]

    return BeaconLine(
        source=apply_header(metadata.prefix, source),
        target=apply_header(metadata.target, target),
    )
