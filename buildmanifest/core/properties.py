"""
Reader and writer for the Java properties format.

Android tooling keeps signing credentials and build switches in
``.properties`` files (``key.properties``, ``gradle.properties``). This module
implements the subset of ``java.util.Properties`` those files use: ``#``/``!``
comments, ``=``/``:``/whitespace separators, backslash line continuation and
the standard escapes including ``\\uXXXX``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping

from .exceptions import ManifestParseError

_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}
_SEPARATORS = "=:"
_WHITESPACE = " \t\f"


def _logical_lines(text: str) -> list[tuple[int, str]]:
    """Join continuation lines, returning (first line number, logical line) pairs."""
    lines: list[tuple[int, str]] = []
    pending: list[str] = []
    start = 0

    for number, raw in enumerate(text.splitlines(), start=1):
        line = raw.lstrip(_WHITESPACE) if pending else raw
        if not pending:
            stripped = line.lstrip(_WHITESPACE)
            if not stripped or stripped[0] in "#!":
                continue
            line = stripped
            start = number

        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2 == 1:
            pending.append(line[:-1])
            continue

        pending.append(line)
        lines.append((start, "".join(pending)))
        pending = []

    if pending:
        lines.append((start, "".join(pending)))
    return lines


def _unescape(text: str, line_number: int, source: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(text):
        char = text[i]
        if char != "\\" or i + 1 >= len(text):
            out.append(char)
            i += 1
            continue

        nxt = text[i + 1]
        if nxt == "u":
            digits = text[i + 2:i + 6]
            try:
                if len(digits) != 4:
                    raise ValueError(digits)
                out.append(chr(int(digits, 16)))
            except ValueError as e:
                raise ManifestParseError(
                    message=f"Malformed \\uXXXX escape: '\\u{digits}'",
                    source_path=source,
                    line_number=line_number,
                    cause=e,
                )
            i += 6
        else:
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2
    return "".join(out)


def _split_key(line: str) -> tuple[str, str]:
    """Split a logical line at the first unescaped separator."""
    i = 0
    while i < len(line):
        char = line[i]
        if char == "\\":
            i += 2
            continue
        if char in _SEPARATORS or char in _WHITESPACE:
            break
        i += 1

    key = line[:i]
    rest = line[i:].lstrip(_WHITESPACE)
    if rest and rest[0] in _SEPARATORS:
        rest = rest[1:].lstrip(_WHITESPACE)
    return key, rest


def loads(text: str, source: str = "") -> dict[str, str]:
    """Parse properties text into an ordered mapping.

    Later duplicates of a key replace earlier ones, as in ``java.util.Properties``.

    Raises:
        ManifestParseError: On a malformed unicode escape.
    """
    values: dict[str, str] = {}
    for line_number, line in _logical_lines(text):
        raw_key, raw_value = _split_key(line)
        key = _unescape(raw_key, line_number, source)
        values[key] = _unescape(raw_value, line_number, source)
    return values


def load(path: Path) -> dict[str, str]:
    """Read and parse a properties file.

    Raises:
        ManifestParseError: If the file cannot be read or decoded.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestParseError(
            message=f"Cannot read properties file: {e}",
            source_path=str(path),
            cause=e,
        )
    return loads(text, source=str(path))


def _escape(text: str, is_key: bool) -> str:
    out: list[str] = []
    for index, char in enumerate(text):
        if char == "\\":
            out.append("\\\\")
        elif char in "\t\n\r\f":
            out.append("\\" + {"\t": "t", "\n": "n", "\r": "r", "\f": "f"}[char])
        elif char == " " and (is_key or index == 0):
            out.append("\\ ")
        elif char in "=:#!" and (is_key or index == 0):
            out.append("\\" + char)
        else:
            out.append(char)
    return "".join(out)


def dumps(values: Mapping[str, object], header: str | None = None) -> str:
    """Render a mapping as properties text, one ``key=value`` pair per line."""
    lines = [f"# {header}"] if header else []
    for key, value in values.items():
        lines.append(f"{_escape(key, True)}={_escape(str(value), False)}")
    return "\n".join(lines) + "\n"
