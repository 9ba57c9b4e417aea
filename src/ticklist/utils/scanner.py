"""
Permissive key:value scanning shared by every document codec.

Documents are hand-editable, so nothing here raises: malformed lines are
skipped and malformed numbers fall back to a caller-supplied default.
"""

import re
from typing import Dict, Iterable, Iterator, Optional, Tuple

# "key: value" or "- key: value"; keys are identifier-like
_KEY_VALUE_LINE = re.compile(r"^(?:-\s+)?([A-Za-z_][\w-]*):\s?(.*)$")

_LEADING_INT = re.compile(r"^\s*(-?\d+)")


def parse_int(value: Optional[str], default):
    """
    Parse the leading integer of ``value``.

    Mirrors the lenient parsing the documents were written against: trailing
    garbage is ignored ("12ms" -> 12) and anything without a leading number
    yields ``default``.
    """
    if value is None:
        return default
    m = _LEADING_INT.match(value)
    if not m:
        return default
    return int(m.group(1))


def split_key_value(line: str) -> Optional[Tuple[str, str]]:
    """Return (key, value) for a ``key: value`` / ``- key: value`` line, else None."""
    m = _KEY_VALUE_LINE.match(line.strip())
    if not m:
        return None
    return m.group(1), m.group(2).strip()


def scan_key_values(lines: Iterable[str]) -> Iterator[Tuple[str, str]]:
    """Yield (key, value) for every line that looks like a key:value pair."""
    for line in lines:
        pair = split_key_value(line)
        if pair:
            yield pair


def parse_metadata(meta: str) -> Dict[str, str]:
    """
    Tokenize a comma-separated ``key:value`` list.

    Each token is split on its first colon. Tokens without a colon or with an
    empty key are dropped; when a key repeats, the first occurrence wins.
    """
    fields: Dict[str, str] = {}
    for token in meta.split(","):
        key, sep, value = token.partition(":")
        key = key.strip()
        if not sep or not key:
            continue
        fields.setdefault(key, value.strip())
    return fields


def format_metadata(fields: Iterable[Tuple[str, object]]) -> str:
    """Render ordered (key, value) pairs back into ``key:value,key:value``."""
    return ",".join(f"{key}:{value}" for key, value in fields)
