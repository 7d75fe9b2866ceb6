"""
Path resolver: read and write nested values by dotted path.

Paths look like ``orders[0].lineItems[2].sku`` or ``orders.0.sku``:

    - segments are separated by dots
    - a segment may carry one or more bracketed indices (``items[1][0]``)
    - a purely numeric segment indexes a list (and is a plain key on a dict)

Reads never raise: anything missing along the way yields None.
Writes create what is missing: dicts for named segments, lists for
bracketed indices, padding short lists with empty dicts.
"""

from __future__ import annotations

import re
from typing import Any

from docflow.pipeline.errors import PathError

_SEGMENT_RE = re.compile(r"^([^\[\]]*)((?:\[\d+\])*)$")
_INDEX_RE = re.compile(r"\[(\d+)\]")

Token = str | int


def parse_path(path: str) -> list[Token]:
    """
    Split a path into tokens: str for keys, int for bracketed indices.

    Malformed segments (unbalanced brackets) are kept whole as plain keys.
    """
    tokens: list[Token] = []
    for segment in path.strip().split("."):
        if segment == "":
            continue
        match = _SEGMENT_RE.match(segment)
        if match is None:
            tokens.append(segment)
            continue
        name, indices = match.groups()
        if name:
            tokens.append(name)
        tokens.extend(int(i) for i in _INDEX_RE.findall(indices))
    return tokens


def _list_index(key: Token) -> int | None:
    if isinstance(key, int):
        return key
    if key.isdigit():
        return int(key)
    return None


def get_value(data: Any, path: str) -> Any:
    """Return the value at `path`, or None when any segment is missing."""
    if data is None or not path:
        return None

    current = data
    for key in parse_path(path):
        if isinstance(current, list):
            index = _list_index(key)
            if index is None or index >= len(current):
                return None
            current = current[index]
        elif isinstance(current, dict):
            lookup = str(key) if isinstance(key, int) else key
            if lookup not in current:
                return None
            current = current[lookup]
        else:
            return None
        if current is None:
            return None
    return current


def set_value(data: dict[str, Any], path: str, value: Any) -> None:
    """
    Write `value` at `path`, creating intermediate containers.

    Raises:
        PathError: if the path is empty or runs through a scalar.
    """
    tokens = parse_path(path)
    if not tokens:
        raise PathError(f"Cannot write to empty path '{path}'")

    current: Any = data
    for position, key in enumerate(tokens[:-1]):
        next_key = tokens[position + 1]
        current = _descend(current, key, next_key, path)
    _assign(current, tokens[-1], value, path)


def _descend(current: Any, key: Token, next_key: Token, path: str) -> Any:
    """Step one level down, creating the child container if it is missing."""
    fresh: Any = [] if isinstance(next_key, int) else {}

    if isinstance(current, list):
        index = _list_index(key)
        if index is None:
            raise PathError(f"Key '{key}' used on a list in path '{path}'")
        _pad(current, index)
        child = current[index]
        if child is None:
            current[index] = child = fresh
    elif isinstance(current, dict):
        lookup = str(key) if isinstance(key, int) else key
        child = current.get(lookup)
        if child is None:
            current[lookup] = child = fresh
    else:
        raise PathError(f"Path '{path}' runs through a non-container value at '{key}'")

    if not isinstance(child, (dict, list)):
        raise PathError(f"Path '{path}' runs through a non-container value at '{key}'")
    return child


def _assign(current: Any, key: Token, value: Any, path: str) -> None:
    if isinstance(current, list):
        index = _list_index(key)
        if index is None:
            raise PathError(f"Key '{key}' used on a list in path '{path}'")
        _pad(current, index)
        current[index] = value
    elif isinstance(current, dict):
        current[str(key) if isinstance(key, int) else key] = value
    else:
        raise PathError(f"Path '{path}' runs through a non-container value at '{key}'")


def _pad(items: list[Any], index: int) -> None:
    while len(items) <= index:
        items.append({})
