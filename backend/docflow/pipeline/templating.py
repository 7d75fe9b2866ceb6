"""
Template substitution for step configuration strings.

Every placeholder is resolved through a caller-supplied `resolve(path)`
function (usually WorkflowContext.get).  Unresolved placeholders stay in
the output untouched; each resolved path is recorded with its raw value so
step logs can show exactly which data went where.

Three placeholder syntaxes are in use:

    {{path}}             everything (DOUBLE_BRACE, the default)
    {{name}} / ${name}   api_endpoint path variable and query values (QUERY_VARIABLE)
    {path}               step-log user responses (SINGLE_BRACE)
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Collection
from urllib.parse import quote

DOUBLE_BRACE = re.compile(r"\{\{([^}]+)\}\}")
QUERY_VARIABLE = re.compile(r"\{\{([^}]+)\}\}|\$\{([^}]+)\}")
SINGLE_BRACE = re.compile(r"\{([^{}]+)\}")

Resolver = Callable[[str], Any]
Escaper = Callable[[str], str]


@dataclass
class RenderResult:
    """Rendered text plus the paths that did and did not resolve."""

    result: str
    resolved_paths: dict[str, Any] = field(default_factory=dict)
    missing_paths: list[str] = field(default_factory=list)

    @property
    def field_mappings(self) -> dict[str, Any]:
        """Every placeholder path, unresolved ones mapped to None."""
        mappings: dict[str, Any] = {path: None for path in self.missing_paths}
        mappings.update(self.resolved_paths)
        return mappings


# ─── Value formatting ─────────────────────────────────

def stringify(value: Any) -> str:
    """Render a context value the way it appears inside text."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def escape_odata(value: str) -> str:
    """Double single quotes for OData string literals."""
    return value.replace("'", "''")


def escape_filter(value: str) -> str:
    """Escaping for a $filter query value: split adjacent groups, then OData quotes."""
    return escape_odata(value.replace(")(", ")-("))


def encode_url_component(value: str) -> str:
    """Percent-encode everything except unreserved characters."""
    return quote(value, safe="!~*'()")


def encode_json_string(value: str) -> str:
    """Escape a value for placement inside an existing JSON string literal."""
    return json.dumps(value, ensure_ascii=False)[1:-1]


# ─── Rendering ────────────────────────────────────────

def extract_placeholders(template: str, pattern: re.Pattern = DOUBLE_BRACE) -> list[str]:
    """Return the (trimmed) paths referenced by a template, in order."""
    return [_path_of(match) for match in pattern.finditer(template or "")]


def render(
    template: str | None,
    resolve: Resolver,
    *,
    pattern: re.Pattern = DOUBLE_BRACE,
    escape: Escaper | None = None,
    encode: Escaper | None = None,
    passthrough: Collection[str] = (),
) -> RenderResult:
    """
    Replace every placeholder in `template` with its resolved value.

    Args:
        template: Text containing placeholders.  None renders as "".
        resolve: Maps a path to a value; None means unresolved.
        pattern: Placeholder syntax; the first non-empty group is the path.
        escape: Applied to the stringified value first (e.g. OData quotes).
        encode: Applied after `escape` (URL encoding, JSON-string escaping).
        passthrough: Paths left untouched and unrecorded for the caller to handle.
    """
    outcome = RenderResult(result="")

    def _replace(match: re.Match) -> str:
        path = _path_of(match)
        if path in passthrough:
            return match.group(0)

        value = resolve(path)
        if value is None:
            if path not in outcome.missing_paths:
                outcome.missing_paths.append(path)
            return match.group(0)

        outcome.resolved_paths[path] = value
        text = stringify(value)
        if escape is not None:
            text = escape(text)
        if encode is not None:
            text = encode(text)
        return text

    outcome.result = pattern.sub(_replace, template or "")
    return outcome


def _path_of(match: re.Match) -> str:
    for group in match.groups():
        if group is not None:
            return group.strip()
    return ""
