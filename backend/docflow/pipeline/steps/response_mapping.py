"""
Shared helpers for steps that call HTTP APIs: JSON body parsing and
copying response values into the context.
"""

from __future__ import annotations

import json
from typing import Any

import httpx

from docflow.core.logging import get_logger
from docflow.pipeline.context import WorkflowContext
from docflow.pipeline.definitions import ResponseMapping
from docflow.pipeline.errors import APIRequestError, PathError
from docflow.pipeline.paths import get_value

logger = get_logger(__name__)


def parse_json_response(response: httpx.Response, **error_context: Any) -> Any:
    """
    Decode a response body as JSON.

    Raises:
        APIRequestError: body is empty or not JSON.
    """
    text = response.text
    if not text.strip():
        raise APIRequestError(
            "API returned empty response body",
            status_code=response.status_code,
            response_body=text,
            **error_context,
        )
    try:
        return json.loads(text)
    except ValueError as exc:
        raise APIRequestError(
            f"API response is not valid JSON: {exc}",
            status_code=response.status_code,
            response_body=text[:500],
            **error_context,
        ) from exc


def apply_response_mappings(
    ctx: WorkflowContext,
    response_data: Any,
    mappings: list[ResponseMapping],
) -> dict[str, Any]:
    """
    Copy values from `response_data` into the context.

    Incomplete mappings are skipped.  A mapping whose write path crosses a
    scalar is logged and skipped; the remaining mappings still apply.

    Returns:
        {updatePath: value} for every mapping that was written.
    """
    applied: dict[str, Any] = {}
    for mapping in mappings:
        if not mapping.is_complete:
            logger.warning(
                "Skipping incomplete response mapping",
                response_path=mapping.response_path,
                update_path=mapping.update_path,
            )
            continue

        value = get_value(response_data, mapping.response_path)
        try:
            ctx.set(mapping.update_path, value)
        except PathError as exc:
            logger.warning(
                "Response mapping could not be written",
                update_path=mapping.update_path,
                error=str(exc),
            )
            continue

        applied[mapping.update_path] = value
        logger.debug(
            "Response value mapped",
            response_path=mapping.response_path,
            update_path=mapping.update_path,
            found=value is not None,
        )
    return applied
