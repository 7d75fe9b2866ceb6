"""
ApiEndpointStep: call a configured API profile (main or secondary).

The base URL and bearer token come from the credential store.  The step
config supplies the path, its path variables, the method, enabled query
parameters, an optional JSON body with typed field mappings, and response
mappings.  On failure the exact request that was attempted is attached to
the step log, with the token redacted.

Unlike api_call, a 2xx response that is empty or not JSON does not fail the
step: it becomes ``{"success": true, "emptyResponse": true}`` or
``{"rawResponse": <text>}``.
"""

from __future__ import annotations

import json
import re
from typing import Any
from urllib.parse import urlencode

import httpx

from docflow.core.logging import get_logger
from docflow.pipeline.context import StepResult, WorkflowContext
from docflow.pipeline.definitions import ApiEndpointConfig, RequestBodyFieldMapping
from docflow.pipeline.errors import APIRequestError, StepConfigurationError
from docflow.pipeline.interfaces import ApiProfile
from docflow.pipeline.step import WorkflowStep
from docflow.pipeline.steps.response_mapping import apply_response_mappings
from docflow.pipeline.templating import QUERY_VARIABLE, escape_filter, render

logger = get_logger(__name__)

FILTER_PARAMETER = "$filter"

_LEADING_INT = re.compile(r"\s*[+-]?\d+")
_LEADING_FLOAT = re.compile(r"\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


class ApiEndpointStep(WorkflowStep):
    description = "Call a configured API profile endpoint"

    async def execute(self, ctx: WorkflowContext) -> StepResult:
        started_at = self._now()
        config: ApiEndpointConfig = self.config

        profile = await self.services.credentials.get_api_profile(
            config.api_source_type, config.secondary_api_id
        )
        if profile is None or not profile.base_url:
            raise StepConfigurationError(
                f"No API profile found for source '{config.api_source_type}'"
                + (f" (id {config.secondary_api_id})" if config.secondary_api_id else ""),
                **self._error_context(ctx),
            )

        api_path = self._substitute_path_variables(ctx, config)
        query_string = self._build_query(ctx, config)
        base_url = profile.base_url.rstrip("/") if api_path.startswith("/") else profile.base_url
        url = f"{base_url}{api_path}" + (f"?{query_string}" if query_string else "")
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {profile.bearer_token or ''}",
        }
        body = build_request_body(ctx, config.request_body_template, config.request_body_field_mappings)
        content = body if config.http_method != "GET" and body.strip() else None
        attempted = {
            "url": url,
            "method": config.http_method,
            "baseUrl": profile.base_url,
            "apiPath": api_path,
            "queryString": query_string,
            "headers": _redacted_headers(profile),
        }

        logger.info(
            "Calling API endpoint",
            step=self.name,
            method=config.http_method,
            url=url,
            has_body=content is not None,
        )

        try:
            async with self.services.http_client() as client:
                response = await client.request(config.http_method, url, headers=headers, content=content)
        except httpx.HTTPError as exc:
            raise APIRequestError(
                f"API endpoint request failed: {exc}",
                output_data={"requestAttempted": attempted, "responseStatus": None, "error": str(exc)},
                **self._error_context(ctx),
            ) from exc

        if not response.is_success:
            message = f"API call failed with status {response.status_code}: {response.text}"
            raise APIRequestError(
                message,
                status_code=response.status_code,
                response_body=response.text,
                output_data={
                    "requestAttempted": attempted,
                    "responseStatus": response.status_code,
                    "error": message,
                },
                **self._error_context(ctx),
            )

        response_data = self._read_response(response)
        ctx.last_api_response = response_data
        applied = apply_response_mappings(ctx, response_data, config.response_data_mappings)

        return self._success(started_at, output={
            "url": url,
            "method": config.http_method,
            "responseStatus": response.status_code,
            "extractedValues": applied,
            "updatedPaths": list(applied),
        })

    @staticmethod
    def _substitute_path_variables(ctx: WorkflowContext, config: ApiEndpointConfig) -> str:
        """Replace the first ``{name}`` (else ``${name}``) of each enabled variable."""
        api_path = config.api_path
        for name, variable in config.path_variable_config.items():
            if variable.enabled is False or not variable.value:
                continue
            value = render(variable.value, ctx.get, pattern=QUERY_VARIABLE).result
            for placeholder in (f"{{{name}}}", f"${{{name}}}"):
                if placeholder in api_path:
                    api_path = api_path.replace(placeholder, value, 1)
                    break
        return api_path

    def _build_query(self, ctx: WorkflowContext, config: ApiEndpointConfig) -> str:
        """Enabled, non-empty parameters with their values rendered from the context."""
        pairs: list[tuple[str, str]] = []
        for name, parameter in config.query_parameter_config.items():
            if not parameter.enabled or not parameter.value:
                continue
            escape = escape_filter if name.lower() == FILTER_PARAMETER else None
            value = render(parameter.value, ctx.get, pattern=QUERY_VARIABLE, escape=escape).result
            pairs.append((name, value))
        return urlencode(pairs)

    def _read_response(self, response: httpx.Response) -> Any:
        text = response.text
        if not text.strip():
            logger.info("API endpoint returned an empty body", step=self.name, status=response.status_code)
            return {"success": True, "emptyResponse": True}
        try:
            return json.loads(text)
        except ValueError as exc:
            logger.warning("API endpoint response is not JSON, keeping raw text", step=self.name, error=str(exc))
            return {"rawResponse": text}


def build_request_body(
    ctx: WorkflowContext,
    template: str,
    mappings: list[RequestBodyFieldMapping],
) -> str:
    """
    Fill a JSON body template from field mappings.

    ``hardcoded`` mappings use their literal value, ``variable`` mappings
    read a context path (``{{ }}`` optional).  Values are coerced to the
    mapping's data type and written at its dotted field name.  A template
    that is not valid JSON is sent unchanged.
    """
    if not mappings or not template:
        return template
    try:
        body = json.loads(template)
    except ValueError as exc:
        logger.error("Request body template is not valid JSON, sending it unchanged", error=str(exc))
        return template
    if not isinstance(body, dict):
        logger.error("Request body template is not a JSON object, sending it unchanged")
        return template

    for mapping in mappings:
        if mapping.type == "hardcoded":
            value = mapping.value
        elif mapping.type == "variable":
            path = re.sub(r"^\{\{|\}\}$", "", str(mapping.value or ""))
            value = ctx.get(path)
        else:
            continue
        if value is None or not mapping.field_name:
            continue

        parts = mapping.field_name.split(".")
        target = body
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            target = target[part]
        target[parts[-1]] = _coerce(value, mapping.data_type)

    return json.dumps(body)


def _coerce(value: Any, data_type: str) -> Any:
    text = str(value).lower() if isinstance(value, bool) else str(value)
    if data_type == "integer":
        match = _LEADING_INT.match(text)
        return int(match.group(0)) if match else None
    if data_type == "number":
        match = _LEADING_FLOAT.match(text)
        return float(match.group(0)) if match else None
    if data_type == "boolean":
        return text.lower() == "true"
    return text


def _redacted_headers(profile: ApiProfile) -> dict[str, Any]:
    return {
        "Content-Type": "application/json",
        "Authorization": "Bearer [REDACTED]" if profile.bearer_token else "MISSING",
    }
