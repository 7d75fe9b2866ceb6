"""
ApiCallStep: call an arbitrary HTTP API with values from the context.

The URL and request body are templates.  URL placeholder values are
percent-encoded; body placeholder values are escaped for use inside JSON
string literals.  Two whole-value markers are reserved in the body:

    {{extractedData}}  the extracted record as JSON (or the raw text for CSV)
    {{orders}}         the context's ``orders`` list as JSON

The parsed JSON response becomes ``ctx.last_api_response`` and is copied
into the context through ``responseDataMappings``.
"""

from __future__ import annotations

import json
from typing import Any

import httpx

from docflow.core.constants import APIRequestMethod
from docflow.core.logging import get_logger
from docflow.pipeline.context import StepResult, WorkflowContext
from docflow.pipeline.definitions import ApiCallConfig
from docflow.pipeline.errors import APIRequestError
from docflow.pipeline.step import WorkflowStep
from docflow.pipeline.steps.response_mapping import apply_response_mappings, parse_json_response
from docflow.pipeline.templating import encode_json_string, encode_url_component, escape_odata, render

logger = get_logger(__name__)

EXTRACTED_DATA_MARKER = "{{extractedData}}"
ORDERS_MARKER = "{{orders}}"
_RESERVED_BODY_PATHS = ("extractedData", "orders")


class ApiCallStep(WorkflowStep):
    description = "Call an HTTP API and map the response into the context"

    async def execute(self, ctx: WorkflowContext) -> StepResult:
        started_at = self._now()
        config: ApiCallConfig = self.config
        escape = escape_odata if config.escape_single_quotes_in_body else None

        url = render(config.url, ctx.get, escape=escape, encode=encode_url_component)
        body = self._build_body(ctx, config, escape)
        method = config.method or APIRequestMethod.POST
        send_body = method != APIRequestMethod.GET and bool(body.strip())

        logger.info(
            "Making API request",
            step=self.name,
            method=method,
            url=url.result,
            has_body=send_body,
            unresolved=url.missing_paths,
        )

        try:
            async with self.services.http_client() as client:
                response = await client.request(
                    method,
                    url.result,
                    headers=config.headers,
                    content=body if send_body else None,
                )
        except httpx.HTTPError as exc:
            raise APIRequestError(
                f"API call failed: {exc}",
                **self._error_context(ctx),
            ) from exc

        if not response.is_success:
            raise APIRequestError(
                f"API call failed with status {response.status_code}: {response.text}",
                status_code=response.status_code,
                response_body=response.text,
                **self._error_context(ctx),
            )

        response_data = parse_json_response(response, **self._error_context(ctx))
        ctx.last_api_response = response_data

        applied = apply_response_mappings(ctx, response_data, config.response_data_mappings)

        logger.info(
            "API request successful",
            step=self.name,
            status_code=response.status_code,
            mappings_applied=len(applied),
        )
        return self._success(started_at, output=_as_output(response_data))

    def _build_body(self, ctx: WorkflowContext, config: ApiCallConfig, escape) -> str:
        rendered = render(
            config.request_body,
            ctx.get,
            escape=escape,
            encode=encode_json_string,
            passthrough=_RESERVED_BODY_PATHS,
        ).result

        if EXTRACTED_DATA_MARKER in rendered:
            rendered = rendered.replace(EXTRACTED_DATA_MARKER, _serialise_extracted(ctx))

        if ORDERS_MARKER in rendered:
            orders = ctx.get("orders")
            if isinstance(orders, list):
                rendered = rendered.replace(ORDERS_MARKER, json.dumps(orders, ensure_ascii=False))
        return rendered


def _serialise_extracted(ctx: WorkflowContext) -> str:
    payload = ctx.extracted_payload()
    if isinstance(payload, (dict, list)):
        return json.dumps(payload, ensure_ascii=False)
    original = ctx.get("originalExtractedData")
    if isinstance(original, str):
        return original
    return json.dumps(payload, ensure_ascii=False)


def _as_output(response_data: Any) -> dict[str, Any]:
    if isinstance(response_data, dict):
        return response_data
    return {"response": response_data}
