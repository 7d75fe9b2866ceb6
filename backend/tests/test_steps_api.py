"""Tests for the api_call and api_endpoint steps."""

import json

import httpx
import pytest

from conftest import make_context, make_definition
from docflow.pipeline.errors import APIRequestError, StepConfigurationError
from docflow.pipeline.steps.api_call import ApiCallStep
from docflow.pipeline.steps.api_endpoint import ApiEndpointStep


def _api_call(config, services):
    return ApiCallStep(make_definition("api_call", config, name="Push to ERP"), services)


def _api_endpoint(config, services):
    return ApiEndpointStep(make_definition("api_endpoint", config, name="Look up order"), services)


@pytest.mark.unit
class TestApiCallStep:
    async def test_renders_url_and_body_and_maps_response(self, services, http):
        http.handler = lambda request: httpx.Response(200, json={"result": {"id": 7}})
        ctx = make_context({"invoiceNumber": "INV 42", "orders": [{"sku": "A"}]})
        step = _api_call({
            "url": "https://erp.example.com/invoices/{{invoiceNumber}}",
            "method": "post",
            "headers": {"X-Source": "docflow"},
            "requestBody": '{"id": "{{invoiceNumber}}", "data": {{extractedData}}, "orders": {{orders}}}',
            "responseDataMappings": [{"responsePath": "result.id", "updatePath": "erp.id"}],
        }, services)

        result = await step.execute(ctx)

        request = http.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://erp.example.com/invoices/INV%2042"
        assert request.headers["X-Source"] == "docflow"
        assert json.loads(request.content) == {
            "id": "INV 42",
            "data": {"invoiceNumber": "INV 42", "orders": [{"sku": "A"}]},
            "orders": [{"sku": "A"}],
        }
        assert ctx.get("erp.id") == 7
        assert ctx.last_api_response == {"result": {"id": 7}}
        assert result.output == {"result": {"id": 7}}

    async def test_body_values_escaped_for_json(self, services, http):
        ctx = make_context({"note": 'He said "hi"'})
        step = _api_call({"url": "https://x.example.com", "requestBody": '{"note": "{{note}}"}'}, services)
        await step.execute(ctx)
        assert json.loads(http.requests[0].content) == {"note": 'He said "hi"'}

    async def test_get_sends_no_body(self, services, http):
        step = _api_call({"url": "https://x.example.com", "method": "GET", "requestBody": '{"a": 1}'}, services)
        await step.execute(make_context())
        assert http.requests[0].content == b""

    async def test_non_success_status(self, services, http):
        http.handler = lambda request: httpx.Response(500, text="boom")
        step = _api_call({"url": "https://x.example.com"}, services)
        with pytest.raises(APIRequestError, match="API call failed with status 500: boom") as exc_info:
            await step.execute(make_context())
        assert exc_info.value.status_code == 500
        assert exc_info.value.step_name == "Push to ERP"

    async def test_empty_response_body(self, services, http):
        http.handler = lambda request: httpx.Response(200, text="")
        step = _api_call({"url": "https://x.example.com"}, services)
        with pytest.raises(APIRequestError, match="API returned empty response body"):
            await step.execute(make_context())

    async def test_non_object_response_wrapped(self, services, http):
        http.handler = lambda request: httpx.Response(200, json=[1, 2])
        step = _api_call({"url": "https://x.example.com"}, services)
        result = await step.execute(make_context())
        assert result.output == {"response": [1, 2]}

    async def test_mapping_through_scalar_is_skipped(self, services, http):
        http.handler = lambda request: httpx.Response(200, json={"a": 1, "b": 2})
        ctx = make_context({"invoiceNumber": "INV-1"})
        step = _api_call({
            "url": "https://x.example.com",
            "responseDataMappings": [
                {"responsePath": "a", "updatePath": "invoiceNumber.bad"},
                {"responsePath": "b", "updatePath": "good"},
                {"responsePath": "", "updatePath": "ignored"},
            ],
        }, services)
        await step.execute(ctx)
        assert ctx.get("invoiceNumber") == "INV-1"
        assert ctx.get("good") == 2
        assert ctx.get("ignored") is None


@pytest.mark.unit
class TestApiEndpointStep:
    config = {
        "apiPath": "/orders/{invoiceNumber}",
        "httpMethod": "get",
        "pathVariableConfig": {"invoiceNumber": "{{invoiceNumber}}"},
        "queryParameterConfig": {
            "$filter": {"enabled": True, "value": "name eq '{{customer}}'"},
            "$top": {"enabled": False, "value": "5"},
            "$select": {"enabled": True, "value": ""},
        },
        "responseDataMappings": [{"responsePath": "value[0].id", "updatePath": "orderId"}],
    }

    async def test_builds_request_from_profile(self, services, http):
        http.handler = lambda request: httpx.Response(200, json={"value": [{"id": "ORD-1"}]})
        ctx = make_context({"invoiceNumber": "INV-42", "customer": "O'Brien"})

        result = await _api_endpoint(self.config, services).execute(ctx)

        request = http.requests[0]
        assert request.method == "GET"
        assert request.headers["Authorization"] == "Bearer secret-token"
        assert request.url.path == "/orders/INV-42"
        assert request.url.params["$filter"] == "name eq 'O''Brien'"
        assert "$top" not in request.url.params
        assert result.output["url"] == "https://api.example.com/orders/INV-42?%24filter=name+eq+%27O%27%27Brien%27"
        assert result.output["extractedValues"] == {"orderId": "ORD-1"}
        assert result.output["updatedPaths"] == ["orderId"]
        assert ctx.get("orderId") == "ORD-1"

    async def test_missing_profile(self, services):
        step = _api_endpoint({"apiSourceType": "secondary", "secondaryApiId": "nope", "apiPath": "/x"}, services)
        with pytest.raises(StepConfigurationError, match="No API profile found"):
            await step.execute(make_context())

    async def test_failure_carries_redacted_request(self, services, http):
        http.handler = lambda request: httpx.Response(404, text="not found")
        ctx = make_context({"invoiceNumber": "INV-42", "customer": "ACME"})

        with pytest.raises(APIRequestError) as exc_info:
            await _api_endpoint(self.config, services).execute(ctx)

        attempted = exc_info.value.output_data["requestAttempted"]
        assert exc_info.value.output_data["responseStatus"] == 404
        assert attempted["headers"]["Authorization"] == "Bearer [REDACTED]"
        assert "secret-token" not in json.dumps(exc_info.value.output_data)

    async def test_path_variable_from_config(self, services, http):
        ctx = make_context({"order": {"id": "42"}})
        step = _api_endpoint({"apiPath": "/orders/{orderId}", "pathVariableConfig": {"orderId": "{{order.id}}"}}, services)

        result = await step.execute(ctx)

        assert result.output["url"] == "https://api.example.com/orders/42"

    async def test_path_variable_forms(self, services, http):
        ctx = make_context({"customer": "C-7", "order": {"id": "42"}})
        step = _api_endpoint({
            "apiPath": "/customers/${customerId}/orders/{orderId}/{lineId}",
            "pathVariableConfig": {
                "customerId": {"enabled": True, "value": "${customer}"},
                "orderId": {"value": "{{order.id}}"},
                "lineId": {"enabled": False, "value": "1"},
            },
        }, services)

        result = await step.execute(ctx)

        assert result.output["url"] == "https://api.example.com/customers/C-7/orders/42/{lineId}"

    async def test_unresolved_path_variable_kept(self, services, http):
        step = _api_endpoint({"apiPath": "/orders/{orderId}", "pathVariableConfig": {"orderId": "{{missing}}"}}, services)

        result = await step.execute(make_context({}))

        assert result.output["url"] == "https://api.example.com/orders/{{missing}}"

    async def test_post_body_from_field_mappings(self, services, http):
        ctx = make_context({"invoiceNumber": "INV-42", "total": "1250.50", "qty": "3 boxes", "paid": True})
        step = _api_endpoint({
            "apiPath": "/orders",
            "httpMethod": "POST",
            "requestBodyTemplate": '{"ref": "", "meta": {"source": "docflow"}}',
            "requestBodyFieldMappings": [
                {"fieldName": "ref", "type": "variable", "value": "{{invoiceNumber}}"},
                {"fieldName": "amount.total", "type": "variable", "value": "total", "dataType": "number"},
                {"fieldName": "amount.qty", "type": "variable", "value": "qty", "dataType": "integer"},
                {"fieldName": "paid", "type": "variable", "value": "paid", "dataType": "boolean"},
                {"fieldName": "meta.channel", "type": "hardcoded", "value": "email"},
                {"fieldName": "missing", "type": "variable", "value": "{{nope}}"},
                {"fieldName": "ignored", "type": "formula", "value": "1+1"},
            ],
        }, services)

        await step.execute(ctx)

        request = http.requests[0]
        assert request.method == "POST"
        assert json.loads(request.content) == {
            "ref": "INV-42",
            "meta": {"source": "docflow", "channel": "email"},
            "amount": {"total": 1250.5, "qty": 3},
            "paid": True,
        }

    async def test_invalid_body_template_sent_unchanged(self, services, http):
        step = _api_endpoint({
            "apiPath": "/orders",
            "httpMethod": "PUT",
            "requestBodyTemplate": "{not json",
            "requestBodyFieldMappings": [{"fieldName": "ref", "type": "hardcoded", "value": "x"}],
        }, services)

        await step.execute(make_context({}))

        assert http.requests[0].content == b"{not json"

    async def test_get_sends_no_body(self, services, http):
        step = _api_endpoint({"apiPath": "/orders", "requestBodyTemplate": '{"a": 1}'}, services)

        await step.execute(make_context({}))

        assert http.requests[0].content == b""

    @pytest.mark.parametrize("response", [
        httpx.Response(204),
        httpx.Response(200, text="   "),
    ])
    async def test_empty_response_is_success(self, services, http, response):
        http.handler = lambda request: response
        ctx = make_context({})

        result = await _api_endpoint({"apiPath": "/ping"}, services).execute(ctx)

        assert result.output["responseStatus"] == response.status_code
        assert ctx.last_api_response == {"success": True, "emptyResponse": True}

    async def test_non_json_response_kept_raw(self, services, http):
        http.handler = lambda request: httpx.Response(200, text="OK")
        ctx = make_context({})
        step = _api_endpoint({
            "apiPath": "/ping",
            "responseDataMappings": [{"responsePath": "rawResponse", "updatePath": "pingReply"}],
        }, services)

        await step.execute(ctx)

        assert ctx.last_api_response == {"rawResponse": "OK"}
        assert ctx.get("pingReply") == "OK"
