"""Tests for the HTTP API (FastAPI app over httpx.ASGITransport)."""

from datetime import datetime, timezone

import httpx
import pytest
import pytest_asyncio

from conftest import step_record
from docflow.api.deps import get_db, get_workflow_engine
from docflow.main import app
from docflow.pipeline.engine import WorkflowEngine
from docflow.repositories import execution_logs as log_repo


@pytest_asyncio.fixture
async def client(definition_store, log_store, services, session_factory):
    engine = WorkflowEngine(definition_store=definition_store, log_store=log_store, services=services)

    async def _get_db():
        async with session_factory() as session:
            yield session
            await session.commit()

    app.dependency_overrides[get_workflow_engine] = lambda: engine
    app.dependency_overrides[get_db] = _get_db
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.mark.integration
class TestHealth:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


@pytest.mark.integration
class TestExecuteWorkflow:
    async def test_success(self, client, definition_store):
        definition_store.steps["wf-1"] = [
            step_record("s1", 1, "rename_file", {"filenameTemplate": "{{invoiceNumber}}", "renameJson": True}),
        ]

        response = await client.post("/api/v1/workflows/execute", json={
            "workflowId": "wf-1",
            "extractedData": {"invoiceNumber": "INV-42"},
            "pdfFilename": "scan.pdf",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["outputFilename"] == "INV-42.json"
        assert body["workflowExecutionLogId"] == "execution-1"
        assert body["finalContext"]["extractedData"]["invoiceNumber"] == "INV-42"

    async def test_step_failure_returns_500(self, client, definition_store, http):
        http.handler = lambda request: httpx.Response(502, text="bad gateway")
        definition_store.steps["wf-1"] = [step_record("s1", 1, "api_call", {"url": "https://erp.example.com"})]

        response = await client.post("/api/v1/workflows/execute", json={"workflowId": "wf-1", "extractedData": {}})

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Workflow execution failed"
        assert body["details"] == "API call failed with status 502: bad gateway"
        assert body["failedStepId"] == "s1"

    async def test_invalid_json(self, client):
        response = await client.post(
            "/api/v1/workflows/execute",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid JSON body"

    async def test_missing_data_source(self, client):
        response = await client.post("/api/v1/workflows/execute", json={"workflowId": "wf-1"})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request payload"


@pytest.mark.integration
class TestExecutions:
    async def _seed(self, session_factory):
        async with session_factory() as session:
            run = await log_repo.create_execution_log(
                session, workflow_id="wf-1", status="failed", error_message="boom",
                context_data={"invoiceNumber": "INV-42"},
                started_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            )
            await log_repo.create_execution_log(
                session, workflow_id="wf-2", status="completed",
                started_at=datetime(2024, 1, 2, tzinfo=timezone.utc),
            )
            await log_repo.create_step_log(
                session, workflow_execution_log_id=run.id, workflow_id="wf-1", step_id="s1",
                step_name="Push", step_type="api_call", step_order=1, status="failed",
                started_at=datetime(2024, 1, 1, tzinfo=timezone.utc), error_message="boom",
                output_data={"error": "boom"},
            )
            run_id = run.id
            await session.commit()
            return run_id

    async def test_list(self, client, session_factory):
        await self._seed(session_factory)

        response = await client.get("/api/v1/executions")
        body = response.json()

        assert response.status_code == 200
        assert body["total"] == 2
        assert [row["workflow_id"] for row in body["data"]] == ["wf-2", "wf-1"]

        filtered = (await client.get("/api/v1/executions", params={"status": "failed"})).json()
        assert [row["workflow_id"] for row in filtered["data"]] == ["wf-1"]

    async def test_detail(self, client, session_factory):
        run_id = await self._seed(session_factory)

        response = await client.get(f"/api/v1/executions/{run_id}")
        body = response.json()

        assert response.status_code == 200
        assert body["error_message"] == "boom"
        assert body["context_data"] == {"invoiceNumber": "INV-42"}
        assert [step["step_id"] for step in body["steps"]] == ["s1"]
        assert body["steps"][0]["output_data"] == {"error": "boom"}

    async def test_detail_not_found(self, client):
        response = await client.get("/api/v1/executions/does-not-exist")
        assert response.status_code == 404
