import json

import httpx
import pytest
from mcp.server.streamable_http import StreamableHTTPServerTransport

from detran_checklist.auth import AuthService, UserStore
from detran_checklist.backends import JsonFileBackend
from detran_checklist.catalog import CatalogState
from detran_checklist.config import Settings
from detran_checklist.main import MCPServerRuntime, build_http_app


class DummyStore:
    def save(self, state: CatalogState) -> None:  # pragma: no cover - simple stub
        self.state = state


@pytest.mark.asyncio
async def test_http_endpoint_end_to_end(tmp_path):
    settings = Settings(data_dir=tmp_path)
    catalog_state = CatalogState()
    backend = JsonFileBackend(settings, catalog_state=catalog_state)
    await backend.initialise()

    runtime = MCPServerRuntime(
        settings=settings,
        catalog_state=catalog_state,
        catalog_store=DummyStore(),
        backend=backend,
        auth=AuthService(UserStore(settings.users_path)),
    )
    transport = StreamableHTTPServerTransport(
        mcp_session_id=None,
        is_json_response_enabled=True,
    )
    app = build_http_app(runtime, transport)

    async with app.router.lifespan_context(app):
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://testserver"
        ) as client:
            headers = {
                "Accept": "application/json, text/event-stream",
                "Content-Type": "application/json",
            }
            session_id = None

            async def rpc(payload):
                nonlocal session_id
                final_headers = dict(headers)
                if session_id:
                    final_headers["MCP-Session-Id"] = session_id
                response = await client.post(
                    "/mcp/", content=json.dumps(payload), headers=final_headers
                )
                assert response.status_code == 200
                if "MCP-Session-Id" in response.headers:
                    session_id = response.headers["MCP-Session-Id"]
                body = response.json()
                assert "error" not in body, f"RPC error: {body['error']}"
                return body

            initialize = await rpc(
                {
                    "jsonrpc": "2.0",
                    "id": 1,
                    "method": "initialize",
                    "params": {
                        "protocolVersion": "2025-06-18",
                        "capabilities": {},
                        "clientInfo": {"name": "test", "version": "0.0.0"},
                    },
                }
            )
            assert initialize["id"] == 1

            search = await rpc(
                {
                    "jsonrpc": "2.0",
                    "id": 2,
                    "method": "tools/call",
                    "params": {"name": "search_services", "arguments": {"query": "licenciamento"}},
                }
            )
            assert "result" in search, search
            results = search["result"]["structuredContent"]["results"]
            assert results[0]["title"] == "Licenciamento Anual"

            view = await rpc(
                {
                    "jsonrpc": "2.0",
                    "id": 3,
                    "method": "tools/call",
                    "params": {"name": "get_service", "arguments": {"service_id": results[0]["id"]}},
                }
            )
            structured_view = view["result"]["structuredContent"]
            assert structured_view["service"]["title"] == "Licenciamento Anual"

            health = await client.get("/healthz")
            assert health.status_code == 200
            assert health.json() == {
                "status": "ok",
                "backend": "json",
                "catalog": {"services": 5, "open_service_id": results[0]["id"]},
            }

            metrics_resp = await client.get("/metrics")
            assert metrics_resp.status_code == 200
            assert b"checklist_tool_calls_total" in metrics_resp.content
            assert b"checklist_http_requests_total" in metrics_resp.content

    await transport.terminate()
    await runtime.shutdown()
    assert runtime.viewer.current is None
