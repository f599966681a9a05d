"""MCP server entrypoint for the DETRAN document checklist."""

from __future__ import annotations

import argparse
import asyncio
import logging
import time
from asyncio import Lock
from contextlib import asynccontextmanager, suppress
from typing import Any, Awaitable, Callable, Dict

import uvicorn
from mcp import types
from mcp.server.lowlevel import server as lowlevel_server
from mcp.server.streamable_http import StreamableHTTPServerTransport
from mcp.server.stdio import stdio_server
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from .auth import AuthService
from .backends import CatalogBackend
from .bootstrap import initialise_backend, load_catalog_state, shutdown_backend
from .catalog import CatalogState, CatalogStore
from .completion import ChecklistViewer
from .config import Settings, get_settings
from .health import BackendHealthMonitor
from .metrics import metrics_payload, record_http_request
from .schemas import (
    ADMIN_SERVICE_OUTPUT_SCHEMA,
    BACKEND_STATUS_OUTPUT_SCHEMA,
    CREATE_SERVICE_INPUT_SCHEMA,
    CREATE_USER_INPUT_SCHEMA,
    DELETE_SERVICE_OUTPUT_SCHEMA,
    EMPTY_INPUT_SCHEMA,
    LEAVE_SERVICE_OUTPUT_SCHEMA,
    LIST_SERVICES_INPUT_SCHEMA,
    LIST_SERVICES_OUTPUT_SCHEMA,
    LIST_USERS_OUTPUT_SCHEMA,
    LOGIN_INPUT_SCHEMA,
    REMOVE_USER_INPUT_SCHEMA,
    REMOVE_USER_OUTPUT_SCHEMA,
    REORDER_ITEMS_INPUT_SCHEMA,
    REORDER_SECTIONS_INPUT_SCHEMA,
    SEARCH_SERVICES_INPUT_SCHEMA,
    SEARCH_SERVICES_OUTPUT_SCHEMA,
    SERVICE_ID_INPUT_SCHEMA,
    SERVICE_VIEW_OUTPUT_SCHEMA,
    SESSION_OUTPUT_SCHEMA,
    TOGGLE_ITEM_INPUT_SCHEMA,
    UPDATE_SERVICE_INPUT_SCHEMA,
    USER_OUTPUT_SCHEMA,
)
from .tools import (
    create_service_tool,
    create_user_tool,
    delete_service_tool,
    duplicate_service_tool,
    get_backend_status_tool,
    get_progress_tool,
    get_service_tool,
    leave_service_tool,
    list_services_tool,
    list_users_tool,
    login_tool,
    logout_tool,
    remove_user_tool,
    reorder_items_tool,
    reorder_sections_tool,
    reset_checklist_tool,
    search_services_tool,
    toggle_item_tool,
    update_service_tool,
    whoami_tool,
)

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]


def _build_tool_definitions() -> list[types.Tool]:
    return [
        types.Tool(
            name="list_services",
            title="Listar serviços",
            description="Lista os serviços do catálogo, opcionalmente filtrados por categoria.",
            inputSchema=LIST_SERVICES_INPUT_SCHEMA,
            outputSchema=LIST_SERVICES_OUTPUT_SCHEMA,
        ),
        types.Tool(
            name="search_services",
            title="Buscar serviços",
            description="Busca serviços por palavra-chave no título e na descrição.",
            inputSchema=SEARCH_SERVICES_INPUT_SCHEMA,
            outputSchema=SEARCH_SERVICES_OUTPUT_SCHEMA,
        ),
        types.Tool(
            name="get_service",
            title="Abrir serviço",
            description="Abre o checklist de documentos de um serviço e mostra o progresso.",
            inputSchema=SERVICE_ID_INPUT_SCHEMA,
            outputSchema=SERVICE_VIEW_OUTPUT_SCHEMA,
        ),
        types.Tool(
            name="toggle_item",
            title="Marcar documento",
            description="Marca ou desmarca um documento do checklist aberto.",
            inputSchema=TOGGLE_ITEM_INPUT_SCHEMA,
            outputSchema=SERVICE_VIEW_OUTPUT_SCHEMA,
        ),
        types.Tool(
            name="reset_checklist",
            title="Limpar checklist",
            description="Desmarca todos os documentos do serviço aberto.",
            inputSchema=SERVICE_ID_INPUT_SCHEMA,
            outputSchema=SERVICE_VIEW_OUTPUT_SCHEMA,
        ),
        types.Tool(
            name="get_progress",
            title="Progresso",
            description="Mostra o progresso do checklist atualmente aberto.",
            inputSchema=EMPTY_INPUT_SCHEMA,
            outputSchema=SERVICE_VIEW_OUTPUT_SCHEMA,
        ),
        types.Tool(
            name="leave_service",
            title="Sair do serviço",
            description="Fecha o serviço aberto; as marcações são descartadas.",
            inputSchema=EMPTY_INPUT_SCHEMA,
            outputSchema=LEAVE_SERVICE_OUTPUT_SCHEMA,
        ),
        types.Tool(
            name="login",
            title="Entrar",
            description="Autentica um usuário pelo e-mail e senha.",
            inputSchema=LOGIN_INPUT_SCHEMA,
            outputSchema=SESSION_OUTPUT_SCHEMA,
        ),
        types.Tool(
            name="logout",
            title="Sair",
            description="Encerra a sessão atual.",
            inputSchema=EMPTY_INPUT_SCHEMA,
            outputSchema=SESSION_OUTPUT_SCHEMA,
        ),
        types.Tool(
            name="whoami",
            title="Usuário atual",
            description="Mostra o usuário autenticado, se houver.",
            inputSchema=EMPTY_INPUT_SCHEMA,
            outputSchema=SESSION_OUTPUT_SCHEMA,
        ),
        types.Tool(
            name="create_service",
            title="Criar serviço",
            description="Cria um serviço com suas seções e documentos (administradores).",
            inputSchema=CREATE_SERVICE_INPUT_SCHEMA,
            outputSchema=ADMIN_SERVICE_OUTPUT_SCHEMA,
        ),
        types.Tool(
            name="update_service",
            title="Editar serviço",
            description="Substitui o conteúdo de um serviço, preservando ids correspondentes (administradores).",
            inputSchema=UPDATE_SERVICE_INPUT_SCHEMA,
            outputSchema=ADMIN_SERVICE_OUTPUT_SCHEMA,
        ),
        types.Tool(
            name="duplicate_service",
            title="Duplicar serviço",
            description="Cria uma cópia de um serviço com novos ids (administradores).",
            inputSchema=SERVICE_ID_INPUT_SCHEMA,
            outputSchema=ADMIN_SERVICE_OUTPUT_SCHEMA,
        ),
        types.Tool(
            name="delete_service",
            title="Excluir serviço",
            description="Exclui um serviço com suas seções e documentos (administradores).",
            inputSchema=SERVICE_ID_INPUT_SCHEMA,
            outputSchema=DELETE_SERVICE_OUTPUT_SCHEMA,
        ),
        types.Tool(
            name="reorder_sections",
            title="Reordenar seções",
            description="Define a nova ordem das seções de um serviço (administradores).",
            inputSchema=REORDER_SECTIONS_INPUT_SCHEMA,
            outputSchema=ADMIN_SERVICE_OUTPUT_SCHEMA,
        ),
        types.Tool(
            name="reorder_items",
            title="Reordenar documentos",
            description="Define a nova ordem dos documentos de uma seção (administradores).",
            inputSchema=REORDER_ITEMS_INPUT_SCHEMA,
            outputSchema=ADMIN_SERVICE_OUTPUT_SCHEMA,
        ),
        types.Tool(
            name="list_users",
            title="Listar usuários",
            description="Lista as contas cadastradas (administradores).",
            inputSchema=EMPTY_INPUT_SCHEMA,
            outputSchema=LIST_USERS_OUTPUT_SCHEMA,
        ),
        types.Tool(
            name="create_user",
            title="Criar usuário",
            description="Cadastra uma nova conta (administradores).",
            inputSchema=CREATE_USER_INPUT_SCHEMA,
            outputSchema=USER_OUTPUT_SCHEMA,
        ),
        types.Tool(
            name="remove_user",
            title="Remover usuário",
            description="Remove uma conta; administradores não podem remover a própria conta.",
            inputSchema=REMOVE_USER_INPUT_SCHEMA,
            outputSchema=REMOVE_USER_OUTPUT_SCHEMA,
        ),
        types.Tool(
            name="get_backend_status",
            title="Status do armazenamento",
            description="Mostra o estado do backend de catálogo e estatísticas recentes.",
            inputSchema=EMPTY_INPUT_SCHEMA,
            outputSchema=BACKEND_STATUS_OUTPUT_SCHEMA,
        ),
    ]


class MCPServerRuntime:
    """Shared runtime objects for both stdio and HTTP transports."""

    def __init__(
        self,
        *,
        settings: Settings,
        catalog_state: CatalogState,
        catalog_store: CatalogStore,
        backend: CatalogBackend,
        auth: AuthService,
        viewer: ChecklistViewer | None = None,
    ) -> None:
        self.settings = settings
        self.catalog_state = catalog_state
        self._catalog_store = catalog_store
        self.backend = backend
        self.auth = auth
        self.viewer = viewer or ChecklistViewer()
        self._persist_lock = Lock()
        self._shutdown_lock = Lock()
        self._is_shutdown = False

        self._tool_definitions = _build_tool_definitions()
        self._app = self._build_low_level_app()
        self._initialization_options = self._app.create_initialization_options()

    @classmethod
    async def create(cls, settings: Settings) -> "MCPServerRuntime":
        catalog_state, catalog_store = load_catalog_state(settings)
        health_monitor = BackendHealthMonitor()
        backend = await initialise_backend(
            settings, catalog_state, health_monitor, store=catalog_store
        )
        return cls(
            settings=settings,
            catalog_state=catalog_state,
            catalog_store=catalog_store,
            backend=backend,
            auth=AuthService.from_settings(settings),
        )

    @property
    def _persist(self) -> Callable[[], Awaitable[None]] | None:
        # the JSON backend writes its own file after every change
        return self.persist_state if self.backend.mirrors_remote else None

    def _build_low_level_app(self) -> lowlevel_server.Server:
        app = lowlevel_server.Server(
            name="mcp-detran-checklist",
            version="0.1.0",
            instructions=(
                "Este servidor MCP ajuda a conferir os documentos exigidos pelos serviços do "
                "DETRAN: busque um serviço, abra o checklist, marque os documentos já reunidos e "
                "acompanhe o progresso. Administradores podem editar o catálogo."
            ),
        )

        @app.list_tools()
        async def _list_tools(_: types.ListToolsRequest | None = None) -> types.ListToolsResult:
            return types.ListToolsResult(tools=self._tool_definitions)

        async def handle_list_services(arguments: Dict[str, Any]) -> Dict[str, Any]:
            return await list_services_tool(
                self.backend,
                self.catalog_state,
                category=arguments.get("category"),
                persist_state=self._persist,
            )

        async def handle_search_services(arguments: Dict[str, Any]) -> Dict[str, Any]:
            return await search_services_tool(
                self.backend,
                self.catalog_state,
                query=arguments.get("query", ""),
                category=arguments.get("category"),
                limit=int(arguments.get("limit", 10)),
                persist_state=self._persist,
            )

        async def handle_get_service(arguments: Dict[str, Any]) -> Dict[str, Any]:
            return await get_service_tool(
                self.backend,
                self.catalog_state,
                self.viewer,
                service_id=arguments["service_id"],
                persist_state=self._persist,
            )

        async def handle_toggle_item(arguments: Dict[str, Any]) -> Dict[str, Any]:
            return await toggle_item_tool(
                self.backend,
                self.catalog_state,
                self.viewer,
                service_id=arguments["service_id"],
                section_id=arguments["section_id"],
                item_id=arguments["item_id"],
                persist_state=self._persist,
            )

        async def handle_reset_checklist(arguments: Dict[str, Any]) -> Dict[str, Any]:
            return await reset_checklist_tool(
                self.backend,
                self.catalog_state,
                self.viewer,
                service_id=arguments["service_id"],
                persist_state=self._persist,
            )

        async def handle_get_progress(_: Dict[str, Any]) -> Dict[str, Any]:
            return await get_progress_tool(self.viewer)

        async def handle_leave_service(_: Dict[str, Any]) -> Dict[str, Any]:
            return await leave_service_tool(self.viewer)

        async def handle_login(arguments: Dict[str, Any]) -> Dict[str, Any]:
            return await login_tool(
                self.auth, email=arguments["email"], password=arguments["password"]
            )

        async def handle_logout(_: Dict[str, Any]) -> Dict[str, Any]:
            return await logout_tool(self.auth)

        async def handle_whoami(_: Dict[str, Any]) -> Dict[str, Any]:
            return await whoami_tool(self.auth)

        async def handle_create_service(arguments: Dict[str, Any]) -> Dict[str, Any]:
            return await create_service_tool(
                self.backend,
                self.auth,
                service=arguments["service"],
                persist_state=self._persist,
            )

        async def handle_update_service(arguments: Dict[str, Any]) -> Dict[str, Any]:
            return await update_service_tool(
                self.backend,
                self.auth,
                self.viewer,
                service_id=arguments["service_id"],
                service=arguments["service"],
                persist_state=self._persist,
            )

        async def handle_duplicate_service(arguments: Dict[str, Any]) -> Dict[str, Any]:
            return await duplicate_service_tool(
                self.backend,
                self.auth,
                service_id=arguments["service_id"],
                persist_state=self._persist,
            )

        async def handle_delete_service(arguments: Dict[str, Any]) -> Dict[str, Any]:
            return await delete_service_tool(
                self.backend,
                self.auth,
                self.viewer,
                service_id=arguments["service_id"],
                persist_state=self._persist,
            )

        async def handle_reorder_sections(arguments: Dict[str, Any]) -> Dict[str, Any]:
            return await reorder_sections_tool(
                self.backend,
                self.auth,
                self.viewer,
                service_id=arguments["service_id"],
                section_ids=arguments["section_ids"],
                persist_state=self._persist,
            )

        async def handle_reorder_items(arguments: Dict[str, Any]) -> Dict[str, Any]:
            return await reorder_items_tool(
                self.backend,
                self.auth,
                self.viewer,
                section_id=arguments["section_id"],
                item_ids=arguments["item_ids"],
                persist_state=self._persist,
            )

        async def handle_list_users(_: Dict[str, Any]) -> Dict[str, Any]:
            return await list_users_tool(self.auth)

        async def handle_create_user(arguments: Dict[str, Any]) -> Dict[str, Any]:
            return await create_user_tool(self.auth, **arguments)

        async def handle_remove_user(arguments: Dict[str, Any]) -> Dict[str, Any]:
            return await remove_user_tool(self.auth, user_id=arguments["user_id"])

        async def handle_backend_status(_: Dict[str, Any]) -> Dict[str, Any]:
            return await get_backend_status_tool(self.backend, self.catalog_state, self.viewer)

        tool_handlers: Dict[str, ToolHandler] = {
            "list_services": handle_list_services,
            "search_services": handle_search_services,
            "get_service": handle_get_service,
            "toggle_item": handle_toggle_item,
            "reset_checklist": handle_reset_checklist,
            "get_progress": handle_get_progress,
            "leave_service": handle_leave_service,
            "login": handle_login,
            "logout": handle_logout,
            "whoami": handle_whoami,
            "create_service": handle_create_service,
            "update_service": handle_update_service,
            "duplicate_service": handle_duplicate_service,
            "delete_service": handle_delete_service,
            "reorder_sections": handle_reorder_sections,
            "reorder_items": handle_reorder_items,
            "list_users": handle_list_users,
            "create_user": handle_create_user,
            "remove_user": handle_remove_user,
            "get_backend_status": handle_backend_status,
        }

        @app.call_tool()
        async def _call_tool(tool_name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
            handler = tool_handlers.get(tool_name)
            if handler is None:
                raise ValueError(f"Unknown tool '{tool_name}'")
            return await handler(arguments or {})

        return app

    async def persist_state(self) -> None:
        async with self._persist_lock:
            await asyncio.to_thread(self._catalog_store.save, self.catalog_state)

    async def run_session(self, read_stream: Any, write_stream: Any) -> None:
        await self._app.run(
            read_stream,
            write_stream,
            self._initialization_options,
            raise_exceptions=False,
        )

    async def shutdown(self) -> None:
        async with self._shutdown_lock:
            if self._is_shutdown:
                return
            self._is_shutdown = True
            # whatever is still open is discarded, as on leaving the view
            self.viewer.leave()
            await shutdown_backend(self.backend)
            if self.backend.mirrors_remote:
                await self.persist_state()


class HTTPMetricsMiddleware:
    """ASGI middleware recording request counts and latency per path."""

    def __init__(self, app: Any) -> None:
        self.app = app

    async def __call__(self, scope, receive, send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start = time.perf_counter()
        status_code = 500

        async def send_wrapper(message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            path = scope.get("path", "")
            label = path.strip("/").split("/", 1)[0] or "root"
            record_http_request(
                scope.get("method", "GET"), label, status_code, time.perf_counter() - start
            )


async def serve_stdio(settings: Settings) -> None:
    runtime = await MCPServerRuntime.create(settings)
    try:
        async with stdio_server() as (read_stream, write_stream):
            await runtime.run_session(read_stream, write_stream)
    finally:
        await runtime.shutdown()


def build_http_app(runtime: MCPServerRuntime, transport: StreamableHTTPServerTransport) -> Starlette:
    @asynccontextmanager
    async def lifespan(_app):
        async with transport.connect() as (read_stream, write_stream):
            session_task = asyncio.create_task(runtime.run_session(read_stream, write_stream))
            try:
                yield
            finally:
                session_task.cancel()
                with suppress(asyncio.CancelledError):
                    await session_task

    async def health_endpoint(_request) -> JSONResponse:
        view = runtime.viewer.current
        return JSONResponse(
            {
                "status": "ok",
                "backend": runtime.backend.backend_id,
                "catalog": {
                    "services": len(runtime.catalog_state.services),
                    "open_service_id": view.service_id if view is not None else None,
                },
            }
        )

    async def metrics_endpoint(_request) -> Response:
        payload, content_type = metrics_payload()
        return Response(payload, media_type=content_type)

    routes = [
        Route("/healthz", endpoint=health_endpoint, methods=["GET"]),
        Route("/metrics", endpoint=metrics_endpoint, methods=["GET"]),
    ]

    app = Starlette(
        routes=routes,
        lifespan=lifespan,
        middleware=[Middleware(HTTPMetricsMiddleware)],
    )

    async def transport_app(scope, receive, send):
        await transport.handle_request(scope, receive, send)

    app.mount("/mcp", transport_app)
    return app


async def serve_http(
    settings: Settings,
    *,
    host: str,
    port: int,
    log_level: str,
    json_response: bool = False,
) -> None:
    runtime = await MCPServerRuntime.create(settings)
    transport = StreamableHTTPServerTransport(
        mcp_session_id=None,
        is_json_response_enabled=json_response,
    )
    app = build_http_app(runtime, transport)

    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level=log_level.lower(),
        loop="asyncio",
    )
    server = uvicorn.Server(config)

    try:
        logger.info("Starting streamable HTTP server on %s:%s", host, port)
        await server.serve()
    finally:
        await transport.terminate()
        await runtime.shutdown()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Run the DETRAN checklist MCP server")
    parser.add_argument(
        "--transport",
        default="stdio",
        choices=["stdio", "http"],
        help="Transport to use for serving the MCP protocol.",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host/IP to bind when using the HTTP transport.",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind when using the HTTP transport.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR).",
    )
    parser.add_argument(
        "--http-json-response",
        action="store_true",
        help="Return JSON responses when using the HTTP transport (default is streaming).",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))
    settings = get_settings()

    if args.transport == "stdio":
        asyncio.run(serve_stdio(settings))
        return

    asyncio.run(
        serve_http(
            settings,
            host=args.host,
            port=args.port,
            log_level=args.log_level,
            json_response=args.http_json_response,
        )
    )


if __name__ == "__main__":  # pragma: no cover
    main()
