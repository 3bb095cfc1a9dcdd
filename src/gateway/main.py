"""Gateway Server - FastAPI Application.

Serves the Xero operation gateway as a single MCP tool over JSON-RPC,
plus health, monitoring and direct test endpoints.
"""

import re
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shared.config import Settings, get_settings
from shared.logging import bind_context, clear_context, get_logger, setup_logging
from gateway.protocol import McpProtocol, rate_limited
from gateway.service import OperationGateway, build_gateway
from gateway.telemetry import organisation_name
from xero.client import XeroClient
from xero.handlers import all_factories

logger = get_logger(__name__)


def client_key_for(request: Request) -> str:
    """Rate-limit and audit identity of the caller."""
    return request.client.host if request.client else "unknown"


def _cors_options(origins: list[str]) -> dict[str, Any]:
    """Split configured origins into exact matches and a wildcard regex."""
    exact = [origin for origin in origins if "*" not in origin]
    patterns = [
        re.escape(origin).replace(r"\*", r"[A-Za-z0-9-]+")
        for origin in origins if "*" in origin
    ]
    options: dict[str, Any] = {"allow_origins": exact}
    if patterns:
        options["allow_origin_regex"] = "^(" + "|".join(patterns) + ")$"
    return options


def create_app(
    gateway: Optional[OperationGateway] = None,
    settings: Optional[Settings] = None
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        gateway: Prebuilt gateway; built from settings at startup if omitted
        settings: Application settings (defaults to get_settings())
    """
    settings = settings or get_settings()
    route_path = "/" + settings.gateway.route_path.strip("/")
    mcp_paths = {route_path, route_path + "/"}

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        setup_logging(settings.log_level, json_output=settings.environment == "production")
        logger.info("Starting Xero gateway server", environment=settings.environment)

        gw = gateway
        if gw is None:
            client = XeroClient.from_settings(settings.xero)
            gw = build_gateway(settings, all_factories(client), client=client)

        app.state.gateway = gw
        app.state.protocol = McpProtocol(gw, expose_operations=settings.gateway.expose_operations)
        app.state.started_at = time.monotonic()

        if settings.telemetry.probe_on_startup:
            await gw.probe_authentication()

        logger.info(
            "Xero gateway server started",
            tool_name=gw.tool_name,
            operation_count=len(gw.registry),
            mcp_endpoint=route_path
        )

        yield

        # Shutdown
        logger.info("Shutting down Xero gateway server")
        await gw.close()

    app = FastAPI(
        title="Xero Operation Gateway",
        description="Single-tool MCP gateway to the Xero accounting and payroll APIs",
        version="1.0.0",
        lifespan=lifespan
    )

    # Middleware added later wraps middleware added earlier
    @app.middleware("http")
    async def rate_limit(request: Request, call_next):
        if request.method == "POST" and request.url.path in mcp_paths:
            client_key = client_key_for(request)
            decision = request.app.state.gateway.admit(client_key)
            if decision is not None and not decision.allowed:
                retry_after = max(int(decision.retry_after + 0.999), 1)
                return JSONResponse(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    content=rate_limited(decision).to_dict(),
                    headers={"Retry-After": str(retry_after)},
                )
        return await call_next(request)

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        clear_context()
        bind_context(request_id=request.headers.get("X-Request-ID") or str(uuid.uuid4()))
        try:
            return await call_next(request)
        finally:
            clear_context()

    app.add_middleware(
        CORSMiddleware,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        **_cors_options(settings.gateway.cors_origins),
    )

    async def mcp_endpoint(request: Request) -> Response:
        """MCP JSON-RPC endpoint."""
        protocol: McpProtocol = request.app.state.protocol
        raw = await request.body()
        response = await protocol.handle_raw(raw, client_key_for(request))
        if response is None:
            return Response(status_code=status.HTTP_202_ACCEPTED)
        return JSONResponse(content=response.to_dict())

    app.add_api_route(route_path, mcp_endpoint, methods=["POST"], tags=["MCP"])
    app.add_api_route(route_path + "/", mcp_endpoint, methods=["POST"], tags=["MCP"], include_in_schema=False)

    @app.get("/health", tags=["System"])
    async def health_check(request: Request):
        """Health check endpoint."""
        gw: OperationGateway = request.app.state.gateway
        stats = gw.health()
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.monotonic() - request.app.state.started_at, 3),
            "toolPattern": "mega-tool",
            "tool": gw.tool_name,
            "operations": stats["operations"],
            "groups": stats["groups"],
            "authStats": stats["authStats"],
        }

    @app.get("/monitor/sessions", tags=["System"])
    async def monitor_sessions(request: Request):
        """Session and authentication telemetry."""
        return request.app.state.gateway.telemetry.snapshot()

    @app.get("/test/auth", tags=["Diagnostics"])
    async def test_auth(request: Request):
        """Fetch the organisation directly to check the Xero credentials."""
        gw: OperationGateway = request.app.state.gateway
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            result = await gw.fetch_organisation()
        except Exception as e:
            logger.error("Direct auth test failed", error=str(e))
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"success": False, "error": str(e), "timestamp": timestamp},
            )

        organisation = organisation_name(result)
        logger.info("Direct auth test successful", organisation=organisation)
        return {"success": True, "organisation": organisation, "timestamp": timestamp}

    @app.get("/test/accounts", tags=["Diagnostics"])
    async def test_accounts(request: Request):
        """List accounts through the dispatcher."""
        gw: OperationGateway = request.app.state.gateway
        envelope = await gw.call({"operation": "list-accounts"}, client_key_for(request))
        if not envelope.success:
            logger.error("Direct accounts test failed", error=envelope.message)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": envelope.message},
            )
        return envelope.content

    return app


app = create_app()


def main():
    """Run the gateway server."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "gateway.main:app",
        host=settings.gateway.host,
        port=settings.gateway.port,
        reload=settings.environment == "development"
    )


if __name__ == "__main__":
    main()
