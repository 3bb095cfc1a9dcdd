"""MCP JSON-RPC 2.0 protocol layer.

Provides:
1. JSON-RPC request parsing and validation
2. MCP method handlers (initialize, ping, tools/list, tools/call)
3. Uniform JSON-RPC error responses
"""

import json
from enum import IntEnum
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from shared.logging import get_logger
from shared.models import OperationRequest, RateLimitDecision, ResponseEnvelope
from gateway.errors import RateLimitExceeded
from gateway.parameters import argument_schema
from gateway.service import OperationGateway

logger = get_logger(__name__)


MCP_PROTOCOL_VERSION = "2025-03-26"
SERVER_NAME = "xero-mcp-server"
SERVER_VERSION = "1.0.0"


class JsonRpcErrorCode(IntEnum):
    """JSON-RPC 2.0 error codes, plus the server-defined rate-limit code."""
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    RATE_LIMITED = -32000


class JsonRpcError(BaseModel):
    """JSON-RPC 2.0 error object."""
    code: int
    message: str
    data: Optional[Any] = None


class JsonRpcRequest(BaseModel):
    """JSON-RPC 2.0 request."""
    jsonrpc: str = Field(..., description="Must be '2.0'")
    id: Optional[Any] = None
    method: str
    params: Optional[dict[str, Any]] = None


class JsonRpcResponse(BaseModel):
    """JSON-RPC 2.0 response."""
    jsonrpc: str = "2.0"
    id: Optional[Any] = None
    result: Optional[Any] = None
    error: Optional[JsonRpcError] = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            body["error"] = self.error.model_dump(exclude_none=True)
        else:
            body["result"] = self.result
        return body


class ToolDefinition(BaseModel):
    """Tool as advertised by tools/list."""
    name: str
    description: str
    inputSchema: dict[str, Any]


class ProtocolError(Exception):
    """Raised by method handlers to produce a JSON-RPC error."""

    def __init__(self, code: JsonRpcErrorCode, message: str, data: Optional[Any] = None) -> None:
        self.code = code
        self.message = message
        self.data = data
        super().__init__(message)


def make_error(
    id: Optional[Any],
    code: JsonRpcErrorCode,
    message: str,
    data: Optional[Any] = None
) -> JsonRpcResponse:
    return JsonRpcResponse(id=id, error=JsonRpcError(code=int(code), message=message, data=data))


def make_result(id: Optional[Any], result: Any) -> JsonRpcResponse:
    return JsonRpcResponse(id=id, result=result)


def rate_limited(decision: RateLimitDecision, id: Optional[Any] = None) -> JsonRpcResponse:
    """Error response for a request the rate limiter denied."""
    error = RateLimitExceeded(decision.client_key, decision.retry_after)
    return make_error(
        id,
        JsonRpcErrorCode.RATE_LIMITED,
        "Rate limit exceeded",
        data={
            "error_code": error.code.value,
            "detail": error.message,
            "limit": decision.limit,
            "retry_after": round(decision.retry_after, 1),
        },
    )


def render_envelope(envelope: ResponseEnvelope) -> dict[str, Any]:
    """Render a dispatch envelope as an MCP tool result."""
    if envelope.success:
        text = json.dumps(envelope.content, indent=2, default=str)
    else:
        text = envelope.message or "Error executing operation"
    return {
        "content": [{"type": "text", "text": text}],
        "isError": not envelope.success,
    }


MethodHandler = Callable[[dict[str, Any], Optional[str]], Awaitable[Any]]


class McpProtocol:
    """
    MCP method router over one OperationGateway.

    `handle` never raises: every request yields a JSON-RPC response, or
    None for notifications.
    """

    def __init__(self, gateway: OperationGateway, expose_operations: bool = False) -> None:
        self.gateway = gateway
        self.expose_operations = expose_operations
        self._methods: dict[str, MethodHandler] = {
            "initialize": self._initialize,
            "ping": self._ping,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
        }

    async def handle_raw(self, raw: bytes, client_key: Optional[str] = None) -> Optional[JsonRpcResponse]:
        """Decode a request body and handle it."""
        try:
            body = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as e:
            logger.warning("Unparseable JSON-RPC body", error=str(e))
            return make_error(None, JsonRpcErrorCode.PARSE_ERROR, "Parse error")
        return await self.handle(body, client_key)

    async def handle(self, body: Any, client_key: Optional[str] = None) -> Optional[JsonRpcResponse]:
        """
        Handle one decoded JSON-RPC message.

        Args:
            body: Decoded JSON body
            client_key: Caller identity, passed through to the gateway

        Returns:
            The response, or None if the message was a notification
        """
        if not isinstance(body, dict):
            return make_error(None, JsonRpcErrorCode.INVALID_REQUEST, "Invalid Request: expected a JSON object")

        request_id = body.get("id")
        try:
            request = JsonRpcRequest(**body)
        except (PydanticValidationError, TypeError) as e:
            return make_error(request_id, JsonRpcErrorCode.INVALID_REQUEST, f"Invalid Request: {e}")

        if request.jsonrpc != "2.0":
            return make_error(request_id, JsonRpcErrorCode.INVALID_REQUEST, "Invalid Request: jsonrpc must be '2.0'")

        if request.method.startswith("notifications/"):
            logger.debug("Notification received", method=request.method)
            return None

        handler = self._methods.get(request.method)
        if handler is None:
            return make_error(request_id, JsonRpcErrorCode.METHOD_NOT_FOUND, f"Method not found: {request.method}")

        try:
            result = await handler(request.params or {}, client_key)
        except ProtocolError as e:
            logger.warning("JSON-RPC request rejected", method=request.method, code=int(e.code), error=e.message)
            return make_error(request_id, e.code, e.message, e.data)
        except Exception as e:
            logger.error("JSON-RPC handler failed", method=request.method, error=str(e), exc_info=True)
            return make_error(request_id, JsonRpcErrorCode.INTERNAL_ERROR, f"Internal error: {e}")

        return make_result(request_id, result)

    async def _initialize(self, params: dict[str, Any], client_key: Optional[str]) -> dict[str, Any]:
        client_info = params.get("clientInfo") or {}
        logger.info(
            "MCP session initialized",
            client=client_info.get("name"),
            protocol_version=params.get("protocolVersion")
        )
        return {
            "protocolVersion": MCP_PROTOCOL_VERSION,
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
        }

    async def _ping(self, params: dict[str, Any], client_key: Optional[str]) -> dict[str, Any]:
        return {}

    def tools(self) -> list[ToolDefinition]:
        """Every advertised tool, the gateway tool first."""
        tools = [
            ToolDefinition(
                name=self.gateway.tool_name,
                description=self.gateway.description,
                inputSchema=self.gateway.input_schema,
            )
        ]
        if self.expose_operations:
            schema = argument_schema()
            tools.extend(
                ToolDefinition(name=d.name, description=d.description, inputSchema=schema)
                for d in self.gateway.registry.list_operations()
            )
        return tools

    async def _tools_list(self, params: dict[str, Any], client_key: Optional[str]) -> dict[str, Any]:
        return {"tools": [tool.model_dump() for tool in self.tools()]}

    async def _tools_call(self, params: dict[str, Any], client_key: Optional[str]) -> dict[str, Any]:
        name = params.get("name")
        arguments = params.get("arguments")
        if not isinstance(name, str) or not name:
            raise ProtocolError(JsonRpcErrorCode.INVALID_PARAMS, "Invalid params: 'name' must be a string")
        if arguments is not None and not isinstance(arguments, dict):
            raise ProtocolError(JsonRpcErrorCode.INVALID_PARAMS, "Invalid params: 'arguments' must be an object")

        if name == self.gateway.tool_name:
            envelope = await self.gateway.call(arguments, client_key)
        elif self.expose_operations and name in self.gateway.registry:
            request = OperationRequest.from_arguments(arguments)
            envelope = await self.gateway.handle(
                OperationRequest(operation=name, arguments=request.arguments),
                client_key,
            )
        else:
            raise ProtocolError(JsonRpcErrorCode.METHOD_NOT_FOUND, f"Unknown tool: {name}")

        return render_envelope(envelope)
