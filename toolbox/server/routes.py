# toolbox/server/routes.py
"""
HTTP Routes Module

All HTTP route definitions, registered on the app by ToolboxServer.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ..protocol import (
    HTTPEndpoints,
    HTTPHeaders,
    JsonRpcErrorCode,
    JsonRpcRequest,
    MCP_PROTOCOL_VERSION,
    McpMethod,
    McpToolCallParams,
    jsonrpc_error,
    jsonrpc_result,
)
from .backends.error_codes import ErrorCode
from .backends.response_builder import ResponseMeta, build_error_response
from .backends.tools.manifest import mcp_tools_list

if TYPE_CHECKING:
    from .app import ToolboxServer

logger = logging.getLogger("Routes")


class RequestHeaderError(ValueError):
    pass


def status_code_for(code: int) -> int:
    """Map a response code to an HTTP status."""
    code = int(code)
    if code == ErrorCode.SUCCESS:
        return 200
    if code == ErrorCode.UNAUTHORIZED:
        return 401
    if code == ErrorCode.TOOL_NOT_FOUND:
        return 404
    if 4000 <= code < 5000:
        return 400
    return 500


def parse_auth_services(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [name.strip() for name in value.split(",") if name.strip()]


def parse_auth_claims(value: Optional[str]) -> Dict[str, Dict[str, Any]]:
    if not value:
        return {}
    try:
        claims = json.loads(value)
    except json.JSONDecodeError as e:
        raise RequestHeaderError(f"{HTTPHeaders.AUTH_CLAIMS} is not valid JSON: {e}") from e
    if not isinstance(claims, dict) or not all(isinstance(v, dict) for v in claims.values()):
        raise RequestHeaderError(f"{HTTPHeaders.AUTH_CLAIMS} must be an object of objects")
    return claims


def parse_timeout(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        timeout = float(value)
    except ValueError as e:
        raise RequestHeaderError(f"{HTTPHeaders.TIMEOUT} must be a number of seconds") from e
    if timeout <= 0:
        raise RequestHeaderError(f"{HTTPHeaders.TIMEOUT} must be positive")
    return timeout


def invocation_kwargs(request: Request) -> Dict[str, Any]:
    """Read the per-call options carried in request headers."""
    headers = request.headers
    return {
        "verified_auth_services": parse_auth_services(headers.get(HTTPHeaders.AUTH_SERVICES)),
        "claims": parse_auth_claims(headers.get(HTTPHeaders.AUTH_CLAIMS)),
        "timeout": parse_timeout(headers.get(HTTPHeaders.TIMEOUT)),
        "trace_id": headers.get(HTTPHeaders.TRACE_ID),
        "session_id": headers.get(HTTPHeaders.SESSION_ID),
    }


def register_routes(app: FastAPI, server: "ToolboxServer"):
    """
    Register all HTTP routes

    Args:
        app: FastAPI application instance
        server: ToolboxServer instance
    """

    def invalid_input(tool_name: str, message: str) -> JSONResponse:
        response = build_error_response(
            ErrorCode.INVALID_INPUT,
            message,
            ResponseMeta(tool=tool_name),
            stage="request",
        )
        return JSONResponse(status_code=400, content=response)

    # ========== Health Endpoints ==========

    @app.get(HTTPEndpoints.HEALTH)
    async def health_check():
        return {"status": "healthy", "timestamp": datetime.utcnow().isoformat()}

    @app.get(HTTPEndpoints.READY)
    async def readiness_check():
        return JSONResponse(
            status_code=200 if server.ready else 503,
            content={
                "status": "ready" if server.ready else "starting",
                "tools_count": len(server.list_tools()),
                "sources": server.list_sources(),
            },
        )

    # ========== Manifest Endpoints ==========

    @app.get(HTTPEndpoints.TOOLSET)
    async def get_toolset():
        return server.toolset()

    @app.get(HTTPEndpoints.TOOL)
    async def get_tool_manifest(tool_name: str):
        tool = server.get_tool(tool_name)
        if tool is None:
            response = build_error_response(
                ErrorCode.TOOL_NOT_FOUND,
                f"tool {tool_name!r} not found",
                ResponseMeta(tool=tool_name),
                stage="dispatch",
            )
            return JSONResponse(status_code=404, content=response)
        return {
            "serverVersion": server.version,
            "tools": {tool_name: tool.manifest().to_dict()},
        }

    # ========== Invoke Endpoint ==========

    @app.post(HTTPEndpoints.INVOKE)
    async def invoke_tool(tool_name: str, request: Request):
        """Invoke a tool; the body is the raw parameter object"""
        body = await request.body()
        try:
            params = json.loads(body) if body else {}
        except json.JSONDecodeError as e:
            return invalid_input(tool_name, f"request body is not valid JSON: {e}")
        if not isinstance(params, dict):
            return invalid_input(tool_name, "request body must be a JSON object")

        try:
            kwargs = invocation_kwargs(request)
        except RequestHeaderError as e:
            return invalid_input(tool_name, str(e))

        result = await server.invoke(tool_name, params, **kwargs)
        status_code = status_code_for(result.get("code", ErrorCode.INTERNAL_ERROR))
        if status_code == 500:
            logger.error(
                "Invoke returned 500: code=%s tool=%s message=%s",
                result.get("code"),
                tool_name,
                result.get("message"),
            )
        return JSONResponse(status_code=status_code, content=result)

    # ========== MCP Endpoint ==========

    @app.post(HTTPEndpoints.MCP)
    async def mcp_endpoint(request: Request):
        """JSON-RPC 2.0: initialize, tools/list, tools/call"""
        try:
            payload = await request.json()
        except json.JSONDecodeError as e:
            return jsonrpc_error(None, JsonRpcErrorCode.PARSE_ERROR, f"parse error: {e}")

        try:
            rpc = JsonRpcRequest.model_validate(payload)
        except ValidationError as e:
            return jsonrpc_error(None, JsonRpcErrorCode.INVALID_REQUEST, "invalid request", data=str(e))

        if rpc.method == McpMethod.INITIALIZE:
            return jsonrpc_result(rpc.id, {
                "protocolVersion": MCP_PROTOCOL_VERSION,
                "capabilities": {"tools": {"listChanged": False}},
                "serverInfo": {"name": server.title, "version": server.version},
            })

        if rpc.method == McpMethod.TOOLS_LIST:
            return jsonrpc_result(rpc.id, mcp_tools_list(server.mcp_tools()))

        if rpc.method == McpMethod.TOOLS_CALL:
            try:
                call = McpToolCallParams.model_validate(rpc.params)
            except ValidationError as e:
                return jsonrpc_error(rpc.id, JsonRpcErrorCode.INVALID_PARAMS, "invalid params", data=str(e))
            if server.get_tool(call.name) is None:
                return jsonrpc_error(rpc.id, JsonRpcErrorCode.INVALID_PARAMS, f"tool {call.name!r} not found")
            try:
                kwargs = invocation_kwargs(request)
            except RequestHeaderError as e:
                return jsonrpc_error(rpc.id, JsonRpcErrorCode.INVALID_PARAMS, str(e))

            result = await server.invoke(call.name, call.arguments, **kwargs)
            if result["code"] == ErrorCode.SUCCESS:
                text = json.dumps(result["data"]["result"])
                is_error = False
            else:
                text = result["message"]
                is_error = True
            return jsonrpc_result(rpc.id, {
                "content": [{"type": "text", "text": text}],
                "isError": is_error,
            })

        return jsonrpc_error(rpc.id, JsonRpcErrorCode.METHOD_NOT_FOUND, f"method {rpc.method!r} not found")
