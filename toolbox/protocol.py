# toolbox/protocol.py
"""
HTTP Protocol Definition

JSON over HTTP, shared by the server routes and by clients:

1. Manifests - human oriented toolset / tool listings
2. Invocation - raw parameter object in, standard response out
3. MCP - JSON-RPC 2.0 ``tools/list`` and ``tools/call``
"""

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field


class HTTPEndpoints:
    """HTTP API endpoints"""

    # Health
    HEALTH = "/health"
    READY = "/ready"

    # Manifests
    TOOLSET = "/api/v1/toolset"
    TOOL = "/api/v1/tool/{tool_name}"

    # Invocation
    INVOKE = "/api/v1/tool/{tool_name}/invoke"

    # MCP
    MCP = "/mcp"


class HTTPHeaders:
    """Request headers understood by the invoke endpoint"""

    # Comma separated auth services the gateway already verified
    AUTH_SERVICES = "X-Auth-Services"
    # JSON object {service: {claim: value}} of the verified tokens
    AUTH_CLAIMS = "X-Auth-Claims"
    TRACE_ID = "X-Trace-Id"
    SESSION_ID = "X-Session-Id"
    # Seconds
    TIMEOUT = "X-Timeout"


class McpMethod:
    INITIALIZE = "initialize"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"


class JsonRpcErrorCode:
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


MCP_PROTOCOL_VERSION = "2024-11-05"


class JsonRpcRequest(BaseModel):
    """JSON-RPC 2.0 request"""
    jsonrpc: str = "2.0"
    id: Optional[Union[int, str]] = None
    method: str
    params: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        extra = "ignore"


class McpToolCallParams(BaseModel):
    """``params`` of a ``tools/call`` request"""
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        extra = "ignore"


def jsonrpc_result(request_id: Optional[Union[int, str]], result: Any) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def jsonrpc_error(
    request_id: Optional[Union[int, str]],
    code: int,
    message: str,
    data: Any = None,
) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": request_id, "error": error}
