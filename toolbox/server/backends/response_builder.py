# toolbox/server/backends/response_builder.py
"""
Tool response envelope

Every invocation answers with the same four keys, whatever happened:

```json
{
  "code": 0,
  "message": "success",
  "data": {"result": [{"id": 5, "name": "a"}], "inputs": {"id": 5}},
  "meta": {"tool": "get_row", "resource_type": "sqlite-sql",
           "execution_time_ms": 1.7, "session_id": null, "trace_id": "..."}
}
```

A failed call keeps the envelope; ``data`` then says where the pipeline
stopped and why:

```json
{
  "code": 5001,
  "message": "Unable to execute query: no such table: users",
  "data": {"stage": "execute", "error": "QueryExecutionError",
           "cause": "OperationalError('no such table: users')",
           "details": {"statement": "SELECT * FROM users"}, "inputs": {}},
  "meta": {...}
}
```

``message`` is always ``get_error_message(code, details)``; errors carry only
their own details so the code's base message appears once.
"""

import base64
import dataclasses
import datetime
import decimal
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .error_codes import ErrorCode, get_error_message
from .errors import ToolboxError


@dataclass(frozen=True)
class ResponseMeta:
    """Who answered and how long it took."""

    tool: str
    resource_type: Optional[str] = None
    session_id: Optional[str] = None
    trace_id: Optional[str] = None
    execution_time_ms: Optional[float] = None

    def finished(self, elapsed_ms: float) -> "ResponseMeta":
        return dataclasses.replace(self, execution_time_ms=elapsed_ms)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tool": self.tool,
            "execution_time_ms": self.execution_time_ms,
            "resource_type": self.resource_type,
            "session_id": self.session_id,
            "trace_id": self.trace_id or str(uuid.uuid4()),
        }


def build_success_response(
    result: Any,
    meta: ResponseMeta,
    inputs: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Build a success response

    Args:
        result: Rows returned by the tool; blobs and dates are made JSON safe
        meta: Response meta
        inputs: Sanitized echo of the call's parameters
    """
    data: Dict[str, Any] = {"result": to_jsonable(result)}
    if inputs is not None:
        data["inputs"] = inputs
    return {
        "code": int(ErrorCode.SUCCESS),
        "message": get_error_message(ErrorCode.SUCCESS),
        "data": data,
        "meta": meta.to_dict(),
    }


def build_error_response(
    code: ErrorCode,
    details: str,
    meta: ResponseMeta,
    *,
    stage: Optional[str] = None,
    error: Optional[str] = None,
    cause: Optional[str] = None,
    extra: Any = None,
    inputs: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Build an error response

    Args:
        code: Error code (non-zero)
        details: What went wrong; prefixed with the code's base message
        meta: Response meta
        stage: Pipeline step that failed ("resolve_template", "execute", ...)
        error: Error class name
        cause: repr of the chained driver error
        extra: Structured details (offending parameter, statement, ...)
        inputs: Sanitized echo of the call's parameters
    """
    data: Dict[str, Any] = {
        "stage": stage,
        "error": error,
        "cause": cause,
        "details": to_jsonable(extra),
    }
    if inputs is not None:
        data["inputs"] = inputs
    return {
        "code": int(code),
        "message": get_error_message(code, details),
        "data": data,
        "meta": meta.to_dict(),
    }


def build_tool_error_response(
    exc: ToolboxError,
    meta: ResponseMeta,
    inputs: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Project a ToolboxError onto the envelope."""
    return build_error_response(
        exc.code,
        exc.message,
        meta,
        stage=exc.stage,
        error=type(exc).__name__,
        cause=repr(exc.__cause__) if exc.__cause__ is not None else None,
        extra=exc.data,
        inputs=inputs,
    )


def to_jsonable(value: Any) -> Any:
    """Convert driver values that JSON cannot carry (blobs, dates, decimals)."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, decimal.Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


class InvocationTimer:
    """Elapsed time of one invocation; readable before the block exits."""

    def __init__(self):
        self._start: Optional[float] = None
        self._stop: Optional[float] = None

    def __enter__(self):
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._stop = time.perf_counter()

    @property
    def elapsed_ms(self) -> float:
        stop = self._stop if self._stop is not None else time.perf_counter()
        return (stop - self._start) * 1000
