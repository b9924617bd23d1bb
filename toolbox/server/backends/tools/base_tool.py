import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional, Sequence

from ..base import Source
from ..error_codes import ErrorCode
from ..errors import ToolboxError, UnauthorizedError
from ..response_builder import (
    InvocationTimer,
    ResponseMeta,
    build_error_response,
    build_success_response,
    build_tool_error_response,
)
from .context import CallContext
from .manifest import Manifest, McpManifest
from .parameters import apply_auth_claims, is_authorized

logger = logging.getLogger("Tools")


class ToolConfig(ABC):
    """
    Decoded configuration of one tool.

    ``initialize`` binds the config to the configured sources and returns a
    ready tool; it is called once, when the server is built.
    """

    @abstractmethod
    def initialize(self, sources: Mapping[str, Source]) -> "BaseTool":
        pass

    @abstractmethod
    def tool_config_kind(self) -> str:
        pass


class BaseTool(ABC):
    """
    Tool base class.

    Subclasses provide ``name``, ``kind``, ``auth_required`` and ``all_params``
    attributes and implement the invocation itself. The base class handles
    everything around it: authorization, auth-bound parameters, timing,
    logging and response building.
    """

    @abstractmethod
    async def invoke(self, ctx: CallContext, params: Mapping[str, Any]) -> Any:
        """
        [Required] Run the tool.

        Args:
            ctx: Call context (timeout, cancellation, trace id)
            params: Raw parameter map of this call

        Raises:
            ToolboxError: for every expected failure
        """

    @abstractmethod
    def manifest(self) -> Manifest:
        pass

    @abstractmethod
    def mcp_manifest(self) -> McpManifest:
        pass

    def authorized(self, verified_auth_services: Sequence[str]) -> bool:
        return is_authorized(self.auth_required, verified_auth_services)

    def _sanitize_inputs(self, kwargs: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Summarize inputs for logs and response echo.
        """
        sanitized = {}
        for k, v in kwargs.items():
            if isinstance(v, (str, int, float, bool, type(None))):
                if isinstance(v, str) and len(v) > 500:
                    sanitized[k] = v[:500] + "...[Truncated]"
                else:
                    sanitized[k] = v
            elif isinstance(v, (list, tuple)):
                if len(v) > 10:
                    sanitized[k] = f"List(len={len(v)})"
                else:
                    sanitized[k] = [i if isinstance(i, (str, int, float, bool, type(None))) else str(i) for i in v]
            elif isinstance(v, dict):
                if len(v) > 10:
                    sanitized[k] = f"Dict(len={len(v)})"
                else:
                    sanitized[k] = {str(sk): str(sv) for sk, sv in v.items()}
            else:
                sanitized[k] = str(v)
        return sanitized

    async def __call__(
        self,
        params: Mapping[str, Any],
        *,
        verified_auth_services: Sequence[str] = (),
        claims: Optional[Mapping[str, Mapping[str, Any]]] = None,
        timeout: Optional[float] = None,
        trace_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Run the tool and wrap the outcome in a standard response.
        """
        ctx = CallContext(timeout=timeout, trace_id=trace_id, session_id=session_id)
        meta = ResponseMeta(
            tool=self.name,
            resource_type=self.kind,
            session_id=ctx.session_id,
            trace_id=ctx.trace_id,
        )
        log_params = self._sanitize_inputs(params)

        with InvocationTimer() as timer:
            try:
                logger.info(f"[{self.name}] Started. trace_id={ctx.trace_id} Params: {log_params}")

                if not self.authorized(verified_auth_services):
                    raise UnauthorizedError(
                        f"tool {self.name!r} requires one of {list(self.auth_required)}",
                        data={"auth_required": list(self.auth_required)},
                    )
                resolved = apply_auth_claims(self.all_params, params, claims)
                result = await self.invoke(ctx, resolved)

                logger.info(f"[{self.name}] Finished in {timer.elapsed_ms:.2f}ms")
                return build_success_response(result, meta.finished(timer.elapsed_ms), inputs=log_params)

            except ToolboxError as e:
                logger.warning(f"[{self.name}] {type(e).__name__} at {e.stage}: {e.message}")
                return build_tool_error_response(e, meta.finished(timer.elapsed_ms), inputs=log_params)

            except Exception as e:
                logger.error(f"[{self.name}] Unexpected Error: {e}", exc_info=True)
                return build_error_response(
                    ErrorCode.INTERNAL_ERROR,
                    str(e),
                    meta.finished(timer.elapsed_ms),
                    stage="invoke",
                    error=type(e).__name__,
                    inputs=log_params,
                )
