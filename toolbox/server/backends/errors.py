# toolbox/server/backends/errors.py
"""
Toolbox error hierarchy.

Every error carries an ``ErrorCode`` and the pipeline ``stage`` that raised it,
so the response builder can report the failing step without inspecting
messages. Driver errors are chained with ``raise ... from``.

Configuration time (the tool is never created):
    ConfigValidationError, ParameterDefinitionError, DuplicateKindError,
    SourceNotFound, IncompatibleSource

Invocation time, caller input (4xxx):
    TemplateResolutionError, ParameterValidationError, UnauthorizedError

Invocation time, backend (5xxx):
    QueryExecutionError, ResultMetadataError, RowScanError,
    ResultCloseError, RowIterationError
"""

from typing import Any

from .error_codes import ErrorCode


class ToolboxError(Exception):
    """Base class for every error raised by the toolbox."""

    code: ErrorCode = ErrorCode.EXECUTION_ERROR
    stage: str = "unknown"

    def __init__(self, message: str, code: ErrorCode = None, data: Any = None):
        self.message = message
        if code is not None:
            self.code = code
        self.data = data
        super().__init__(message)


# ============================================================================
# Configuration time
# ============================================================================

class ConfigValidationError(ToolboxError):
    code = ErrorCode.CONFIG_VALIDATION_ERROR
    stage = "config"


class ParameterDefinitionError(ConfigValidationError):
    stage = "parameters"


class DuplicateKindError(ConfigValidationError):
    stage = "registry"


class SourceNotFound(ToolboxError):
    code = ErrorCode.SOURCE_NOT_FOUND
    stage = "bind_source"


class IncompatibleSource(ToolboxError):
    code = ErrorCode.INCOMPATIBLE_SOURCE
    stage = "bind_source"


# ============================================================================
# Invocation time: caller input
# ============================================================================

class TemplateResolutionError(ToolboxError):
    code = ErrorCode.TEMPLATE_RESOLUTION_ERROR
    stage = "resolve_template"


class ParameterValidationError(ToolboxError):
    code = ErrorCode.PARAMETER_VALIDATION_ERROR
    stage = "extract_params"


class UnauthorizedError(ToolboxError):
    code = ErrorCode.UNAUTHORIZED
    stage = "authorize"


# ============================================================================
# Invocation time: backend
# ============================================================================

class QueryExecutionError(ToolboxError):
    code = ErrorCode.QUERY_EXECUTION_ERROR
    stage = "execute"


class ResultMetadataError(ToolboxError):
    code = ErrorCode.RESULT_METADATA_ERROR
    stage = "columns"


class RowScanError(ToolboxError):
    code = ErrorCode.ROW_SCAN_ERROR
    stage = "scan"


class ResultCloseError(ToolboxError):
    code = ErrorCode.RESULT_CLOSE_ERROR
    stage = "close"


class RowIterationError(ToolboxError):
    code = ErrorCode.ROW_ITERATION_ERROR
    stage = "iterate"
