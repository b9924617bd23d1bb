# toolbox/server/backends/error_codes.py
"""
Error Code Definitions for Tool Responses

Standard error code ranges:
- 0: Success
- 4xxx: Client/Input errors (invalid parameters, unresolvable templates, auth)
- 5xxx: Execution/System errors (driver failure, result handling, internal errors)
"""

from enum import IntEnum


class ErrorCode(IntEnum):
    """Standard error codes for tool responses"""

    # Success
    SUCCESS = 0

    # Client/Input Errors (4xxx)
    # Meaning: the caller sent something the tool cannot use.
    # Strategy: Caller's responsibility, never retried.
    INVALID_INPUT = 4000
    TEMPLATE_RESOLUTION_ERROR = 4001
    PARAMETER_VALIDATION_ERROR = 4002
    UNAUTHORIZED = 4003
    TOOL_NOT_FOUND = 4004

    # Configuration Errors (45xx)
    # Meaning: the tool could not be built from its configuration.
    CONFIG_VALIDATION_ERROR = 4500
    SOURCE_NOT_FOUND = 4501
    INCOMPATIBLE_SOURCE = 4502

    # Execution Errors (5xxx)
    # Meaning: the backing source failed while serving a valid request.
    # Strategy: reported verbatim, never retried, never partially satisfied.
    EXECUTION_ERROR = 5000
    QUERY_EXECUTION_ERROR = 5001
    RESULT_METADATA_ERROR = 5002
    ROW_SCAN_ERROR = 5003
    RESULT_CLOSE_ERROR = 5004
    ROW_ITERATION_ERROR = 5005
    TIMEOUT_ERROR = 5006
    INTERNAL_ERROR = 5013


def get_error_message(code: ErrorCode, details: str = "") -> str:
    """
    Get a human-readable error message for an error code
    """
    base_messages = {
        ErrorCode.SUCCESS: "success",
        ErrorCode.INVALID_INPUT: "Invalid input provided",
        ErrorCode.TEMPLATE_RESOLUTION_ERROR: "Unable to resolve template parameters",
        ErrorCode.PARAMETER_VALIDATION_ERROR: "Unable to extract standard parameters",
        ErrorCode.UNAUTHORIZED: "Tool invocation not authorized",
        ErrorCode.TOOL_NOT_FOUND: "Tool not found",

        ErrorCode.CONFIG_VALIDATION_ERROR: "Invalid configuration",
        ErrorCode.SOURCE_NOT_FOUND: "Source not found",
        ErrorCode.INCOMPATIBLE_SOURCE: "Incompatible source",

        ErrorCode.EXECUTION_ERROR: "Tool execution failed",
        ErrorCode.QUERY_EXECUTION_ERROR: "Unable to execute query",
        ErrorCode.RESULT_METADATA_ERROR: "Unable to get column names",
        ErrorCode.ROW_SCAN_ERROR: "Unable to scan row",
        ErrorCode.RESULT_CLOSE_ERROR: "Unable to close rows",
        ErrorCode.ROW_ITERATION_ERROR: "Error iterating rows",
        ErrorCode.TIMEOUT_ERROR: "Request timeout",
        ErrorCode.INTERNAL_ERROR: "Internal system error",
    }

    base_msg = base_messages.get(code, "Unknown error")

    if details:
        return f"{base_msg}: {details}"
    return base_msg
