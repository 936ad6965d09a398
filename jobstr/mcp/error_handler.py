# jobstr/mcp/error_handler.py
# SPDX-License-Identifier: Apache-2.0
"""
Exception -> structured MCP tool payload.

Expected outcomes (unknown id, bad argument) become small error dicts the
agent can act on; anything else is logged with a traceback and reported as
unknown_error without leaking internals beyond the message.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from jobstr.exceptions import InvalidArgument, JobstrError, NotFound

logger = logging.getLogger(__name__)


def handle_tool_error(exception: Exception, context: str = "") -> Dict[str, Any]:
    """
    Handle errors from tool functions and return a structured response dict.
    """
    return convert_exception_to_response(exception, context)


def convert_exception_to_response(exception: Exception, context: str = "") -> Dict[str, Any]:
    if isinstance(exception, NotFound):
        return {
            "error": "not_found",
            "message": str(exception),
            "job_id": exception.job_id,
            "context": context,
        }

    if isinstance(exception, InvalidArgument):
        return {
            "error": "invalid_argument",
            "message": str(exception),
            "context": context,
        }

    if isinstance(exception, JobstrError):
        return {
            "error": "jobstr_error",
            "message": str(exception),
            "context": context,
        }

    logger.error(
        "Unhandled error in %s: %s",
        context or "<unknown>",
        exception,
        extra={"error_type": type(exception).__name__},
        exc_info=True,
    )
    return {
        "error": "unknown_error",
        "message": f"Failed to execute {context or 'operation'}: {exception}",
        "context": context,
    }
