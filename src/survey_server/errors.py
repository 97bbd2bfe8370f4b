"""Global exception handlers — map SDK exceptions to HTTP status codes.

The services raise ``ValueError`` for missing rows, invalid input and
forbidden transitions, and ``PermissionError`` when a non-administrator
calls an administrator operation.  Rather than catching these in every
route, global handlers inspect the exception and pick the status code.
Route handlers stay focused on the happy path.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

# --- Keyword patterns in ValueError messages and their HTTP status codes ---
# Checked in order; first match wins.
_VALUE_ERROR_PATTERNS: list[tuple[str, int]] = [
    # Write against a completed response
    ("already", 409),
    # Survey / response / question / field not found (or private)
    ("not found", 404),
]


# --- Client-safe messages keyed by HTTP status code ---
# Internal details (ids, tokens) stay in the server log.  400 keeps the
# original message because it describes the caller's own input.
_SAFE_MESSAGES: dict[int, str] = {
    404: "Resource not found",
    409: "Resource is no longer editable",
}


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Map SDK ``ValueError`` to a contextual HTTP error response.

    Inspects the exception message to decide between 404 (not found),
    409 (conflict), or 400 (invalid input).
    """
    msg = str(exc)
    status = 400  # default
    for pattern, code in _VALUE_ERROR_PATTERNS:
        if pattern in msg.lower():
            status = code
            break

    logger.warning("ValueError [%d] at %s: %s", status, request.url, msg)
    detail = _SAFE_MESSAGES.get(status, msg)
    return JSONResponse(status_code=status, content={"detail": detail})


async def permission_error_handler(request: Request, exc: PermissionError) -> JSONResponse:
    """Map ``PermissionError`` (non-admin caller) to 403."""
    logger.warning("PermissionError at %s: %s", request.url, exc)
    return JSONResponse(status_code=403, content={"detail": "Administrator access required"})


async def key_error_handler(request: Request, exc: KeyError) -> JSONResponse:
    """Map ``KeyError`` (unknown field id) to 404."""
    logger.warning("KeyError at %s: %s", request.url, exc)
    return JSONResponse(status_code=404, content={"detail": "Resource not found"})


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions — log full traceback, return 500."""
    logger.exception("Unhandled exception at %s", request.url)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )
