"""JSON:API style error envelopes shared by exception handlers and middleware."""

from typing import Optional

from fastapi.responses import JSONResponse


def error_response(
    status_code: int,
    code: str,
    title: str,
    detail: Optional[str] = None,
    pointer: Optional[str] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    """Build an error response with a single JSON:API error object."""
    error = {
        "status": str(status_code),
        "code": code,
        "title": title,
        "detail": detail or title,
    }
    if pointer:
        error["source"] = {"pointer": pointer}
    return JSONResponse(status_code=status_code, content={"errors": [error]}, headers=headers)
