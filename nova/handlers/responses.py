"""JSON response helpers shared by the handlers."""

from typing import Any

from fastapi.responses import JSONResponse

from nova.models.results import NormalizedResult


def error_response(message: str, status_code: int = 400, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def result_response(result: NormalizedResult) -> JSONResponse:
    """Render a result as ``{success, data}`` or ``{success, error, error_type}``."""
    if result.ok:
        return JSONResponse(status_code=200, content={"success": True, "data": result.data})

    content: dict[str, Any] = {
        "success": False,
        "error": result.error,
        "error_type": result.kind.value if result.kind else None,
    }
    if result.hint:
        content["hint"] = result.hint
    if result.status_code:
        content["upstream_status"] = result.status_code
    return JSONResponse(status_code=result.http_status, content=content)
