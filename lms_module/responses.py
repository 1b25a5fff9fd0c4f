"""JSON envelope shared by every endpoint.

Success: ``{"success": true, "data": ...}``.
Failure: ``{"success": false, "error": "...", "details": [...]}``; ``details``
is only present for validation failures.
"""
from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def api_success(data: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": True, "data": jsonable_encoder(data)})


def api_error(message: str, status_code: int, details: Any = None) -> JSONResponse:
    content: dict[str, Any] = {"success": False, "error": message}
    if details is not None:
        content["details"] = jsonable_encoder(details)
    return JSONResponse(status_code=status_code, content=content)
