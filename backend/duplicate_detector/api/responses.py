from typing import Any, Optional

from fastapi.encoders import jsonable_encoder


def success(data: Any = None) -> dict:
    """Wraps a payload in the `{success: true, data}` envelope."""
    return {"success": True, "data": jsonable_encoder(data)}


def failure(code: str, message: str, details: Optional[list] = None) -> dict:
    error = {"code": code, "message": message}
    if details:
        error["details"] = jsonable_encoder(details)
    return {"success": False, "error": error}
