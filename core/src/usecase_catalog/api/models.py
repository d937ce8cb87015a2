from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class ApiError(BaseModel):
    error: str
    code: str
    details: Any | None = None


def fail(*, code: str, message: str, details: Any | None = None) -> ApiError:
    return ApiError(error=message, code=code, details=details)
