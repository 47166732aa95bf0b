from __future__ import annotations

from typing import Any

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel


class ApiResponse(BaseModel):
    statusCode: int
    data: Any = None
    message: str = "Success"
    success: bool = True

    @classmethod
    def ok(cls, data: Any = None, message: str = "Success", status_code: int = 200) -> dict[str, Any]:
        envelope = cls(
            statusCode=status_code,
            data=data,
            message=message,
            success=status_code < 400,
        )
        return jsonable_encoder(envelope)
