"""Pydantic schema for the standard success envelope."""

from __future__ import annotations

from typing import Any, Dict

from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, computed_field


class ApiResponse(BaseModel):
    """Standard API response envelope.

    ``success`` is derived from the status code, so an envelope built with a
    non-2xx status reports ``success: false``.
    """

    status_code: int = Field(
        200, ge=100, le=599, description="HTTP status code of the response."
    )
    message: str = Field("Success", description="Human-readable outcome message.")
    data: Any = Field(None, description="Response payload.")
    meta: Dict[str, Any] = Field(
        default_factory=dict,
        description="Additional metadata (e.g., pagination).",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def success(self) -> bool:
        return 200 <= self.status_code < 300

    @classmethod
    def build(
        cls,
        status_code: int = 200,
        data: Any = None,
        message: str = "Success",
        meta: Dict[str, Any] | None = None,
    ) -> "ApiResponse":
        """Create an envelope with the toolkit defaults."""
        return cls(status_code=status_code, data=data, message=message, meta=meta or {})

    def to_response(self) -> JSONResponse:
        """Render the envelope as a JSONResponse carrying its status code."""
        return JSONResponse(status_code=self.status_code, content=self.model_dump(mode="json"))
