"""Error response models."""

from datetime import datetime

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Error body returned by every failing API endpoint."""

    error: str
    detail: str
    timestamp: datetime
    request_id: str | None = None
