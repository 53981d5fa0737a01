from pydantic import BaseModel
from typing import Any, Optional


class OperationResult(BaseModel):
    """Envelope returned by mutating endpoints. Failures use the error handler's shape instead."""
    success: bool = True
    message: str
    data: Optional[Any] = None
