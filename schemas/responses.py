"""Standard response envelopes."""
from typing import Any, Generic, List, Optional, TypeVar

from .base import CamelModel

T = TypeVar("T")


class ApiResponse(CamelModel, Generic[T]):
    """Envelope for successful responses."""
    status_code: int = 200
    data: Optional[T] = None
    message: str = "Success"
    success: bool = True


class ErrorResponse(CamelModel):
    """Envelope for failed responses."""
    status_code: int
    message: str
    success: bool = False
    errors: List[Any] = []
    data: None = None
