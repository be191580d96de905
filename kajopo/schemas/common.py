"""Common Pydantic schemas."""
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Generic, List, Optional, Sequence, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = {
        "from_attributes": True,
        "validate_assignment": True,
        "arbitrary_types_allowed": True,
    }


class PaginationParams(BaseSchema):
    """Page selection over an already filtered list of rows."""

    page: int = Field(1, ge=1, description="Page number")
    size: int = Field(20, ge=1, le=100, description="Page size")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.size

    def window(self, rows: Sequence[Any]) -> List[Any]:
        return list(rows[self.offset:self.offset + self.size])


class PaginatedResponse(BaseSchema, Generic[T]):
    """One page of rows plus the totals the client needs to page further."""

    items: List[T] = Field(..., description="Rows on this page")
    total: int = Field(..., description="Rows matching the filters")
    page: int = Field(..., description="Current page number")
    size: int = Field(..., description="Page size")
    pages: int = Field(..., description="Total number of pages")

    @classmethod
    def paginate(
        cls,
        rows: Sequence[Dict[str, Any]],
        params: PaginationParams,
        convert: Callable[[Dict[str, Any]], T],
    ) -> "PaginatedResponse[T]":
        total = len(rows)
        return cls(
            items=[convert(row) for row in params.window(rows)],
            total=total,
            page=params.page,
            size=params.size,
            pages=(total + params.size - 1) // params.size,
        )


class SuccessResponse(BaseSchema):
    """Generic success response."""

    success: bool = Field(True, description="Success status")
    message: str = Field(..., description="Success message")
    data: Optional[Dict[str, Any]] = Field(None, description="Additional data")


class ErrorBody(BaseSchema):
    """Payload of every error response."""

    error: Any = Field(..., description="Message safe to show the user")
    error_code: str = Field(..., description="Machine readable code")
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: float = Field(default_factory=time.time)


class HealthResponse(BaseSchema):
    """Health check response."""

    status: str = Field(..., description="healthy or degraded")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: str = Field(..., description="Application version")
    services: Dict[str, str] = Field(
        default_factory=dict,
        description="Storage health and the backend mode in use"
    )
