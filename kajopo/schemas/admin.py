"""Administration schemas."""
from datetime import datetime
from typing import Any, Dict

from pydantic import Field

from .common import BaseSchema


class RoleUpdate(BaseSchema):
    """Role change request."""

    role: str = Field(..., description="New role")


class ApplicationStatusUpdate(BaseSchema):
    """Application review decision."""

    status: str = Field(..., description="pending, reviewed, accepted or rejected")


class UserStats(BaseSchema):
    """Account counts for the dashboard."""

    total: int
    seekers: int
    providers: int
    admins: int
    confirmed: int
    pending: int


class ActivityEntryResponse(BaseSchema):
    timestamp: datetime
    action: str
    data: Dict[str, Any] = Field(default_factory=dict)
