"""Authentication and session schemas."""
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from .common import BaseSchema


class LoginRequest(BaseSchema):
    """Login request schema.

    Fields are plain strings so that missing values reach the login flow and
    come back as a validation outcome.
    """

    email: str = Field("", description="Account email")
    password: str = Field("", description="Account password")
    remember_me: bool = Field(False, description="Keep the session for the long lifetime")


class RegisterRequest(BaseSchema):
    """Self-service registration schema."""

    email: str = Field("", description="Account email")
    password: str = Field("", description="Password, at least 8 characters")
    first_name: str = Field("", description="First name")
    last_name: str = Field("", description="Last name")
    role: str = Field("seeker", description="seeker or provider")
    phone: Optional[str] = Field(None, description="Phone number")
    location: Optional[str] = Field(None, description="Location")
    organization: Optional[str] = Field(None, description="Organization, for providers")
    remember_me: bool = Field(False, description="Keep the session for the long lifetime")


class AccountResponse(BaseSchema):
    """Account as exposed over HTTP, without credentials."""

    id: str = Field(..., description="Account ID")
    email: str = Field(..., description="Account email")
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    name: Optional[str] = None
    role: str = Field(..., description="Account role")
    is_verified: bool = Field(False, description="Email confirmed by an administrator")
    profile_complete: bool = False
    phone: Optional[str] = None
    location: Optional[str] = None
    organization: Optional[str] = None
    permissions: Optional[List[str]] = Field(None, description="Per-account permission override")
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SessionResponse(BaseSchema):
    """Current session state."""

    session_id: str
    scope: str
    created_at: datetime
    issued_at: datetime
    expires_at: datetime
    remember_me: bool
    remaining_seconds: int = Field(..., description="Seconds until expiry")
    permissions: List[str] = Field(default_factory=list, description="Effective permissions")
    account: AccountResponse


class AuthResponse(BaseSchema):
    """Successful login or registration."""

    success: bool = True
    outcome: str
    message: str
    session: Optional[SessionResponse] = None


class ExtendSessionRequest(BaseSchema):
    """Session extension request."""

    hours: Optional[float] = Field(None, gt=0, le=24 * 30, description="Extra hours; defaults to 2")
