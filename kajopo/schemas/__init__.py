"""Pydantic schemas module."""
from .admin import (
    ActivityEntryResponse,
    ApplicationStatusUpdate,
    RoleUpdate,
    UserStats,
)
from .auth import (
    AccountResponse,
    AuthResponse,
    ExtendSessionRequest,
    LoginRequest,
    RegisterRequest,
    SessionResponse,
)
from .common import (
    BaseSchema,
    HealthResponse,
    PaginatedResponse,
    PaginationParams,
    SuccessResponse,
)
from .message import (
    ConversationCreate,
    ConversationResponse,
    MessageCreate,
    MessageResponse,
    UnreadResponse,
)
from .opportunity import (
    ApplicationCreate,
    ApplicationResponse,
    CategoryResponse,
    OpportunityCreate,
    OpportunityResponse,
    OpportunityUpdate,
)

__all__ = [
    "AccountResponse",
    "ActivityEntryResponse",
    "ApplicationCreate",
    "ApplicationResponse",
    "ApplicationStatusUpdate",
    "AuthResponse",
    "BaseSchema",
    "CategoryResponse",
    "ConversationCreate",
    "ConversationResponse",
    "ExtendSessionRequest",
    "HealthResponse",
    "LoginRequest",
    "MessageCreate",
    "MessageResponse",
    "OpportunityCreate",
    "OpportunityResponse",
    "OpportunityUpdate",
    "PaginatedResponse",
    "PaginationParams",
    "RegisterRequest",
    "RoleUpdate",
    "SessionResponse",
    "SuccessResponse",
    "UnreadResponse",
    "UserStats",
]
