"""Admin and system management routes."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ...backend.base import Backend
from ...core.container import ApplicationContainer
from ...core.security import (
    get_admin_backend, get_container, manage_applications,
    manage_opportunities, manage_users, view_analytics,
)
from ...core.session import SessionRecord
from ...schemas.admin import ActivityEntryResponse, ApplicationStatusUpdate, RoleUpdate, UserStats
from ...schemas.auth import AccountResponse
from ...schemas.common import HealthResponse, PaginatedResponse, PaginationParams, SuccessResponse
from ...schemas.opportunity import ApplicationResponse
from ...services.accounts import AccountService
from ...services.opportunities import OpportunityService

router = APIRouter(prefix="/admin", tags=["Administration"])


@router.get("/health", response_model=HealthResponse)
async def health_check(container: ApplicationContainer = Depends(get_container)):
    """System health check."""
    services = {}

    try:
        await container.store.get("__health__")
        services["storage"] = "healthy"
    except Exception:
        services["storage"] = "unhealthy"

    services["backend"] = container.gateway.mode

    overall_status = "healthy" if all(
        status in ("healthy", "hosted", "local") for status in services.values()
    ) else "degraded"

    return HealthResponse(
        status=overall_status,
        version=container.settings.api.version,
        services=services,
    )


@router.get("/users", response_model=PaginatedResponse[AccountResponse])
async def list_users(
    search: Optional[str] = Query(None, description="Match on name or email"),
    status: Optional[str] = Query(None, pattern="^(verified|pending)$"),
    role: Optional[str] = Query(None),
    sort: str = Query("joined", pattern="^(name|email|role|status|joined)$"),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    session: SessionRecord = Depends(manage_users),
    backend: Backend = Depends(get_admin_backend),
    container: ApplicationContainer = Depends(get_container),
):
    """List accounts with search, filters and sorting."""
    service = AccountService(backend, container.activity_log, container.clock)
    users = await service.list_users(search=search, status=status, role=role, sort=sort)
    return PaginatedResponse.paginate(users, PaginationParams(page=page, size=size), AccountResponse.model_validate)


@router.get("/users/{user_id}", response_model=AccountResponse)
async def get_user(
    user_id: str,
    session: SessionRecord = Depends(manage_users),
    backend: Backend = Depends(get_admin_backend),
    container: ApplicationContainer = Depends(get_container),
):
    service = AccountService(backend, container.activity_log, container.clock)
    return AccountResponse.model_validate(await service.get_user(user_id))


@router.patch("/users/{user_id}/role", response_model=AccountResponse)
async def update_user_role(
    user_id: str,
    update: RoleUpdate,
    session: SessionRecord = Depends(manage_users),
    backend: Backend = Depends(get_admin_backend),
    container: ApplicationContainer = Depends(get_container),
):
    """Change an account's role; admin roles need a super administrator."""
    service = AccountService(backend, container.activity_log, container.clock)
    account = await service.update_role(user_id, update.role, session.account)
    return AccountResponse.model_validate(account)


@router.post("/users/{user_id}/confirm", response_model=AccountResponse)
async def confirm_user(
    user_id: str,
    session: SessionRecord = Depends(manage_users),
    backend: Backend = Depends(get_admin_backend),
    container: ApplicationContainer = Depends(get_container),
):
    """Mark an account's email as confirmed."""
    service = AccountService(backend, container.activity_log, container.clock)
    return AccountResponse.model_validate(await service.confirm_user(user_id, session.account))


@router.delete("/users/{user_id}", response_model=SuccessResponse)
async def delete_user(
    user_id: str,
    session: SessionRecord = Depends(manage_users),
    backend: Backend = Depends(get_admin_backend),
    container: ApplicationContainer = Depends(get_container),
):
    service = AccountService(backend, container.activity_log, container.clock)
    await service.delete_user(user_id, session.account)
    return SuccessResponse(message="User deleted successfully", data={"user_id": user_id})


@router.get("/stats", response_model=UserStats)
async def user_stats(
    session: SessionRecord = Depends(view_analytics),
    backend: Backend = Depends(get_admin_backend),
    container: ApplicationContainer = Depends(get_container),
):
    """Account counts for the dashboard."""
    service = AccountService(backend, container.activity_log, container.clock)
    return UserStats(**await service.stats())


@router.get("/activity", response_model=List[ActivityEntryResponse])
async def recent_activity(
    limit: int = Query(50, ge=1, le=100),
    session: SessionRecord = Depends(view_analytics),
    container: ApplicationContainer = Depends(get_container),
):
    """Most recent activity log entries, newest first."""
    entries = await container.activity_log.entries(limit=limit)
    return [ActivityEntryResponse.model_validate(e.model_dump()) for e in entries]


@router.get("/applications", response_model=List[ApplicationResponse])
async def list_applications(
    status: Optional[str] = Query(None),
    opportunity_id: Optional[str] = Query(None),
    session: SessionRecord = Depends(manage_applications),
    backend: Backend = Depends(get_admin_backend),
    container: ApplicationContainer = Depends(get_container),
):
    service = OpportunityService(backend, container.permissions, container.activity_log, container.clock)
    applications = await service.list_applications(status=status, opportunity_id=opportunity_id)
    return [ApplicationResponse.model_validate(a) for a in applications]


@router.patch("/applications/{application_id}/status", response_model=ApplicationResponse)
async def update_application_status(
    application_id: str,
    update: ApplicationStatusUpdate,
    session: SessionRecord = Depends(manage_applications),
    backend: Backend = Depends(get_admin_backend),
    container: ApplicationContainer = Depends(get_container),
):
    """Record a review decision on an application."""
    service = OpportunityService(backend, container.permissions, container.activity_log, container.clock)
    application = await service.update_application_status(application_id, update.status, session.account)
    return ApplicationResponse.model_validate(application)


@router.delete("/opportunities/{opportunity_id}", response_model=SuccessResponse)
async def remove_opportunity(
    opportunity_id: str,
    session: SessionRecord = Depends(manage_opportunities),
    backend: Backend = Depends(get_admin_backend),
    container: ApplicationContainer = Depends(get_container),
):
    """Take down any opportunity."""
    service = OpportunityService(backend, container.permissions, container.activity_log, container.clock)
    await service.delete_opportunity(opportunity_id, session.account)
    return SuccessResponse(message="Opportunity deleted successfully", data={"opportunity_id": opportunity_id})
