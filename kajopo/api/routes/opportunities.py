"""Opportunity browsing, posting and application routes."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ...backend.base import Backend
from ...core.container import ApplicationContainer
from ...core.security import get_container, get_user_backend, get_user_session
from ...core.session import SessionRecord
from ...schemas.common import PaginatedResponse, PaginationParams, SuccessResponse
from ...schemas.opportunity import (
    ApplicationCreate, ApplicationResponse, CategoryResponse,
    OpportunityCreate, OpportunityResponse, OpportunityUpdate,
)
from ...services.opportunities import OpportunityService

router = APIRouter(prefix="/opportunities", tags=["Opportunities"])


def get_opportunity_service(
    backend: Backend = Depends(get_user_backend),
    container: ApplicationContainer = Depends(get_container),
) -> OpportunityService:
    return OpportunityService(backend, container.permissions, container.activity_log, container.clock)


@router.get("", response_model=PaginatedResponse[OpportunityResponse])
async def list_opportunities(
    search: Optional[str] = Query(None, description="Match on title, description or organization"),
    category: Optional[str] = Query(None),
    type: Optional[str] = Query(None, description="Grants, Fellowships, Volunteer, ..."),
    location: Optional[str] = Query(None),
    sort: str = Query("newest", pattern="^(newest|oldest|deadline|alphabetical)$"),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    service: OpportunityService = Depends(get_opportunity_service),
):
    """Browse active opportunities. No sign-in required."""
    items = await service.list_opportunities(
        search=search,
        category=category,
        opportunity_type=type,
        location=location,
        sort=sort,
    )
    return PaginatedResponse.paginate(items, PaginationParams(page=page, size=size), OpportunityResponse.model_validate)


@router.get("/categories", response_model=List[CategoryResponse])
async def list_categories():
    return [CategoryResponse(**c) for c in OpportunityService.categories()]


@router.get("/applications/mine", response_model=List[ApplicationResponse])
async def my_applications(
    session: SessionRecord = Depends(get_user_session),
    service: OpportunityService = Depends(get_opportunity_service),
):
    """Applications submitted by the signed-in seeker."""
    applications = await service.applications_for(session.account["id"])
    return [ApplicationResponse.model_validate(a) for a in applications]


@router.get("/{opportunity_id}", response_model=OpportunityResponse)
async def get_opportunity(
    opportunity_id: str,
    service: OpportunityService = Depends(get_opportunity_service),
):
    return OpportunityResponse.model_validate(await service.get_opportunity(opportunity_id))


@router.post("", response_model=OpportunityResponse, status_code=201)
async def create_opportunity(
    opportunity: OpportunityCreate,
    session: SessionRecord = Depends(get_user_session),
    service: OpportunityService = Depends(get_opportunity_service),
):
    """Post a new opportunity as a provider."""
    created = await service.create_opportunity(opportunity.model_dump(), session.account)
    return OpportunityResponse.model_validate(created)


@router.patch("/{opportunity_id}", response_model=OpportunityResponse)
async def update_opportunity(
    opportunity_id: str,
    changes: OpportunityUpdate,
    session: SessionRecord = Depends(get_user_session),
    service: OpportunityService = Depends(get_opportunity_service),
):
    updated = await service.update_opportunity(
        opportunity_id,
        changes.model_dump(exclude_unset=True),
        session.account,
    )
    return OpportunityResponse.model_validate(updated)


@router.delete("/{opportunity_id}", response_model=SuccessResponse)
async def delete_opportunity(
    opportunity_id: str,
    session: SessionRecord = Depends(get_user_session),
    service: OpportunityService = Depends(get_opportunity_service),
):
    await service.delete_opportunity(opportunity_id, session.account)
    return SuccessResponse(message="Opportunity deleted successfully", data={"opportunity_id": opportunity_id})


@router.post("/{opportunity_id}/apply", response_model=ApplicationResponse, status_code=201)
async def apply_to_opportunity(
    opportunity_id: str,
    application: Optional[ApplicationCreate] = None,
    session: SessionRecord = Depends(get_user_session),
    service: OpportunityService = Depends(get_opportunity_service),
):
    """Submit an application as a seeker; one per opportunity."""
    cover_letter = application.cover_letter if application else ""
    created = await service.apply(opportunity_id, session.account, cover_letter=cover_letter)
    return ApplicationResponse.model_validate(created)
