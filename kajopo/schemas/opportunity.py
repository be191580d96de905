"""Opportunity and application schemas."""
from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from ..core.validation import is_date, is_future_date
from .common import BaseSchema


class OpportunityBase(BaseSchema):
    """Base opportunity schema."""

    title: str = Field(..., min_length=5, max_length=200, description="Opportunity title")
    organization: Optional[str] = Field(None, description="Offering organization")
    category: str = Field(..., min_length=1, description="Category name")
    type: str = Field(..., min_length=1, description="Grants, Fellowships, Volunteer, ...")
    location: str = Field(..., min_length=1, description="Where it takes place")
    description: str = Field(..., min_length=50, description="Full description")
    requirements: List[str] = Field(default_factory=list, description="Eligibility requirements")
    duration: Optional[str] = Field(None, description="How long it runs")
    commitment: Optional[str] = Field(None, description="Time or funding commitment")


class OpportunityCreate(OpportunityBase):
    """Opportunity creation schema."""

    deadline: str = Field(..., description="Application deadline (ISO 8601)")
    status: str = Field("active", description="active, closed or draft")

    @field_validator("deadline")
    @classmethod
    def deadline_in_future(cls, value: str) -> str:
        if not is_date(value):
            raise ValueError("Please enter a valid date")
        if not is_future_date(value):
            raise ValueError("Date must be in the future")
        return value


class OpportunityUpdate(BaseSchema):
    """Opportunity update schema."""

    title: Optional[str] = Field(None, min_length=5, max_length=200)
    organization: Optional[str] = None
    category: Optional[str] = None
    type: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = Field(None, min_length=50)
    requirements: Optional[List[str]] = None
    duration: Optional[str] = None
    commitment: Optional[str] = None
    deadline: Optional[str] = None
    status: Optional[str] = None

    @field_validator("deadline")
    @classmethod
    def deadline_is_date(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not is_date(value):
            raise ValueError("Please enter a valid date")
        return value


class OpportunityResponse(BaseSchema):
    """Opportunity response schema."""

    id: str
    title: str
    organization: Optional[str] = None
    category: Optional[str] = None
    type: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    requirements: List[str] = Field(default_factory=list)
    duration: Optional[str] = None
    commitment: Optional[str] = None
    deadline: Optional[str] = None
    status: str = "active"
    applicants: int = 0
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CategoryResponse(BaseSchema):
    id: str
    name: str


class ApplicationCreate(BaseSchema):
    """Application submission schema."""

    cover_letter: str = Field("", max_length=5000, description="Why you are a good fit")


class ApplicationResponse(BaseSchema):
    """Application response schema."""

    id: str
    opportunity_id: str
    applicant_id: str
    applicant_name: Optional[str] = None
    applicant_email: Optional[str] = None
    cover_letter: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
