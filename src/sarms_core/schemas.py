"""Pydantic schemas for request/response validation."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict, model_validator

from .models import (
    RequestStatus,
    PriorityTier,
    CustomerImpact,
    Role,
    TransitionErrorKind,
)


# Impact Analysis Schemas

class ImpactAnalysis(BaseModel):
    """Structured justification data that drives priority classification.

    The explanation for a regulatory requirement is collected by the form but
    is not required here; classification only looks at the four criteria.
    """

    is_regulatory_requirement: bool
    regulatory_explanation: Optional[str] = None
    financial_impact_usd: float = Field(..., ge=0, description="Estimated financial impact in USD")
    customer_impact: CustomerImpact
    operational_urgency: bool
    existing_systems: str = ""

    model_config = ConfigDict(frozen=True)


class PriorityClassification(BaseModel):
    """Schema for the computed priority of an impact analysis."""

    priority: PriorityTier
    explanation: str
    missing_criteria: list[str] = Field(default_factory=list)


# Status Transition Schemas

class StatusChangeRecord(BaseModel):
    """Append-only history entry for one status change."""

    from_status: RequestStatus
    to_status: RequestStatus
    changed_by: str
    changed_at: datetime
    remark: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class TransitionError(BaseModel):
    """Recoverable validation failure for a requested status change."""

    kind: TransitionErrorKind
    message: str
    current_status: RequestStatus
    requested_status: RequestStatus
    allowed_transitions: list[RequestStatus] = Field(default_factory=list)


class TransitionResult(BaseModel):
    """Outcome of validating a transition: a record to append, or an error."""

    record: Optional[StatusChangeRecord] = None
    error: Optional[TransitionError] = None

    @model_validator(mode='after')
    def check_exactly_one(self):
        if (self.record is None) == (self.error is None):
            raise ValueError("TransitionResult needs exactly one of record or error")
        return self

    @property
    def ok(self) -> bool:
        return self.error is None


class StatusUpdate(BaseModel):
    """Schema for a status change request."""

    status: RequestStatus
    remark: Optional[str] = Field(None, description="Required for rejected and on_hold")
    assigned_to: Optional[str] = Field(None, description="Project manager email, required when moving an unassigned request to under_review")


class AssignmentUpdate(BaseModel):
    """Schema for assigning a project manager."""

    project_manager_email: str = Field(..., min_length=1)


class AllowedTransitionsResponse(BaseModel):
    """Status changes available to the caller."""

    current_status: RequestStatus
    role: Role
    allowed_transitions: list[RequestStatus]
    requires_remark: list[RequestStatus] = Field(default_factory=list)
    requires_assignment: bool = False


# Software Request Schemas

class ContactPerson(BaseModel):
    """Contact person for a request."""

    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    phone: str = ""
    position: str = ""


class SoftwareRequestCreate(BaseModel):
    """Schema for submitting a new software request."""

    department_name: str = Field(..., min_length=1, max_length=200)
    cost_center: str = Field(..., min_length=1, max_length=50)
    contact_person: ContactPerson
    requested_solution_name: str = Field(..., min_length=1, max_length=200)
    purpose_and_justification: str = ""
    process_description: str = ""
    impact_analysis: ImpactAnalysis
    integration_needs: str = ""
    priority: PriorityTier = Field(PriorityTier.LOW, description="Priority as perceived by the requester")


class SoftwareRequest(SoftwareRequestCreate):
    """A stored software request with its system fields."""

    id: UUID
    tracking_number: str
    calculated_priority: PriorityTier
    status: RequestStatus = RequestStatus.NEW
    submitted_by: str
    submitted_at: datetime
    assigned_to: Optional[str] = None
    assigned_by: Optional[str] = None
    assigned_at: Optional[datetime] = None
    last_updated: datetime
    status_history: list[StatusChangeRecord] = Field(default_factory=list)
    rejection_remark: Optional[str] = None
    on_hold_remark: Optional[str] = None
    version: int = Field(0, ge=0, description="Incremented by the store on every save")


class SoftwareRequestListResponse(BaseModel):
    """Paginated list of software requests."""

    items: list[SoftwareRequest]
    total: int
    page: int
    page_size: int
    total_pages: int
