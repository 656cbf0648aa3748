"""CRUD operations for software requests over an injected RequestStore."""
import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from . import schemas
from .config import get_settings
from .models import RequestStatus, Role
from .permissions import check_can_assign, check_can_edit_request
from .priority import classify_priority
from .state_machine import (
    STATUS_LABELS,
    STATUS_SORT_ORDER,
    is_terminal_status,
    validate_transition,
)
from .store import RequestNotFoundError, RequestStore

logger = logging.getLogger("sarms-core.crud")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _load_request(store: RequestStore, request_id: UUID) -> schemas.SoftwareRequest:
    request = store.get(request_id)
    if request is None:
        raise RequestNotFoundError(request_id)
    return request


# =============================================================================
# Software Requests
# =============================================================================

def create_request(
    store: RequestStore,
    data: schemas.SoftwareRequestCreate,
    submitted_by: str,
    now: Optional[datetime] = None,
) -> schemas.SoftwareRequest:
    """Submit a new software request.

    The request starts in 'new' with its priority computed from the impact
    analysis. The requester's own priority is kept alongside for comparison.

    Args:
        store: Request store
        data: Submitted form data
        submitted_by: Email of the submitting user
        now: Submission timestamp (defaults to now, UTC)

    Returns:
        The stored SoftwareRequest
    """
    now = now or _now()
    settings = get_settings()
    tracking_number = f"{settings.tracking_prefix}-{now.year}-{store.next_sequence():03d}"

    request = schemas.SoftwareRequest(
        **data.model_dump(),
        id=uuid4(),
        tracking_number=tracking_number,
        calculated_priority=classify_priority(data.impact_analysis),
        status=RequestStatus.NEW,
        submitted_by=submitted_by,
        submitted_at=now,
        last_updated=now,
    )
    request = store.save(request)

    logger.info(
        f"Created request {tracking_number} by {submitted_by} "
        f"(calculated priority {request.calculated_priority.value}, requested {request.priority.value})"
    )
    return request


def get_request(store: RequestStore, request_id: UUID) -> Optional[schemas.SoftwareRequest]:
    """Get a software request by ID, or None."""
    return store.get(request_id)


def resolve_page_size(page_size: Optional[int] = None) -> int:
    """Page size to use for a list call: the default when unset, capped at the maximum."""
    settings = get_settings()
    return min(page_size or settings.default_page_size, settings.max_page_size)


def list_requests(
    store: RequestStore,
    status: Optional[RequestStatus] = None,
    assigned_to: Optional[str] = None,
    submitted_by: Optional[str] = None,
    page: int = 1,
    page_size: Optional[int] = None,
) -> tuple[list[schemas.SoftwareRequest], int]:
    """List software requests with filtering and pagination.

    Requests needing attention come first (see STATUS_SORT_ORDER), newest
    first within a status.

    Returns:
        Tuple of (page of requests, total matching count)
    """
    page_size = resolve_page_size(page_size)
    page = max(page, 1)

    requests = store.list_all()
    if status is not None:
        requests = [r for r in requests if r.status == status]
    if assigned_to is not None:
        requests = [r for r in requests if r.assigned_to == assigned_to]
    if submitted_by is not None:
        requests = [r for r in requests if r.submitted_by == submitted_by]

    requests.sort(key=lambda r: r.submitted_at, reverse=True)
    requests.sort(key=lambda r: STATUS_SORT_ORDER[r.status])

    total = len(requests)
    start = (page - 1) * page_size
    return requests[start:start + page_size], total


def update_impact_analysis(
    store: RequestStore,
    request_id: UUID,
    impact: schemas.ImpactAnalysis,
    actor_email: str,
    actor_role: Role,
    now: Optional[datetime] = None,
) -> schemas.SoftwareRequest:
    """Replace a request's impact analysis and recompute its priority.

    Raises:
        RequestNotFoundError: If the request does not exist
        PermissionDeniedError: If the actor is neither the submitter nor an admin
        ValueError: If the request is already approved or rejected
        StaleRequestError: If the request was changed concurrently
    """
    request = _load_request(store, request_id)
    check_can_edit_request(request, actor_email, actor_role)

    if is_terminal_status(request.status):
        logger.warning(f"Blocked impact update on {STATUS_LABELS[request.status].lower()} request {request.tracking_number}")
        raise ValueError(
            f"Request {request.tracking_number} is {STATUS_LABELS[request.status].lower()} "
            f"and can no longer be edited."
        )

    old_priority = request.calculated_priority
    updated = request.model_copy(update={
        "impact_analysis": impact,
        "calculated_priority": classify_priority(impact),
        "last_updated": now or _now(),
    })
    updated = store.save(updated, expected_version=request.version)

    if updated.calculated_priority != old_priority:
        logger.info(
            f"Request {request.tracking_number} priority changed "
            f"{old_priority.value} → {updated.calculated_priority.value}"
        )
    return updated


# =============================================================================
# Status Transitions
# =============================================================================

def _apply_transition(
    request: schemas.SoftwareRequest,
    record: schemas.StatusChangeRecord,
    actor_email: str,
    assigned_to: Optional[str],
) -> schemas.SoftwareRequest:
    changes = {
        "status": record.to_status,
        "last_updated": record.changed_at,
        "status_history": [*request.status_history, record],
    }
    if record.to_status == RequestStatus.REJECTED:
        changes["rejection_remark"] = record.remark
    elif record.to_status == RequestStatus.ON_HOLD:
        changes["on_hold_remark"] = record.remark

    # Assignment rides along with the move into review
    assignee = assigned_to.strip() if assigned_to else ""
    if record.to_status == RequestStatus.UNDER_REVIEW and assignee and assignee != request.assigned_to:
        changes.update(
            assigned_to=assignee,
            assigned_by=actor_email,
            assigned_at=record.changed_at,
        )
    return request.model_copy(update=changes)


def change_request_status(
    store: RequestStore,
    request_id: UUID,
    new_status: RequestStatus,
    actor_email: str,
    actor_role: Role,
    remark: Optional[str] = None,
    assigned_to: Optional[str] = None,
    now: Optional[datetime] = None,
) -> tuple[schemas.SoftwareRequest, schemas.TransitionResult]:
    """Validate and apply a status change.

    The stored status is the one validated against, and the save only succeeds
    if the request has not been saved by anyone else since it was loaded.

    Args:
        store: Request store
        request_id: Request to change
        new_status: Requested status
        actor_email: Identity recorded on the status change
        actor_role: Role used for authorization
        remark: Rejection or hold reason
        assigned_to: Project manager email for the move into review
        now: Timestamp for the change (defaults to now, UTC)

    Returns:
        Tuple of (request, result). When result.ok is False the request is
        returned unchanged and nothing was saved.

    Raises:
        RequestNotFoundError: If the request does not exist
        StaleRequestError: If the request was changed concurrently
    """
    request = _load_request(store, request_id)

    result = validate_transition(
        request.status,
        new_status,
        actor_role,
        remark=remark,
        assigned_to=assigned_to,
        current_assignee=request.assigned_to,
        changed_by=actor_email,
        changed_at=now,
    )
    if not result.ok:
        return request, result

    updated = _apply_transition(request, result.record, actor_email, assigned_to)
    updated = store.save(updated, expected_version=request.version)

    logger.info(
        f"Request {request.tracking_number} moved {request.status.value} → {new_status.value} "
        f"by {actor_email}"
    )
    return updated, result


def assign_project_manager(
    store: RequestStore,
    request_id: UUID,
    project_manager_email: str,
    actor_email: str,
    actor_role: Role,
    now: Optional[datetime] = None,
) -> tuple[schemas.SoftwareRequest, Optional[schemas.TransitionResult]]:
    """Assign (or reassign) the project manager for a request.

    Assigning a new request moves it into review. Requests already being
    managed keep their status and only change assignee.

    Returns:
        Tuple of (request, result). result is None for a plain reassignment.

    Raises:
        PermissionDeniedError: If the actor is not an admin
        RequestNotFoundError: If the request does not exist
        ValueError: If the email is blank or the request is terminal
        StaleRequestError: If the request was changed concurrently
    """
    check_can_assign(actor_role)

    assignee = project_manager_email.strip()
    if not assignee:
        raise ValueError("Project manager email is required")

    request = _load_request(store, request_id)

    if request.status == RequestStatus.NEW:
        return change_request_status(
            store,
            request_id,
            RequestStatus.UNDER_REVIEW,
            actor_email,
            actor_role,
            assigned_to=assignee,
            now=now,
        )

    if is_terminal_status(request.status):
        raise ValueError(
            f"Request {request.tracking_number} is {STATUS_LABELS[request.status].lower()}; "
            f"project manager can no longer be changed."
        )

    now = now or _now()
    updated = request.model_copy(update={
        "assigned_to": assignee,
        "assigned_by": actor_email,
        "assigned_at": now,
        "last_updated": now,
    })
    updated = store.save(updated, expected_version=request.version)

    logger.info(f"Request {request.tracking_number} reassigned to {assignee} by {actor_email}")
    return updated, None
