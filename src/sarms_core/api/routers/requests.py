"""API endpoints for software requests and their status workflow.

Request Lifecycle: new -> under_review -> approved/rejected/on_hold/request_for_discussion

Status changes are authorized only through state_machine.get_allowed_transitions().
Validation failures come back as 400 responses naming the missing input so the
client can prompt the user and retry.
"""
import logging
from math import ceil
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ... import crud, schemas
from ...models import RequestStatus, Role
from ...permissions import PermissionDeniedError, check_can_view_request
from ...state_machine import (
    get_allowed_transitions,
    requires_assignment,
    requires_remark,
    sort_statuses,
)
from ...store import RequestNotFoundError, RequestStore, StaleRequestError
from ..dependencies import Actor, get_current_actor, get_store

logger = logging.getLogger("sarms-core.requests")


def _handle_permission_error(e: PermissionDeniedError) -> HTTPException:
    """Convert PermissionDeniedError to HTTPException with proper 403 response."""
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={
            "error": "permission_denied",
            "message": e.message,
            "required_role": e.required_role.value if e.required_role else None,
            "current_role": e.current_role.value if e.current_role else None,
            "resource_type": e.resource_type,
        }
    )


def _handle_transition_error(error: schemas.TransitionError) -> HTTPException:
    """Convert a failed TransitionResult into a 400 response."""
    detail = error.model_dump(mode="json")
    detail["error"] = detail.pop("kind")
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def _not_found(request_id: UUID) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Software request not found: {request_id}",
    )


def _conflict(e: StaleRequestError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


def _get_visible_request(store: RequestStore, request_id: UUID, actor: Actor) -> schemas.SoftwareRequest:
    request = crud.get_request(store, request_id)
    if request is None:
        raise _not_found(request_id)
    try:
        check_can_view_request(request, actor.email, actor.role)
    except PermissionDeniedError as e:
        raise _handle_permission_error(e)
    return request


router = APIRouter(tags=["requests"])


@router.post("/", response_model=schemas.SoftwareRequest, status_code=status.HTTP_201_CREATED)
async def create_request(
    data: schemas.SoftwareRequestCreate,
    store: RequestStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    """
    Submit a new software request.

    Requests start in 'new'. The calculated priority is derived from the
    impact analysis; the submitted priority is kept as the requester's view.
    """
    return crud.create_request(store, data, submitted_by=actor.email)


@router.get("/", response_model=schemas.SoftwareRequestListResponse)
async def list_requests(
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    assigned_to: Optional[str] = None,
    submitted_by: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    store: RequestStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    """
    List software requests with filtering and pagination.

    Customers only ever see the requests they submitted.
    """
    if actor.role == Role.CUSTOMER:
        submitted_by = actor.email

    items, total = crud.list_requests(
        store,
        status=status_filter,
        assigned_to=assigned_to,
        submitted_by=submitted_by,
        page=page,
        page_size=page_size,
    )
    effective_page_size = crud.resolve_page_size(page_size)
    return schemas.SoftwareRequestListResponse(
        items=items,
        total=total,
        page=page,
        page_size=effective_page_size,
        total_pages=ceil(total / effective_page_size) if total else 0,
    )


@router.get("/{request_id}", response_model=schemas.SoftwareRequest)
async def get_request(
    request_id: UUID,
    store: RequestStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    """Get a software request with its status history."""
    return _get_visible_request(store, request_id, actor)


@router.put("/{request_id}/impact-analysis", response_model=schemas.SoftwareRequest)
async def update_impact_analysis(
    request_id: UUID,
    impact: schemas.ImpactAnalysis,
    store: RequestStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    """
    Replace the impact analysis of a request and recompute its priority.

    Only the submitter or an admin may edit, and not after approval or rejection.
    """
    try:
        return crud.update_impact_analysis(store, request_id, impact, actor.email, actor.role)
    except RequestNotFoundError:
        raise _not_found(request_id)
    except PermissionDeniedError as e:
        raise _handle_permission_error(e)
    except StaleRequestError as e:
        raise _conflict(e)
    except ValueError as e:
        logger.warning(f"Invalid request update: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/{request_id}/allowed-transitions", response_model=schemas.AllowedTransitionsResponse)
async def get_request_allowed_transitions(
    request_id: UUID,
    store: RequestStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    """
    Status changes the caller may make, with the inputs each one needs.

    Clients use this to decide which actions to offer instead of repeating
    the role/status rules.
    """
    request = _get_visible_request(store, request_id, actor)
    allowed = sort_statuses(get_allowed_transitions(request.status, actor.role))
    return schemas.AllowedTransitionsResponse(
        current_status=request.status,
        role=actor.role,
        allowed_transitions=allowed,
        requires_remark=[s for s in allowed if requires_remark(s)],
        requires_assignment=any(requires_assignment(s, request.assigned_to) for s in allowed),
    )


@router.put("/{request_id}/status", response_model=schemas.SoftwareRequest)
async def update_request_status(
    request_id: UUID,
    update: schemas.StatusUpdate,
    store: RequestStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    """
    Change the status of a request.

    - rejected and on_hold need a remark (stored as the rejection or hold reason)
    - under_review needs assigned_to when no project manager is assigned yet
    - approved and rejected are final
    """
    _get_visible_request(store, request_id, actor)

    try:
        request, result = crud.change_request_status(
            store,
            request_id,
            update.status,
            actor.email,
            actor.role,
            remark=update.remark,
            assigned_to=update.assigned_to,
        )
    except RequestNotFoundError:
        raise _not_found(request_id)
    except StaleRequestError as e:
        raise _conflict(e)

    if not result.ok:
        raise _handle_transition_error(result.error)
    return request


@router.put("/{request_id}/assign", response_model=schemas.SoftwareRequest)
async def assign_project_manager(
    request_id: UUID,
    assignment: schemas.AssignmentUpdate,
    store: RequestStore = Depends(get_store),
    actor: Actor = Depends(get_current_actor),
):
    """
    Assign a project manager (admin only).

    Assigning a new request moves it to under_review. For requests already in
    review, discussion or on hold the assignee changes and the status does not.
    """
    try:
        request, result = crud.assign_project_manager(
            store,
            request_id,
            assignment.project_manager_email,
            actor.email,
            actor.role,
        )
    except PermissionDeniedError as e:
        raise _handle_permission_error(e)
    except RequestNotFoundError:
        raise _not_found(request_id)
    except StaleRequestError as e:
        raise _conflict(e)
    except ValueError as e:
        logger.warning(f"Invalid request update: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if result is not None and not result.ok:
        raise _handle_transition_error(result.error)
    return request
