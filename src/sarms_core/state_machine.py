"""State machine validation for software request status transitions.

Enforces the review workflow:
- New requests enter review only when an admin assigns a project manager
- Reviewed requests are approved, rejected, parked on hold, or sent for discussion
- Approved and rejected are terminal
- Customers never change status

Validation failures are returned to the caller as TransitionResult errors so the
UI can ask the user for the missing input.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from .models import RequestStatus, Role, TransitionErrorKind
from .schemas import StatusChangeRecord, TransitionError, TransitionResult

logger = logging.getLogger("sarms-core.state_machine")


# State machine transition matrix
# Maps current status → allowed next statuses (no-op transitions are not listed)
TRANSITION_MATRIX: dict[RequestStatus, list[RequestStatus]] = {
    RequestStatus.NEW: [
        RequestStatus.UNDER_REVIEW,            # Forward: PM assigned (admin only)
    ],
    RequestStatus.UNDER_REVIEW: [
        RequestStatus.APPROVED,                # Terminal: accepted
        RequestStatus.REJECTED,                # Terminal: declined, remark required
        RequestStatus.REQUEST_FOR_DISCUSSION,  # Side: needs a conversation
        RequestStatus.ON_HOLD,                 # Side: parked, remark required
    ],
    RequestStatus.REQUEST_FOR_DISCUSSION: [
        RequestStatus.APPROVED,
        RequestStatus.REJECTED,
        RequestStatus.ON_HOLD,
    ],
    RequestStatus.ON_HOLD: [
        RequestStatus.APPROVED,
        RequestStatus.REJECTED,
        RequestStatus.REQUEST_FOR_DISCUSSION,
    ],
    RequestStatus.APPROVED: [],  # Terminal
    RequestStatus.REJECTED: [],  # Terminal
}

# Roles allowed to change request status at all
STATUS_MANAGER_ROLES = frozenset({Role.ADMIN, Role.PROJECT_MANAGER})

# Transitions reserved for admins (project managers cannot self-assign out of new)
ADMIN_ONLY_TRANSITIONS = frozenset({
    (RequestStatus.NEW, RequestStatus.UNDER_REVIEW),
})

# Target statuses that need a justification; the remark is stored as the
# rejection reason or hold reason respectively
REMARK_REQUIRED_STATUSES = frozenset({RequestStatus.REJECTED, RequestStatus.ON_HOLD})

TERMINAL_STATUSES = frozenset({RequestStatus.APPROVED, RequestStatus.REJECTED})


def is_transition_valid(
    current_status: RequestStatus,
    new_status: RequestStatus
) -> bool:
    """
    Check if a status transition exists in the matrix, ignoring roles.

    Args:
        current_status: Current request status
        new_status: Requested new status

    Returns:
        True if the matrix allows it, False otherwise
    """
    return new_status in TRANSITION_MATRIX.get(current_status, [])


def is_terminal_status(status: RequestStatus) -> bool:
    """Check if a status is terminal (no further transitions)."""
    return status in TERMINAL_STATUSES


def requires_remark(status: RequestStatus) -> bool:
    """Check if moving to this status needs a remark."""
    return status in REMARK_REQUIRED_STATUSES


def requires_assignment(status: RequestStatus, current_assignee: Optional[str]) -> bool:
    """Check if moving to this status needs a project manager to be assigned."""
    return status == RequestStatus.UNDER_REVIEW and not _has_text(current_assignee)


def get_allowed_transitions(
    current_status: RequestStatus,
    actor_role: Role
) -> set[RequestStatus]:
    """
    Get the statuses an actor may move a request to.

    Args:
        current_status: Current request status
        actor_role: Role of the user asking

    Returns:
        Set of reachable statuses (empty for customers and terminal statuses)
    """
    if actor_role not in STATUS_MANAGER_ROLES:
        return set()

    return {
        target
        for target in TRANSITION_MATRIX.get(current_status, [])
        if actor_role == Role.ADMIN or (current_status, target) not in ADMIN_ONLY_TRANSITIONS
    }


def sort_statuses(statuses) -> list[RequestStatus]:
    """Order statuses by STATUS_SORT_ORDER, the order clients display them in."""
    return sorted(statuses, key=lambda s: STATUS_SORT_ORDER[s])


def _has_text(value: Optional[str]) -> bool:
    return value is not None and value.strip() != ""


def _illegal_transition_message(
    current_status: RequestStatus,
    new_status: RequestStatus,
    actor_role: Role,
    allowed: set[RequestStatus]
) -> str:
    allowed_names = [s.value for s in sort_statuses(allowed)]
    error_msg = f"Invalid status transition: {current_status.value} → {new_status.value}."
    if allowed_names:
        error_msg += f" As {actor_role.value}, you can only transition to: {', '.join(allowed_names)}."

    # Add helpful guidance based on the attempted transition
    if actor_role not in STATUS_MANAGER_ROLES:
        error_msg += " Only admins and project managers can change request status."
    elif is_terminal_status(current_status):
        error_msg += f" {STATUS_LABELS[current_status]} requests are final and cannot change status."
    elif current_status == new_status:
        error_msg += f" Request is already {STATUS_LABELS[current_status]}."
    elif (current_status, new_status) in ADMIN_ONLY_TRANSITIONS and is_transition_valid(current_status, new_status):
        error_msg += " Only admins can move new requests into review by assigning a project manager."
    elif current_status == RequestStatus.NEW:
        error_msg += " New requests must be reviewed before a decision is made."
    return error_msg


def validate_transition(
    current_status: RequestStatus,
    new_status: RequestStatus,
    actor_role: Role,
    remark: Optional[str] = None,
    assigned_to: Optional[str] = None,
    *,
    current_assignee: Optional[str] = None,
    changed_by: Optional[str] = None,
    changed_at: Optional[datetime] = None,
) -> TransitionResult:
    """
    Validate a status transition and build the history record for it.

    Checks run in order and stop at the first failure:
    1. The target is in get_allowed_transitions() for the actor's role
    2. Rejected and on_hold need a non-blank remark
    3. Under review needs an assignee when none is assigned yet

    Args:
        current_status: Authoritative current status of the request
        new_status: Requested new status
        actor_role: Role of the user making the change
        remark: Rejection or hold reason
        assigned_to: Project manager to assign with this change
        current_assignee: Project manager already assigned to the request
        changed_by: Identity of the actor (defaults to the role name)
        changed_at: Timestamp for the record (defaults to now, UTC)

    Returns:
        TransitionResult with a StatusChangeRecord on success, or a TransitionError
    """
    allowed = get_allowed_transitions(current_status, actor_role)

    def _fail(kind: TransitionErrorKind, message: str) -> TransitionResult:
        logger.warning(f"Blocked transition ({kind.value}): {message}")
        return TransitionResult(error=TransitionError(
            kind=kind,
            message=message,
            current_status=current_status,
            requested_status=new_status,
            allowed_transitions=sort_statuses(allowed),
        ))

    if new_status not in allowed:
        return _fail(
            TransitionErrorKind.ILLEGAL_TRANSITION,
            _illegal_transition_message(current_status, new_status, actor_role, allowed),
        )

    if requires_remark(new_status) and not _has_text(remark):
        reason = "rejection" if new_status == RequestStatus.REJECTED else "hold"
        return _fail(
            TransitionErrorKind.MISSING_REQUIRED_REMARK,
            f"A remark is required for {reason} status.",
        )

    if requires_assignment(new_status, current_assignee) and not _has_text(assigned_to):
        return _fail(
            TransitionErrorKind.MISSING_ASSIGNMENT,
            f"A project manager must be assigned for \"{STATUS_LABELS[new_status]}\" status.",
        )

    record = StatusChangeRecord(
        from_status=current_status,
        to_status=new_status,
        changed_by=changed_by or actor_role.value,
        changed_at=changed_at or datetime.now(timezone.utc),
        remark=remark.strip() if _has_text(remark) else None,
    )
    logger.debug(f"Valid transition: {current_status.value} → {new_status.value} by {record.changed_by}")
    return TransitionResult(record=record)


# Status sort order for list queries
# Lower number = needs attention sooner
STATUS_SORT_ORDER: dict[RequestStatus, int] = {
    RequestStatus.NEW: 1,                     # Waiting for assignment
    RequestStatus.UNDER_REVIEW: 2,            # Waiting for a decision
    RequestStatus.REQUEST_FOR_DISCUSSION: 3,  # Waiting on the requester
    RequestStatus.ON_HOLD: 4,                 # Parked
    RequestStatus.APPROVED: 5,                # Done
    RequestStatus.REJECTED: 6,                # Done
}

STATUS_LABELS: dict[RequestStatus, str] = {
    RequestStatus.NEW: "New",
    RequestStatus.UNDER_REVIEW: "Under Review",
    RequestStatus.REQUEST_FOR_DISCUSSION: "Request for Discussion",
    RequestStatus.APPROVED: "Approved",
    RequestStatus.REJECTED: "Rejected",
    RequestStatus.ON_HOLD: "On Hold",
}
