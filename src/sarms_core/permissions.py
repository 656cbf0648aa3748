"""Role checks for request actions other than status changes.

Status changes are authorized by state_machine.get_allowed_transitions().
"""
import logging
from typing import Optional

from .models import Role
from .schemas import SoftwareRequest

logger = logging.getLogger("sarms-core.permissions")


class PermissionDeniedError(Exception):
    """Raised when a user's role does not allow an action."""

    def __init__(
        self,
        message: str,
        required_role: Optional[Role] = None,
        current_role: Optional[Role] = None,
        resource_type: str = "software_request"
    ):
        super().__init__(message)
        self.message = message
        self.required_role = required_role
        self.current_role = current_role
        self.resource_type = resource_type


def check_can_assign(actor_role: Role) -> None:
    """Only admins assign project managers."""
    if actor_role != Role.ADMIN:
        logger.warning(f"Permission denied: {actor_role.value} attempted to assign a project manager")
        raise PermissionDeniedError(
            "Only admins can assign project managers",
            required_role=Role.ADMIN,
            current_role=actor_role,
        )


def can_view_request(request: SoftwareRequest, actor_email: str, actor_role: Role) -> bool:
    """Customers only see their own requests; staff see everything."""
    if actor_role == Role.CUSTOMER:
        return request.submitted_by == actor_email
    return True


def check_can_view_request(request: SoftwareRequest, actor_email: str, actor_role: Role) -> None:
    if not can_view_request(request, actor_email, actor_role):
        logger.warning(f"Permission denied: {actor_email} attempted to view request {request.tracking_number}")
        raise PermissionDeniedError(
            "Customers can only view their own requests",
            current_role=actor_role,
        )


def check_can_edit_request(request: SoftwareRequest, actor_email: str, actor_role: Role) -> None:
    """
    Check that a user may edit a request's submitted details.

    Admins may edit any request; everyone else only the requests they submitted.

    Raises:
        PermissionDeniedError: If the user may not edit the request
    """
    if actor_role == Role.ADMIN or request.submitted_by == actor_email:
        return
    logger.warning(f"Permission denied: {actor_email} attempted to edit request {request.tracking_number}")
    raise PermissionDeniedError(
        "Only the submitter or an admin can edit this request",
        required_role=Role.ADMIN,
        current_role=actor_role,
    )
