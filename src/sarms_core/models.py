"""Domain enums for software requests."""
import enum


class RequestStatus(str, enum.Enum):
    """Lifecycle status enum for software requests.

    Valid states:
    - new: Submitted, waiting for an admin to assign a project manager
    - under_review: Assigned project manager is evaluating the request
    - request_for_discussion: Needs a conversation with the requester
    - on_hold: Parked with a hold reason
    - approved: Terminal, accepted for delivery
    - rejected: Terminal, declined with a rejection reason
    """

    NEW = "new"
    UNDER_REVIEW = "under_review"
    REQUEST_FOR_DISCUSSION = "request_for_discussion"
    APPROVED = "approved"
    REJECTED = "rejected"
    ON_HOLD = "on_hold"


class PriorityTier(str, enum.Enum):
    """Priority tier computed from a request's impact analysis."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class CustomerImpact(str, enum.Enum):
    """Which customers are affected by the requested solution."""

    INTERNAL = "internal"
    EXTERNAL = "external"
    BOTH = "both"


class Role(str, enum.Enum):
    """User role enum."""

    ADMIN = "admin"
    PROJECT_MANAGER = "project_manager"
    CUSTOMER = "customer"


class TransitionErrorKind(str, enum.Enum):
    """Why a status transition was refused."""

    ILLEGAL_TRANSITION = "illegal_transition"
    MISSING_REQUIRED_REMARK = "missing_required_remark"
    MISSING_ASSIGNMENT = "missing_assignment"
