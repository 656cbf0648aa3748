"""FastAPI dependencies for the request store and caller identity.

Authentication is handled upstream; the gateway forwards the caller's email
and role in X-User-Email and X-User-Role.
"""
from fastapi import Header, Request
from pydantic import BaseModel

from ..models import Role
from ..store import RequestStore


class Actor(BaseModel):
    """The user making an API call."""

    email: str
    role: Role


def get_store(request: Request) -> RequestStore:
    """Request store attached to the application at startup."""
    return request.app.state.store


def get_current_actor(
    x_user_email: str = Header(..., min_length=1),
    x_user_role: Role = Header(...),
) -> Actor:
    return Actor(email=x_user_email, role=x_user_role)
