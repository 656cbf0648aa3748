"""API routers for SARMS Core."""

from . import priority, requests

__all__ = ["priority", "requests"]
