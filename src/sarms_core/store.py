"""Request storage interface and an in-memory implementation.

The classifier and state machine never touch storage. CRUD functions receive a
RequestStore and are responsible for loading the authoritative current request
and saving the result of a change atomically.

Every save bumps the request's version. A save that names the version it was
based on fails if anything else was saved in between.
"""
import abc
import logging
import threading
from typing import Optional
from uuid import UUID

from .schemas import SoftwareRequest

logger = logging.getLogger("sarms-core.store")


class RequestNotFoundError(LookupError):
    """Raised when a software request does not exist."""

    def __init__(self, request_id):
        super().__init__(f"Software request not found: {request_id}")
        self.request_id = request_id


class StaleRequestError(RuntimeError):
    """Raised when a save is based on a version of the request that is no longer current."""

    def __init__(
        self,
        request_id: UUID,
        expected_version: int,
        actual_version: Optional[int]
    ):
        actual = actual_version if actual_version is not None else "missing"
        super().__init__(
            f"Request {request_id} changed while it was being updated: "
            f"expected version {expected_version}, found {actual}. Reload and try again."
        )
        self.request_id = request_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class RequestStore(abc.ABC):
    """Storage for software requests."""

    @abc.abstractmethod
    def get(self, request_id: UUID) -> Optional[SoftwareRequest]:
        """Return the stored request or None."""

    @abc.abstractmethod
    def save(
        self,
        request: SoftwareRequest,
        expected_version: Optional[int] = None
    ) -> SoftwareRequest:
        """
        Insert or replace a request.

        Args:
            request: Request to store
            expected_version: When given, the stored request must still have this
                version or StaleRequestError is raised and nothing is written

        Returns:
            The stored request, with its version incremented
        """

    @abc.abstractmethod
    def list_all(self) -> list[SoftwareRequest]:
        """Return all stored requests."""

    @abc.abstractmethod
    def next_sequence(self) -> int:
        """Return the next tracking-number sequence value (1-based)."""


class InMemoryRequestStore(RequestStore):
    """Thread-safe dict-backed store, used for tests and local development."""

    def __init__(self):
        self._requests: dict[UUID, SoftwareRequest] = {}
        self._sequence = 0
        self._lock = threading.Lock()

    def get(self, request_id: UUID) -> Optional[SoftwareRequest]:
        with self._lock:
            request = self._requests.get(request_id)
            return request.model_copy(deep=True) if request else None

    def save(
        self,
        request: SoftwareRequest,
        expected_version: Optional[int] = None
    ) -> SoftwareRequest:
        with self._lock:
            existing = self._requests.get(request.id)
            current_version = existing.version if existing else None
            if expected_version is not None and current_version != expected_version:
                logger.warning(f"Stale save rejected for request {request.id}")
                raise StaleRequestError(request.id, expected_version, current_version)

            stored = request.model_copy(update={"version": (current_version or 0) + 1}, deep=True)
            self._requests[request.id] = stored
            logger.debug(f"Stored request {request.id} v{stored.version} ({stored.status.value})")
            return stored.model_copy(deep=True)

    def list_all(self) -> list[SoftwareRequest]:
        with self._lock:
            return [r.model_copy(deep=True) for r in self._requests.values()]

    def next_sequence(self) -> int:
        with self._lock:
            self._sequence += 1
            return self._sequence
