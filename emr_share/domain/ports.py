"""Domain Ports - Abstract Contracts for Storage and Identity.

This module defines the Port interfaces (abstract contracts) that Adapters must implement,
together with the error taxonomy shared by the domain and its adapters.
Following Hexagonal Architecture, the Domain Core defines what it needs, not how it's provided.

Security Impact:
    - Every lifecycle operation obtains the caller's role and id through IdentityPort
    - Stores never filter by authorization; the domain filters after querying
    - Errors carry context for auditing but never the diagnosis text

Architecture:
    - Pure abstract interfaces with zero infrastructure dependencies
    - Adapters (in-memory, DuckDB, a ledger shim, etc.) implement these ports
    - Atomicity of read-modify-write sequences is delegated to the store via atomic()
    - Iterator pattern keeps patient queries lazy and restartable per call
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, Optional

from emr_share.domain.models import MedicalRecord, Principal


# ============================================================================
# Custom Exception Hierarchy
# ============================================================================

class EMRError(Exception):
    """Base exception for all record-sharing errors.

    Every failure is terminal for the invocation that raised it; nothing
    in the domain retries.
    """
    pass


class NotFoundError(EMRError):
    """Raised when a record or principal does not exist.

    Attributes:
        key: The record id or display name that was looked up
    """

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class AlreadyExistsError(EMRError):
    """Raised on a duplicate record id or a repeated registration.

    Attributes:
        key: The record id or display name that already exists
    """

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class UnauthorizedError(EMRError):
    """Raised when a role or ownership check fails.

    The message always names the caller's role so that denials can be told
    apart in audit logs without exposing the caller's identifier.

    Attributes:
        role: The caller's role as supplied by the identity provider
    """

    def __init__(self, message: str, role: Optional[str] = None):
        super().__init__(message)
        self.role = role


class MissingRoleError(UnauthorizedError):
    """Raised when the identity provider supplies no role attribute."""

    def __init__(self, message: str = "role attribute not found"):
        super().__init__(message, role=None)


class InvalidInputError(EMRError):
    """Raised for a bad share target role or a non-patient where a patient is required.

    Attributes:
        field: The argument that failed validation
        value: The offending value
    """

    def __init__(self, message: str, field: Optional[str] = None, value: Optional[str] = None):
        super().__init__(message)
        self.field = field
        self.value = value


class SerializationError(EMRError):
    """Raised when a record or principal cannot be encoded or decoded.

    Attributes:
        key: Storage key of the document, if known
    """

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class StoreError(EMRError):
    """Raised when the backing store fails.

    The domain passes this through unchanged.

    Attributes:
        operation: The store operation that failed (get, put, query, ...)
        details: Additional context (key, db_path, ...)
    """

    def __init__(self, message: str, operation: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.operation = operation
        self.details = details or {}


# ============================================================================
# Storage Ports
# ============================================================================

class RecordStorePort(ABC):
    """Abstract contract for the key-value record store.

    This port captures the slice of a versioned ledger state database the
    engine depends on: point reads and writes by key plus an equality query
    over the patient field.

    Key Principles:
        - get() returns None for a missing key; the domain decides what that means
        - put() overwrites unconditionally
        - query_by_patient_id() yields unordered records with no access filtering
        - atomic() brackets a read-modify-write sequence on one key

    Example Usage:
        ```python
        with store.atomic("emr1"):
            record = store.get("emr1")
            record.shared_with_doctors.append("doctor2")
            store.put("emr1", record)
        ```
    """

    @abstractmethod
    def get(self, key: str) -> Optional[MedicalRecord]:
        """Load the record stored under ``key``.

        Parameters:
            key: Record id

        Returns:
            Optional[MedicalRecord]: The decoded record, or None if absent

        Raises:
            SerializationError: If the stored document cannot be decoded
            StoreError: If the backend fails
        """
        pass

    @abstractmethod
    def put(self, key: str, record: MedicalRecord) -> None:
        """Store ``record`` under ``key``, replacing any previous value.

        Raises:
            SerializationError: If the record cannot be encoded
            StoreError: If the backend fails
        """
        pass

    @abstractmethod
    def query_by_patient_id(self, patient_id: str) -> Iterator[MedicalRecord]:
        """Yield every record whose patient field equals ``patient_id``.

        Each call starts a fresh query. Order is unspecified.

        Raises:
            SerializationError: If a matching document cannot be decoded
            StoreError: If the backend fails
        """
        pass

    @contextmanager
    def atomic(self, key: str) -> Iterator[None]:
        """Serialize a read-modify-write sequence on ``key``.

        Note:
            This default does nothing, which is correct when the surrounding
            platform already isolates transactions. Adapters that run outside
            such a platform override it.
        """
        yield


class PrincipalStorePort(ABC):
    """Abstract contract for the directory's backing store.

    Principals are keyed by display name. Uniqueness is enforced by the
    Directory, not by the store.
    """

    @abstractmethod
    def get_principal(self, display_name: str) -> Optional[Principal]:
        """Return the principal registered under ``display_name``, or None."""
        pass

    @abstractmethod
    def put_principal(self, principal: Principal) -> None:
        """Store ``principal`` keyed by its display name."""
        pass

    @contextmanager
    def atomic(self, key: str) -> Iterator[None]:
        """Serialize a check-then-write sequence on ``key`` (no-op by default)."""
        yield


# ============================================================================
# Identity Port
# ============================================================================

class IdentityPort(ABC):
    """Abstract contract for the credential/attribute provider.

    The engine never issues identities; it only reads the caller's stable id
    and the attributes bound to its credential for the current invocation.
    """

    @abstractmethod
    def get_id(self) -> str:
        """Return the caller's stable principal id (may be the empty string)."""
        pass

    @abstractmethod
    def get_attribute(self, name: str) -> Optional[str]:
        """Return the named attribute, or None if the credential lacks it."""
        pass

    def get_role(self) -> Optional[str]:
        """Return the caller's ``role`` attribute, or None if absent."""
        return self.get_attribute("role")
