"""Directory - display name to Principal resolution.

The directory is the only place human-readable names become stable ids.
It applies no authorization of its own; callers decide who may register.
"""

import logging
from typing import Optional

from emr_share.domain.enums import Role
from emr_share.domain.models import Principal
from emr_share.domain.ports import (
    AlreadyExistsError,
    InvalidInputError,
    NotFoundError,
    PrincipalStorePort,
)

logger = logging.getLogger(__name__)


class Directory:
    """Registry of principals keyed by unique display name.

    Parameters:
        store: Backing principal store

    Example Usage:
        ```python
        directory = Directory(InMemoryStore())
        directory.register(Principal(id="x509::patient1", role=Role.PATIENT, display_name="patient1"))
        directory.resolve("patient1").id
        ```
    """

    def __init__(self, store: PrincipalStorePort):
        self._store = store

    def register(self, principal: Principal) -> Principal:
        """Register ``principal`` under its display name.

        Raises:
            AlreadyExistsError: If the display name is already registered
        """
        name = principal.display_name
        with self._store.atomic(name):
            if self._store.get_principal(name) is not None:
                raise AlreadyExistsError(f"user {name} is already registered", key=name)
            self._store.put_principal(principal)

        logger.info(f"Registered {principal.role.value} principal: {name}")
        return principal

    def resolve(self, display_name: str) -> Principal:
        """Return the principal registered as ``display_name``.

        Surrounding whitespace is ignored, as it is when names are registered.

        Raises:
            NotFoundError: If no such principal exists
        """
        display_name = display_name.strip()
        principal = self._store.get_principal(display_name)
        if principal is None:
            raise NotFoundError(f"user {display_name} does not exist", key=display_name)
        return principal

    def try_resolve(self, display_name: Optional[str]) -> Optional[Principal]:
        """Best-effort lookup: return None instead of raising when unresolvable."""
        if not display_name:
            return None
        try:
            return self.resolve(display_name)
        except NotFoundError:
            logger.debug(f"Soft lookup found no principal named {display_name}")
            return None

    def resolve_patient(self, display_name: str) -> Principal:
        """Resolve ``display_name`` and require the patient role.

        Raises:
            NotFoundError: If no such principal exists
            InvalidInputError: If the principal is not a patient
        """
        principal = self.resolve(display_name)
        if principal.role is not Role.PATIENT:
            raise InvalidInputError(
                f"user {display_name} is not a patient",
                field="patient_name",
                value=display_name,
            )
        return principal
