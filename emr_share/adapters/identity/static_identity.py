"""Static Identity Adapter.

Implements IdentityPort from an explicit principal id and attribute map,
the shape a client certificate's enrollment attributes take once the
surrounding platform has verified them.
"""

from typing import Mapping, Optional

from emr_share.domain.ports import IdentityPort


class StaticIdentity(IdentityPort):
    """Caller identity fixed at construction.

    Parameters:
        principal_id: Stable id of the caller ("" when the platform supplied none)
        attributes: Credential attributes, e.g. ``{"role": "doctor", "commonName": "doctor1"}``

    Example Usage:
        ```python
        caller = StaticIdentity("doctor1", {"role": "doctor"})
        caller.get_role()  # "doctor"
        ```
    """

    def __init__(self, principal_id: str, attributes: Optional[Mapping[str, str]] = None):
        self._principal_id = principal_id
        self._attributes = dict(attributes or {})

    @classmethod
    def for_role(cls, principal_id: str, role: Optional[str], **attributes: str) -> "StaticIdentity":
        """Build an identity with ``role`` plus any extra attributes (role omitted when None)."""
        attrs = {k: v for k, v in attributes.items() if v is not None}
        if role is not None:
            attrs["role"] = role
        return cls(principal_id, attrs)

    def get_id(self) -> str:
        return self._principal_id

    def get_attribute(self, name: str) -> Optional[str]:
        return self._attributes.get(name)

    def __repr__(self) -> str:
        return f"StaticIdentity(role={self.get_role()!r})"
