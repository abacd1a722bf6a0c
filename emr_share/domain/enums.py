"""Domain enumerations.

Roles are carried by callers as plain strings (the identity provider may
hand us anything), so policy code compares against ``Role.X.value`` and
never assumes a caller's role is a valid member.
"""

from enum import Enum


class Role(str, Enum):
    """Principal roles recognised by the sharing engine."""
    PATIENT = "patient"
    DOCTOR = "doctor"
    HOSPITAL = "hospital"

    @classmethod
    def values(cls) -> set[str]:
        return {member.value for member in cls}


# Roles that may author records and receive shares
CARE_PROVIDER_ROLES = frozenset({Role.DOCTOR.value, Role.HOSPITAL.value})


class PolicyVersion(str, Enum):
    """Authorization policy generations.

    CURRENT is the policy in force. LEGACY replays the decisions of the
    first deployed contract and exists for auditing historical access.
    """
    CURRENT = "current"
    LEGACY = "legacy"
