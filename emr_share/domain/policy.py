"""Authorization Engine - read and share decisions over a record.

This module decides whether a caller, identified by the (role, id) pair its
credential carries, may read or share a MedicalRecord.

Security Impact:
    - Decisions are pure functions of (role, caller id, record); no I/O
    - Any role outside patient/doctor/hospital is denied under the current policy
    - For hospitals an empty caller id or an empty record hospital id denies
      before ownership is evaluated, so two absent ids never match
    - The doctor branch has no such guard: an empty caller id matches a record
      whose doctor id is also empty. This asymmetry is kept as observed.

Architecture:
    - Pure domain logic with no infrastructure dependencies
    - can_read() and can_share() are separate entry points over one predicate
    - LEGACY replays the first deployed contract for historical audits
"""

import logging

from emr_share.domain.enums import PolicyVersion, Role
from emr_share.domain.models import MedicalRecord

logger = logging.getLogger(__name__)


def _current_predicate(role: str, caller_id: str, record: MedicalRecord) -> bool:
    if role == Role.PATIENT.value:
        return caller_id == record.patient_id

    if role == Role.DOCTOR.value:
        return caller_id == record.doctor_id or caller_id in record.shared_with_doctors

    if role == Role.HOSPITAL.value:
        if caller_id == "" or record.hospital_id == "":
            return False
        return caller_id == record.hospital_id or caller_id in record.shared_with_hospitals

    return False


def _legacy_predicate(role: str, caller_id: str, record: MedicalRecord) -> bool:
    if role == Role.PATIENT.value:
        return caller_id == record.patient_id

    if role == Role.DOCTOR.value:
        return caller_id == record.doctor_id or caller_id in record.shared_with_doctors

    if role == Role.HOSPITAL.value:
        # First version compared hospitals against the doctor field
        return caller_id == record.doctor_id or caller_id in record.shared_with_hospitals

    # First version had no default deny
    return True


_PREDICATES = {
    PolicyVersion.CURRENT: _current_predicate,
    PolicyVersion.LEGACY: _legacy_predicate,
}


class AccessPolicy:
    """Read/share authorization for medical records.

    Reading and sharing currently use the same predicate: whoever may read a
    record may also share it onward. They are kept as distinct entry points
    so the two can diverge without touching callers.

    Parameters:
        version: Policy generation to evaluate (defaults to CURRENT)

    Example Usage:
        ```python
        policy = AccessPolicy()
        if not policy.can_read("doctor", "doctor1", record):
            raise UnauthorizedError("doctor is not authorized to read this record", role="doctor")
        ```
    """

    def __init__(self, version: PolicyVersion = PolicyVersion.CURRENT):
        self.version = PolicyVersion(version)
        self._predicate = _PREDICATES[self.version]
        if self.version is PolicyVersion.LEGACY:
            logger.warning(
                "Legacy access policy selected: hospitals are matched against the doctor field "
                "and unknown roles are allowed"
            )

    def _allows(self, role: str, caller_id: str, record: MedicalRecord) -> bool:
        return self._predicate(role, caller_id, record)

    def can_read(self, role: str, caller_id: str, record: MedicalRecord) -> bool:
        """Return True if ``caller_id`` acting as ``role`` may read ``record``."""
        return self._allows(role, caller_id, record)

    def can_share(self, role: str, caller_id: str, record: MedicalRecord) -> bool:
        """Return True if ``caller_id`` acting as ``role`` may share ``record``."""
        return self._allows(role, caller_id, record)
