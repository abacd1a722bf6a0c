"""Record Lifecycle Service.

This module composes the Directory, the RecordStorePort and the AccessPolicy
into the record transactions: create, read, share, list-by-patient and
caller registration.

Security Impact:
    - Every operation reads the caller's role and id from IdentityPort first
    - All authorization and validation checks run before any write
    - Denied records are dropped from patient listings without error
    - Diagnosis text never reaches the log

Architecture:
    - Pure domain service; storage and identity are injected ports
    - Each mutating operation is one read-modify-write inside store.atomic()
    - No retries: every failure is terminal for the invocation

Record state machine:
    absent --create--> active --share--> active (no deletion, no archival)
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional

from emr_share.domain.directory import Directory
from emr_share.domain.enums import CARE_PROVIDER_ROLES, Role
from emr_share.domain.models import MedicalRecord, Principal
from emr_share.domain.policy import AccessPolicy
from emr_share.domain.ports import (
    AlreadyExistsError,
    IdentityPort,
    InvalidInputError,
    MissingRoleError,
    NotFoundError,
    RecordStorePort,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

# RFC 3339, second precision, UTC; sorts lexically in time order
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """Format ``now`` (default: current time) as an RFC 3339 UTC timestamp."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def _context(emr_id: str, role: str, **fields: str) -> dict:
    """Logging ``extra`` naming the record and the caller's role (never the caller id)."""
    return {"emr_id": emr_id, "caller_role": role, **fields}


class RecordService:
    """Access-controlled medical record transactions.

    Parameters:
        store: Record store (ledger state or an adapter standing in for it)
        directory: Principal directory for name resolution
        policy: Authorization policy (defaults to the current policy)
        clock: Zero-argument callable returning the timestamp string to stamp

    Example Usage:
        ```python
        service = RecordService(store, Directory(store))
        caller = StaticIdentity("doctor1", {"role": "doctor"})
        service.create_record(caller, "emr1", "patient1", "doctor1", "hospital1", "flu")
        service.read_record(caller, "emr1")
        ```
    """

    def __init__(
        self,
        store: RecordStorePort,
        directory: Directory,
        policy: Optional[AccessPolicy] = None,
        clock: Optional[Callable[[], str]] = None,
    ):
        self._store = store
        self._directory = directory
        self._policy = policy or AccessPolicy()
        self._clock = clock or utc_timestamp

    # ------------------------------------------------------------------
    # Caller identity
    # ------------------------------------------------------------------

    @staticmethod
    def _caller(identity: IdentityPort) -> tuple[str, str]:
        """Return (role, caller_id), failing if the credential has no role."""
        role = identity.get_role()
        if role is None:
            raise MissingRoleError()
        return role, identity.get_id()

    def _load(self, emr_id: str) -> MedicalRecord:
        record = self._store.get(emr_id)
        if record is None:
            raise NotFoundError(f"record with ID {emr_id} does not exist", key=emr_id)
        return record

    # ------------------------------------------------------------------
    # Lifecycle operations
    # ------------------------------------------------------------------

    def create_record(
        self,
        identity: IdentityPort,
        emr_id: str,
        patient_name: str,
        doctor_name: Optional[str],
        hospital_name: Optional[str],
        diagnosis: str,
    ) -> MedicalRecord:
        """Create a new record authored by the calling doctor or hospital.

        The creator's id fills the field matching its role. The other
        provider field comes from a soft directory lookup of the supplied
        counterpart name and stays empty when that name is unknown.

        Parameters:
            identity: Caller credential (role must be doctor or hospital)
            emr_id: New record key
            patient_name: Display name of the patient
            doctor_name: Display name of the doctor (counterpart when a hospital creates)
            hospital_name: Display name of the hospital (counterpart when a doctor creates)
            diagnosis: Diagnosis text

        Returns:
            MedicalRecord: The record as persisted

        Raises:
            MissingRoleError: If the credential has no role
            UnauthorizedError: If the caller is neither doctor nor hospital
            AlreadyExistsError: If ``emr_id`` is already taken
            NotFoundError: If the patient is unknown or not a patient
            SerializationError: If the record cannot be encoded
            StoreError: If the store fails
        """
        role, caller_id = self._caller(identity)
        if role not in CARE_PROVIDER_ROLES:
            logger.warning(f"Denied record creation for role {role}", extra=_context(emr_id, role))
            raise UnauthorizedError("only doctors and hospitals can create records", role=role)

        with self._store.atomic(emr_id):
            if self._store.get(emr_id) is not None:
                raise AlreadyExistsError(f"record with ID {emr_id} already exists", key=emr_id)

            patient = self._directory.try_resolve(patient_name)
            if patient is None or patient.role is not Role.PATIENT:
                raise NotFoundError(f"patient {patient_name} does not exist", key=patient_name)

            if role == Role.DOCTOR.value:
                doctor_id = caller_id
                hospital = self._directory.try_resolve(hospital_name)
                hospital_id = hospital.id if hospital is not None else ""
            else:
                hospital_id = caller_id
                doctor = self._directory.try_resolve(doctor_name)
                doctor_id = doctor.id if doctor is not None else ""

            timestamp = self._clock()
            record = MedicalRecord(
                emr_id=emr_id,
                patient_id=patient.id,
                doctor_id=doctor_id,
                hospital_id=hospital_id,
                diagnosis=diagnosis,
                created_on=timestamp,
                last_modified=timestamp,
                shared_with_doctors=[],
                shared_with_hospitals=[],
            )
            self._store.put(emr_id, record)

        logger.info(f"Created record {emr_id} by {role}", extra=_context(emr_id, role))
        return record

    def read_record(self, identity: IdentityPort, emr_id: str) -> MedicalRecord:
        """Return ``emr_id`` if the caller may read it.

        Raises:
            MissingRoleError: If the credential has no role
            NotFoundError: If the record does not exist
            UnauthorizedError: If the policy denies the read
        """
        role, caller_id = self._caller(identity)
        record = self._load(emr_id)

        if not self._policy.can_read(role, caller_id, record):
            logger.warning(f"Denied read of record {emr_id} for role {role}", extra=_context(emr_id, role))
            raise UnauthorizedError(f"{role} is not authorized to read this record", role=role)

        return record

    def share_record(
        self,
        identity: IdentityPort,
        emr_id: str,
        target_name: str,
        target_role: str,
    ) -> MedicalRecord:
        """Grant ``target_name`` access to ``emr_id`` as ``target_role``.

        The target's id is appended to the share list for ``target_role``
        even if already present. The role a principal was granted under is
        the only role it can read the record as. last_modified is left
        unchanged.

        Raises:
            MissingRoleError: If the credential has no role
            NotFoundError: If the record or the target principal does not exist
            UnauthorizedError: If the policy denies the share
            InvalidInputError: If ``target_role`` is not doctor or hospital
            SerializationError: If the record cannot be encoded
            StoreError: If the store fails
        """
        role, caller_id = self._caller(identity)

        with self._store.atomic(emr_id):
            record = self._load(emr_id)

            if not self._policy.can_share(role, caller_id, record):
                logger.warning(f"Denied share of record {emr_id} for role {role}", extra=_context(emr_id, role))
                raise UnauthorizedError(f"{role} is not authorized to share this record", role=role)

            if target_role not in CARE_PROVIDER_ROLES:
                raise InvalidInputError(
                    f"invalid role to share with: {target_role}",
                    field="target_role",
                    value=target_role,
                )

            target = self._directory.resolve(target_name)

            updated = record.model_copy(deep=True)
            updated.share_list_for(target_role).append(target.id)
            self._store.put(emr_id, updated)

        logger.info(
            f"Shared record {emr_id} with a {target_role} by {role}",
            extra=_context(emr_id, role, target_role=target_role),
        )
        return updated

    def list_records_for_patient(self, identity: IdentityPort, patient_name: str) -> Iterator[MedicalRecord]:
        """Yield the patient's records the caller may read.

        The patient is resolved and the caller's role checked eagerly; the
        store query itself is lazy. Records the policy denies are skipped
        silently, so an empty result does not tell "no records" apart from
        "no readable records".

        Raises:
            MissingRoleError: If the credential has no role
            NotFoundError: If the patient is unknown
            InvalidInputError: If the named principal is not a patient
        """
        role, caller_id = self._caller(identity)
        patient = self._directory.resolve_patient(patient_name)
        return self._readable(role, caller_id, patient.id)

    def _readable(self, role: str, caller_id: str, patient_id: str) -> Iterator[MedicalRecord]:
        for record in self._store.query_by_patient_id(patient_id):
            if self._policy.can_read(role, caller_id, record):
                yield record
            else:
                logger.debug(
                    f"Filtered record {record.emr_id} from patient listing for role {role}",
                    extra=_context(record.emr_id, role),
                )

    def register_user(self, identity: IdentityPort) -> Principal:
        """Register the calling principal in the directory.

        The display name comes from the credential's ``commonName``
        attribute, or from ``firstName`` and ``lastName`` joined by a space.

        Raises:
            MissingRoleError: If the credential has no role
            InvalidInputError: If the role is unknown or no name can be built
            AlreadyExistsError: If the name is already registered
        """
        role, caller_id = self._caller(identity)
        if role not in Role.values():
            raise InvalidInputError(f"cannot register unknown role: {role}", field="role", value=role)

        display_name = display_name_from(identity)
        if not display_name:
            raise InvalidInputError(
                "credential carries no commonName or firstName/lastName attributes",
                field="display_name",
            )

        principal = Principal(id=caller_id, role=Role(role), display_name=display_name)
        return self._directory.register(principal)


def display_name_from(identity: IdentityPort) -> str:
    """Synthesize a directory name from identity-provider attributes."""
    common_name = (identity.get_attribute("commonName") or "").strip()
    if common_name:
        return common_name

    parts = [
        (identity.get_attribute("firstName") or "").strip(),
        (identity.get_attribute("lastName") or "").strip(),
    ]
    return " ".join(part for part in parts if part)
