"""Record and Principal Schema Definitions.

This module defines the canonical data models shared by the directory, the
authorization engine and the record lifecycle.

Security Impact:
    - diagnosis is the only clinical payload and is never logged
    - Share lists are ordered and append-only; insertion order is an audit trail
    - Empty identifiers are valid "absent" sentinels and must never grant access

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Field aliases are the persisted key names; stores query on them
    - Follows Hexagonal Architecture: Domain Core is isolated from Adapters
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from emr_share.domain.enums import Role


class Principal(BaseModel):
    """A registered user: patient, doctor or hospital.

    Created once through registration and immutable afterwards. Looked up
    by display name, which is unique across the directory.

    Parameters:
        id: Stable principal identifier issued by the identity provider
        role: Principal role
        display_name: Human-readable name used for directory lookups
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., description="Stable principal identifier")
    role: Role = Field(..., description="Principal role")
    display_name: str = Field(..., alias="displayName", min_length=1, description="Unique human-readable name")

    @field_validator("display_name")
    @classmethod
    def strip_display_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("display name cannot be blank")
        return v


class MedicalRecord(BaseModel):
    """Electronic medical record shared between care providers.

    Exactly one of doctor_id/hospital_id is the creator's id. The other is
    filled from a best-effort directory lookup and may stay empty.

    Parameters:
        emr_id: Unique record key
        patient_id: Id of the patient principal the record is about
        doctor_id: Authoring or attending doctor ("" when absent)
        hospital_id: Authoring or attending hospital ("" when absent)
        diagnosis: Clinical payload
        created_on: RFC 3339 creation timestamp
        last_modified: RFC 3339 timestamp; sharing does not touch it
        shared_with_doctors: Doctor ids granted access, in grant order
        shared_with_hospitals: Hospital ids granted access, in grant order
    """

    model_config = ConfigDict(populate_by_name=True)

    emr_id: str = Field(..., alias="emrID", description="Unique record key")
    patient_id: str = Field(..., alias="patientID", description="Patient principal id")
    doctor_id: str = Field("", alias="doctorID", description="Doctor principal id or empty")
    hospital_id: str = Field("", alias="hospitalID", description="Hospital principal id or empty")
    diagnosis: str = Field("", description="Diagnosis text")
    created_on: str = Field("", alias="createdOn", description="Creation timestamp (RFC 3339)")
    last_modified: str = Field("", alias="lastModified", description="Last modification timestamp (RFC 3339)")
    shared_with_doctors: list[str] = Field(default_factory=list, alias="sharedWithDoctors")
    shared_with_hospitals: list[str] = Field(default_factory=list, alias="sharedWithHospitals")

    @field_validator("doctor_id", "hospital_id", mode="before")
    @classmethod
    def none_to_empty(cls, v: Optional[str]) -> str:
        """Treat a missing or null id as the empty sentinel."""
        return "" if v is None else v

    @field_validator("shared_with_doctors", "shared_with_hospitals", mode="before")
    @classmethod
    def null_list_to_empty(cls, v: Optional[list]) -> list:
        # Older writers emitted null for an empty share list
        return [] if v is None else v

    def share_list_for(self, role: str) -> list[str]:
        """Return the share list that grants access to ``role``.

        Raises:
            KeyError: If ``role`` has no share list
        """
        if role == Role.DOCTOR.value:
            return self.shared_with_doctors
        if role == Role.HOSPITAL.value:
            return self.shared_with_hospitals
        raise KeyError(role)
