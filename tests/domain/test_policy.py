"""Tests for the authorization engine.

These tests pin the read/share capability matrix, including the empty-id
guard that exists on the hospital branch only, and the decisions of the
legacy policy generation.
"""

import logging

import pytest

from emr_share.domain.enums import PolicyVersion
from emr_share.domain.models import MedicalRecord
from emr_share.domain.policy import AccessPolicy


def record(**overrides) -> MedicalRecord:
    fields = dict(
        emr_id="emr1",
        patient_id="patient1",
        doctor_id="doctor1",
        hospital_id="hospital1",
        diagnosis="diagnosis1",
        created_on="2025-03-27T12:00:00Z",
        last_modified="2025-03-27T12:00:00Z",
        shared_with_doctors=["doctor2"],
        shared_with_hospitals=["hospital2"],
    )
    fields.update(overrides)
    return MedicalRecord(**fields)


CURRENT_MATRIX = [
    # (role, caller_id, record overrides, expected)
    ("patient", "patient1", {}, True),
    ("patient", "patient2", {}, False),
    ("patient", "doctor1", {}, False),
    ("doctor", "doctor1", {}, True),
    ("doctor", "doctor2", {}, True),
    ("doctor", "doctor3", {}, False),
    ("doctor", "patient1", {}, False),
    ("doctor", "hospital2", {}, False),
    ("hospital", "hospital1", {}, True),
    ("hospital", "hospital2", {}, True),
    ("hospital", "hospital3", {}, False),
    ("hospital", "doctor1", {}, False),
    ("hospital", "doctor2", {}, False),
    # Empty-id guard on the hospital branch
    ("hospital", "", {}, False),
    ("hospital", "hospital2", {"hospital_id": ""}, False),
    ("hospital", "", {"hospital_id": ""}, False),
    ("hospital", "", {"hospital_id": "", "shared_with_hospitals": [""]}, False),
    ("hospital", "", {"shared_with_hospitals": [""]}, False),
    # No guard on the doctor branch: two empty ids match
    ("doctor", "", {"doctor_id": ""}, True),
    ("doctor", "", {}, False),
    # Roles outside the three known ones
    ("nurse", "doctor1", {}, False),
    ("admin", "patient1", {}, False),
    ("", "patient1", {}, False),
    ("Doctor", "doctor1", {}, False),
]


class TestCurrentPolicy:
    """Test suite for the policy in force."""

    @pytest.mark.parametrize("role,caller_id,overrides,expected", CURRENT_MATRIX)
    def test_read_matrix(self, role, caller_id, overrides, expected):
        """Test can_read against every row of the capability matrix."""
        assert AccessPolicy().can_read(role, caller_id, record(**overrides)) is expected

    @pytest.mark.parametrize("role,caller_id,overrides,expected", CURRENT_MATRIX)
    def test_share_matches_read(self, role, caller_id, overrides, expected):
        """Test that sharing is allowed exactly where reading is."""
        policy = AccessPolicy()
        rec = record(**overrides)
        assert policy.can_share(role, caller_id, rec) is expected
        assert policy.can_share(role, caller_id, rec) == policy.can_read(role, caller_id, rec)

    def test_share_list_grants_only_the_role_it_was_granted_under(self):
        """Test that an id in the hospital list cannot read as a doctor."""
        rec = record(shared_with_doctors=[], shared_with_hospitals=["doctor3"])
        policy = AccessPolicy()

        assert not policy.can_read("doctor", "doctor3", rec)
        assert policy.can_read("hospital", "doctor3", rec)

    def test_hospital_guard_applies_before_share_list(self):
        """Test that a record without a hospital denies even listed hospitals."""
        rec = record(hospital_id="", shared_with_hospitals=["hospital2"])
        assert not AccessPolicy().can_read("hospital", "hospital2", rec)

    def test_patient_cannot_read_via_share_lists(self):
        """Test that share-list membership does not help the patient role."""
        rec = record(shared_with_doctors=["patient2"], shared_with_hospitals=["patient2"])
        assert not AccessPolicy().can_read("patient", "patient2", rec)

    def test_default_version_is_current(self):
        """Test that AccessPolicy defaults to the current generation."""
        assert AccessPolicy().version is PolicyVersion.CURRENT
        assert AccessPolicy("current").version is PolicyVersion.CURRENT


class TestLegacyPolicy:
    """Test suite for the first-generation policy."""

    def test_selecting_legacy_logs_warning(self, caplog):
        """Test that choosing the legacy policy is announced."""
        with caplog.at_level(logging.WARNING, logger="emr_share.domain.policy"):
            AccessPolicy(PolicyVersion.LEGACY)
        assert "Legacy access policy selected" in caplog.text

    def test_hospital_matched_against_doctor_field(self):
        """Test that legacy hospitals are compared with the doctor id."""
        policy = AccessPolicy(PolicyVersion.LEGACY)
        rec = record()

        assert not policy.can_read("hospital", "hospital1", rec)
        assert policy.can_read("hospital", "doctor1", rec)
        assert policy.can_read("hospital", "hospital2", rec)

    def test_no_empty_id_guard(self):
        """Test that legacy hospitals with empty ids match an empty doctor field."""
        policy = AccessPolicy(PolicyVersion.LEGACY)
        rec = record(doctor_id="", hospital_id="")
        assert policy.can_read("hospital", "", rec)

    def test_unknown_roles_allowed(self):
        """Test that the legacy policy has no default deny."""
        policy = AccessPolicy(PolicyVersion.LEGACY)
        assert policy.can_read("nurse", "nurse1", record())
        assert policy.can_share("nurse", "nurse1", record())

    @pytest.mark.parametrize("role,caller_id,expected", [
        ("patient", "patient1", True),
        ("patient", "patient2", False),
        ("doctor", "doctor1", True),
        ("doctor", "doctor2", True),
        ("doctor", "doctor3", False),
    ])
    def test_patient_and_doctor_branches_unchanged(self, role, caller_id, expected):
        """Test that patient and doctor decisions agree across generations."""
        rec = record()
        assert AccessPolicy(PolicyVersion.LEGACY).can_read(role, caller_id, rec) is expected
        assert AccessPolicy().can_read(role, caller_id, rec) is expected
