"""Shared fixtures for EMR-Share tests.

Principals are registered under display names that differ from their ids
so that tests can tell a resolved id apart from the name it came from.
"""

import pytest

from emr_share.adapters.identity import StaticIdentity
from emr_share.adapters.storage import InMemoryStore
from emr_share.domain.directory import Directory
from emr_share.domain.enums import Role
from emr_share.domain.models import MedicalRecord, Principal
from emr_share.domain.services import RecordService

FIXED_TIMESTAMP = "2025-03-27T12:00:00Z"

PRINCIPALS = [
    ("patient1", Role.PATIENT),
    ("patient2", Role.PATIENT),
    ("doctor1", Role.DOCTOR),
    ("doctor2", Role.DOCTOR),
    ("doctor3", Role.DOCTOR),
    ("hospital1", Role.HOSPITAL),
    ("hospital2", Role.HOSPITAL),
]


def uid(name: str) -> str:
    """Stable id issued for the principal registered as ``name``."""
    return f"uid::{name}"


def as_caller(role, name_or_id: str, raw_id: bool = False) -> StaticIdentity:
    """Identity for a registered principal (or a raw id when ``raw_id``)."""
    principal_id = name_or_id if raw_id else uid(name_or_id)
    return StaticIdentity(principal_id, {"role": role.value if isinstance(role, Role) else role})


def make_record(emr_id: str = "emr1", **overrides) -> MedicalRecord:
    fields = dict(
        emr_id=emr_id,
        patient_id=uid("patient1"),
        doctor_id=uid("doctor1"),
        hospital_id=uid("hospital1"),
        diagnosis="diagnosis1",
        created_on=FIXED_TIMESTAMP,
        last_modified=FIXED_TIMESTAMP,
        shared_with_doctors=[],
        shared_with_hospitals=[],
    )
    fields.update(overrides)
    return MedicalRecord(**fields)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def directory(store):
    directory = Directory(store)
    for name, role in PRINCIPALS:
        directory.register(Principal(id=uid(name), role=role, display_name=name))
    return directory


@pytest.fixture
def service(store, directory):
    return RecordService(store, directory, clock=lambda: FIXED_TIMESTAMP)


@pytest.fixture
def principal_id():
    """Map a display name to the id it was registered with."""
    return uid


@pytest.fixture
def caller():
    """Build a caller identity: ``caller(Role.DOCTOR, "doctor1")``."""
    return as_caller


@pytest.fixture
def record_factory():
    """Build a MedicalRecord with fixture defaults, overriding any field."""
    return make_record
