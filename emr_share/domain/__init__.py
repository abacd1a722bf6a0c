"""Domain layer for EMR-Share.

This module contains the core business logic: record and principal schemas,
the directory, the authorization policy and the record lifecycle service.
All domain models are pure Python with no external dependencies beyond Pydantic.
"""

from .enums import Role, PolicyVersion
from .models import MedicalRecord, Principal
from .directory import Directory
from .policy import AccessPolicy
from .services import RecordService

__all__ = [
    "Role",
    "PolicyVersion",
    "MedicalRecord",
    "Principal",
    "Directory",
    "AccessPolicy",
    "RecordService",
]
