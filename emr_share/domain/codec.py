"""Persisted encoding for records and principals.

Documents are compact JSON using the aliased field names, which the
patient query depends on. ``hospitalID`` is omitted when empty; share lists
are always written as arrays.
"""

import json
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from emr_share.domain.models import MedicalRecord, Principal
from emr_share.domain.ports import SerializationError


def encode_record(record: MedicalRecord) -> bytes:
    """Encode a record to its persisted JSON form.

    Raises:
        SerializationError: If the record cannot be serialized
    """
    try:
        exclude = {"hospital_id"} if not record.hospital_id else None
        return record.model_dump_json(by_alias=True, exclude=exclude).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise SerializationError(f"failed to encode record: {e}", key=record.emr_id) from e


def decode_record(data: bytes, key: Optional[str] = None) -> MedicalRecord:
    """Decode a persisted record document.

    Raises:
        SerializationError: If the document is not a valid record
    """
    try:
        return MedicalRecord.model_validate_json(data)
    except PydanticValidationError as e:
        raise SerializationError(
            f"failed to decode record {key}: {e.error_count()} validation error(s)",
            key=key,
        ) from e


def encode_principal(principal: Principal) -> bytes:
    """Encode a principal as ``{"id", "role", "displayName"}``."""
    try:
        return principal.model_dump_json(by_alias=True).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise SerializationError(f"failed to encode principal: {e}", key=principal.display_name) from e


def decode_principal(data: bytes, key: Optional[str] = None) -> Principal:
    """Decode a persisted principal document.

    Raises:
        SerializationError: If the document is not a valid principal
    """
    try:
        return Principal.model_validate_json(data)
    except PydanticValidationError as e:
        raise SerializationError(f"failed to decode principal {key}: {e.error_count()} validation error(s)", key=key) from e


def record_to_dict(record: MedicalRecord) -> dict:
    """Return the persisted encoding as a plain dictionary (for display)."""
    return json.loads(encode_record(record))
