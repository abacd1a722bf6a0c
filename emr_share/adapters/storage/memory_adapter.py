"""In-Memory Storage Adapter.

This adapter implements RecordStorePort and PrincipalStorePort on plain
dictionaries. Documents are held in their persisted JSON encoding, so a
caller mutating a returned record never changes stored state, and codec
failures surface exactly as they would against a real ledger.

Architecture:
    - Implements both storage ports (Hexagonal Architecture)
    - Per-key locks stand in for the ledger's transaction isolation
    - Thread-safe; intended for tests and single-process use
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from emr_share.domain.codec import decode_principal, decode_record, encode_principal, encode_record
from emr_share.domain.models import MedicalRecord, Principal
from emr_share.domain.ports import PrincipalStorePort, RecordStorePort

logger = logging.getLogger(__name__)


class InMemoryStore(RecordStorePort, PrincipalStorePort):
    """Dictionary-backed record and principal store.

    Example Usage:
        ```python
        store = InMemoryStore()
        service = RecordService(store, Directory(store))
        ```
    """

    def __init__(self):
        self._records: dict[str, bytes] = {}
        self._principals: dict[str, bytes] = {}
        self._guard = threading.Lock()
        # key -> [lock, holders]; entries are dropped when the last holder leaves
        self._key_locks: dict[str, list] = {}
        self.put_count = 0

    @contextmanager
    def atomic(self, key: str) -> Iterator[None]:
        with self._guard:
            entry = self._key_locks.setdefault(key, [threading.RLock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._key_locks[key]

    # RecordStorePort

    def get(self, key: str) -> Optional[MedicalRecord]:
        data = self._records.get(key)
        if data is None:
            return None
        return decode_record(data, key=key)

    def put(self, key: str, record: MedicalRecord) -> None:
        self._records[key] = encode_record(record)
        self.put_count += 1
        logger.debug(f"Stored record {key}")

    def query_by_patient_id(self, patient_id: str) -> Iterator[MedicalRecord]:
        for key, data in list(self._records.items()):
            record = decode_record(data, key=key)
            if record.patient_id == patient_id:
                yield record

    # PrincipalStorePort

    def get_principal(self, display_name: str) -> Optional[Principal]:
        data = self._principals.get(display_name)
        if data is None:
            return None
        return decode_principal(data, key=display_name)

    def put_principal(self, principal: Principal) -> None:
        self._principals[principal.display_name] = encode_principal(principal)

    def __len__(self) -> int:
        return len(self._records)
