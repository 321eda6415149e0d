"""Record Registry Service.

This module provides the RecordRegistry, the intake side of the cohort ledger:
custodians create and update encrypted subject records, and callers enumerate
them by key range.

Security Impact:
    - Only ciphertexts are stored; the registry never sees plaintext attributes
    - Records are validated before they are written
    - Log lines carry record ids only, never ciphertexts

Architecture:
    - Pure domain service over an injected LedgerPort
    - No existence check on create and no concurrency control on update:
      the ledger's last-writer-wins semantics apply
"""

import logging
from contextlib import closing
from typing import Iterator

from cohort_ledger.domain.models import Record
from cohort_ledger.domain.ports import DecodeError, LedgerPort
from cohort_ledger.domain.services.base import LedgerService

logger = logging.getLogger(__name__)


class RecordRegistry(LedgerService):
    """Create, read, update and enumerate encrypted subject records.

    Parameters:
        ledger: Ledger adapter holding the records
        strict_decode: When True (default) a stored value that cannot be decoded
            raises DecodeError during range scans. When False the row is
            yielded as a zero-valued Record, which is what legacy ledgers
            written before strict decoding existed expect.

    Example Usage:
        ```python
        registry = RecordRegistry(DuckDBLedger())
        registry.create_record("P001", "Alice", "8412...", "D1", "S1", "K1")
        record = registry.find_record("P001")
        ```
    """

    def __init__(self, ledger: LedgerPort, strict_decode: bool = True):
        super().__init__(ledger)
        self.strict_decode = strict_decode

    def create_record(
        self,
        id: str,
        display_name: str,
        condition: str,
        diagnosis_id: str,
        status_id: str,
        key_id: str,
    ) -> None:
        """Write a new record at ``id``, silently replacing any existing value.

        Raises:
            ValidationError: If the arguments do not form a valid Record
            PersistenceError: If the ledger write fails
        """
        record = Record.build(
            id=id,
            display_name=display_name,
            pre_existing_conditions=condition,
            diagnosis_id=diagnosis_id,
            status_id=status_id,
            key_id=key_id,
        )
        self._store(record)
        logger.info(f"Created record {id} under key {key_id}")

    def find_record(self, id: str) -> Record:
        """Read the record stored at ``id``.

        Raises:
            NotFoundError: If no value is stored at ``id``
            PersistenceError: If the ledger read fails
            DecodeError: If the stored value is not a Record
        """
        return self._load(Record, id)

    def update_record(
        self,
        id: str,
        display_name: str,
        condition: str,
        diagnosis_id: str,
        status_id: str,
        key_id: str,
    ) -> None:
        """Replace every mutable field of an existing record.

        This is a read-modify-write without compare-and-swap: two concurrent
        updates of the same id both succeed and the last write wins.

        Raises:
            NotFoundError: If the record does not exist (nothing is written)
            DecodeError: If the stored value is not a Record
            PersistenceError: If the ledger read or write fails
        """
        existing = self.find_record(id)
        updated = Record.build(
            id=existing.id,
            display_name=display_name,
            pre_existing_conditions=condition,
            diagnosis_id=diagnosis_id,
            status_id=status_id,
            key_id=key_id,
        )
        self._store(updated)
        logger.info(f"Updated record {id}")

    def all_records(self, first_id: str, last_id: str) -> Iterator[tuple[str, Record]]:
        """Lazily enumerate records with keys in ``[first_id, last_id)``.

        Keys come back in ascending byte order. An empty ``last_id`` leaves the
        range open-ended. Each call starts a fresh scan; the underlying cursor
        is released when the iterator is exhausted or closed.

        Yields:
            tuple[str, Record]: Ledger key and decoded record

        Raises:
            DecodeError: For an undecodable row, when ``strict_decode`` is set
            PersistenceError: If the scan fails
        """
        with closing(self._scan(first_id, last_id)) as rows:
            for key, raw in rows:
                try:
                    record = Record.from_bytes(key, raw)
                except DecodeError:
                    if self.strict_decode:
                        raise
                    logger.warning(f"Yielding zero-valued record for undecodable key {key}")
                    record = Record.zero_value(key)
                yield key, record
