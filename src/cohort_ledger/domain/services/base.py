"""Shared ledger access for the domain services.

Every service reads and writes the ledger through these helpers so that the
error taxonomy is applied the same way everywhere: absent keys become
NotFoundError, undecodable values become DecodeError and any unexpected
failure raised by an injected ledger becomes PersistenceError.
"""

import logging
from typing import Iterator, Optional, Type, TypeVar

from cohort_ledger.domain.models import LedgerEntity
from cohort_ledger.domain.ports import (
    CohortLedgerError,
    LedgerPort,
    NotFoundError,
    PersistenceError,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=LedgerEntity)


class LedgerService:
    """Base class for services that operate on a single injected ledger."""

    def __init__(self, ledger: LedgerPort):
        self._ledger = ledger

    def _read(self, key: str) -> Optional[bytes]:
        try:
            return self._ledger.get(key)
        except CohortLedgerError:
            raise
        except Exception as e:
            raise PersistenceError(
                f"Failed to read from ledger: {str(e)}",
                operation="get",
                details={"key": key}
            ) from e

    def _load(self, entity_cls: Type[E], key: str) -> E:
        raw = self._read(key)
        if raw is None:
            raise NotFoundError(key)
        return entity_cls.from_bytes(key, raw)

    def _store(self, entity: LedgerEntity) -> None:
        key = entity.ledger_key
        try:
            self._ledger.put(key, entity.to_bytes())
        except CohortLedgerError:
            raise
        except Exception as e:
            raise PersistenceError(
                f"Failed to write to ledger: {str(e)}",
                operation="put",
                details={"key": key}
            ) from e

    def _scan(self, first_key: str, last_key: str) -> Iterator[tuple[str, bytes]]:
        """Iterate a ledger range, closing the ledger's cursor on exit."""
        try:
            rows = iter(self._ledger.range_scan(first_key, last_key))
        except CohortLedgerError:
            raise
        except Exception as e:
            raise PersistenceError(
                f"Failed to start range scan: {str(e)}",
                operation="range_scan",
                details={"first_key": first_key, "last_key": last_key}
            ) from e

        try:
            while True:
                try:
                    row = next(rows)
                except StopIteration:
                    return
                except CohortLedgerError:
                    raise
                except Exception as e:
                    raise PersistenceError(
                        f"Failed to read range scan row: {str(e)}",
                        operation="range_scan",
                        details={"first_key": first_key, "last_key": last_key}
                    ) from e
                yield row
        finally:
            close = getattr(rows, "close", None)
            if close is not None:
                close()
