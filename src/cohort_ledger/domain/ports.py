"""Domain Ports - Abstract Contracts for the Ledger and the Crypto Oracle.

This module defines the Port interfaces (abstract contracts) that Adapters must
implement, plus the error taxonomy every component raises.
Following Hexagonal Architecture, the Domain Core defines what it needs, not how
it's provided.

Security Impact:
    - The core never performs homomorphic arithmetic itself; it only hands
      opaque ciphertexts to the oracle port
    - Ledger values are opaque bytes; only the domain codec interprets them
    - Errors carry identifiers, never ciphertexts or tokens

Architecture:
    - Pure abstract interfaces with zero infrastructure dependencies
    - Adapters (DuckDB, PostgreSQL, HTTP oracle) implement these ports
    - Range scans are generators so cursor release is tied to iteration
"""

from abc import ABC, abstractmethod
from typing import Iterator, Optional, Sequence


# ============================================================================
# Custom Exception Hierarchy
# ============================================================================

class CohortLedgerError(Exception):
    """Base exception for every error raised by the cohort ledger core."""
    pass


class NotFoundError(CohortLedgerError):
    """Raised when a referenced entity is absent from the ledger.

    Attributes:
        entity_id: The identifier that was looked up
    """

    def __init__(self, entity_id: str, message: Optional[str] = None):
        super().__init__(message or f"{entity_id} does not exist")
        self.entity_id = entity_id


class DecodeError(CohortLedgerError):
    """Raised when stored bytes cannot be parsed into the expected entity.

    Attributes:
        entity_id: Ledger key holding the undecodable value
        entity_type: Name of the entity the bytes were decoded as
    """

    def __init__(self, message: str, entity_id: Optional[str] = None, entity_type: Optional[str] = None):
        super().__init__(message)
        self.entity_id = entity_id
        self.entity_type = entity_type


class PersistenceError(CohortLedgerError):
    """Raised when the underlying ledger read or write fails.

    Attributes:
        operation: Ledger operation that failed (put, get, range_scan, connect)
        details: Additional context (key, db_path, etc.)
    """

    def __init__(self, message: str, operation: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.operation = operation
        self.details = details or {}


class OracleError(CohortLedgerError):
    """Raised when the crypto oracle rejects or fails a request.

    Attributes:
        operation: Oracle operation that failed (compute_modular_mean, key_switch)
        details: Additional context (status code, proposal id, etc.)
    """

    def __init__(self, message: str, operation: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.operation = operation
        self.details = details or {}


class ValidationError(CohortLedgerError):
    """Raised when caller-supplied arguments cannot form a valid entity.

    Attributes:
        source: The identifier being written, if known
        details: Validation messages keyed by field
    """

    def __init__(self, message: str, source: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.source = source
        self.details = details or {}


class ConflictError(CohortLedgerError):
    """Raised when a proposal id already holds a value in the ledger.

    Attributes:
        entity_id: The identifier that is already taken
    """

    def __init__(self, entity_id: str, message: Optional[str] = None):
        super().__init__(message or f"{entity_id} already exists")
        self.entity_id = entity_id


# ============================================================================
# Ports
# ============================================================================

class LedgerPort(ABC):
    """Abstract contract for the durable key-value ledger.

    Keys are strings, values are opaque bytes. Implementations provide
    last-writer-wins semantics and nothing stronger: there is no
    compare-and-swap, so read-modify-write sequences built on this port are
    not atomic.

    Key Principles:
        - Byte-order ranges: ``range_scan`` yields keys in ascending byte-wise
          lexicographic order
        - Lazy: range scans stream rows and hold a cursor only while iterated
        - Fail loudly: driver failures surface as ``PersistenceError``

    Example Usage:
        ```python
        ledger = DuckDBLedger(db_path=":memory:")
        ledger.put("P001", b'{"name": "..."}')
        for key, value in ledger.range_scan("P000", "P999"):
            ...
        ```
    """

    @abstractmethod
    def put(self, key: str, value: bytes) -> None:
        """Write ``value`` at ``key``, replacing any existing value.

        Raises:
            PersistenceError: If the write fails
        """
        pass

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """Read the value at ``key``.

        Returns:
            Optional[bytes]: Stored bytes, or None if the key is absent

        Raises:
            PersistenceError: If the read fails
        """
        pass

    @abstractmethod
    def range_scan(self, first_key: str, last_key: str) -> Iterator[tuple[str, bytes]]:
        """Stream ``(key, value)`` pairs for keys in ``[first_key, last_key)``.

        An empty ``last_key`` means the range has no upper bound.

        Implementations must be generators (or return objects with ``close()``)
        that release their cursor in a ``finally`` block, so that both
        exhaustion and an early ``close()`` by the consumer free the resource.

        Raises:
            PersistenceError: If the scan cannot be started or a row fails to load
        """
        pass

    def close(self) -> None:
        """Release connections held by the adapter (optional)."""
        return None


class CryptoOraclePort(ABC):
    """Abstract contract for the homomorphic computation service.

    Both operations are black boxes to the core. All values cross this
    boundary as plain strings for interoperability with the oracle.
    """

    @abstractmethod
    def compute_modular_mean(self, modulus: str, ciphertexts: Sequence[str]) -> str:
        """Return the ciphertext of the mean of ``ciphertexts`` under ``modulus``.

        Input order is preserved; the oracle's blinding may depend on it.

        Raises:
            OracleError: If the oracle rejects the request
        """
        pass

    @abstractmethod
    def key_switch(self, modulus: str, first_token: str, second_token: str, ciphertext: str) -> str:
        """Re-key ``ciphertext`` into the key domain authorized by the two tokens.

        Raises:
            OracleError: If the oracle rejects the tokens or the ciphertext
        """
        pass

    def close(self) -> None:
        """Release connections held by the adapter (optional)."""
        return None
