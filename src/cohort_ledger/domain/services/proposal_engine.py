"""Proposal Engine Service.

A proposal asks for the mean of one encrypted attribute over a list of subject
records. The engine fetches every subject's ciphertext, hands the ordered list
to the crypto oracle and stores the aggregate it returns.

Security Impact:
    - The engine never performs arithmetic on ciphertexts; the oracle does
    - Resolved ciphertexts are discarded once the aggregate is computed
    - A failure at any step leaves no proposal in the ledger

Architecture:
    - Fan-in is a sequential loop: the first failing subject aborts the whole
      operation before any further ledger read
    - The proposal is written in a single ledger put, after the oracle returns
"""

import logging
from typing import Optional, Sequence, Union

from cohort_ledger.domain.models import Proposal
from cohort_ledger.domain.ports import (
    ConflictError,
    CryptoOraclePort,
    LedgerPort,
    OracleError,
)
from cohort_ledger.domain.services.base import LedgerService
from cohort_ledger.domain.services.record_registry import RecordRegistry

logger = logging.getLogger(__name__)


class ProposalEngine(LedgerService):
    """Aggregate subject ciphertexts into stored proposals.

    Parameters:
        ledger: Ledger adapter holding records and proposals
        oracle: Crypto oracle computing the homomorphic mean
        registry: Record registry used to resolve subjects (defaults to one
            over the same ledger)
    """

    def __init__(
        self,
        ledger: LedgerPort,
        oracle: CryptoOraclePort,
        registry: Optional[RecordRegistry] = None,
    ):
        super().__init__(ledger)
        self._oracle = oracle
        self._registry = registry or RecordRegistry(ledger)

    def create_proposal(
        self,
        id: str,
        requester_id: str,
        requested_id: str,
        subject_ids: Union[str, Sequence[str]],
        key_id: str,
        modulus: str,
    ) -> None:
        """Compute and store the encrypted mean over ``subject_ids``.

        Parameters:
            id: Proposal id (must not already hold a value)
            requester_id: Party asking for the statistic
            requested_id: Party holding the records
            subject_ids: Ordered subject ids, or a comma-separated string of them.
                Duplicates are kept and contribute once per occurrence.
            key_id: Key the aggregate ciphertext is expressed under
            modulus: Modulus handed through to the oracle

        Raises:
            ValidationError: If the arguments do not form a valid Proposal
            ConflictError: If a value is already stored at ``id``
            NotFoundError: If a subject record does not exist
            DecodeError: If a subject record cannot be decoded
            OracleError: If the oracle fails to compute the mean
            PersistenceError: If a ledger read or the final write fails
        """
        draft = Proposal.build(
            id=id,
            requester_id=requester_id,
            requested_id=requested_id,
            subject_ids=subject_ids if isinstance(subject_ids, str) else list(subject_ids),
            key_id=key_id,
        )
        if self._read(draft.id) is not None:
            raise ConflictError(draft.id)

        ciphertexts = [
            self._registry.find_record(subject_id).pre_existing_conditions
            for subject_id in draft.subject_ids
        ]
        logger.debug(f"Resolved {len(ciphertexts)} subject ciphertexts for proposal {id}")

        aggregate = self._compute_mean(draft.id, modulus, ciphertexts)

        proposal = draft.model_copy(update={"value_ciphertext": aggregate})
        self._store(proposal)
        logger.info(
            f"Created proposal {id} over {len(ciphertexts)} subjects "
            f"(requester={requester_id}, requested={requested_id})"
        )

    def find_proposal(self, id: str) -> Proposal:
        """Read the proposal stored at ``id``.

        Raises:
            NotFoundError: If no value is stored at ``id``
            PersistenceError: If the ledger read fails
            DecodeError: If the stored value is not a Proposal
        """
        return self._load(Proposal, id)

    def _compute_mean(self, proposal_id: str, modulus: str, ciphertexts: list[str]) -> str:
        try:
            aggregate = self._oracle.compute_modular_mean(modulus, ciphertexts)
        except OracleError:
            raise
        except Exception as e:
            raise OracleError(
                f"Oracle failed to compute mean for proposal {proposal_id}: {str(e)}",
                operation="compute_modular_mean",
                details={"proposal_id": proposal_id}
            ) from e

        if not isinstance(aggregate, str):
            raise OracleError(
                f"Oracle returned a non-string aggregate for proposal {proposal_id}",
                operation="compute_modular_mean",
                details={"proposal_id": proposal_id}
            )
        return aggregate
