"""Result Engine Service.

Turns a stored proposal into a result readable by a different key owner. The
proposal's aggregate ciphertext is re-keyed by the crypto oracle using two
tokens, and the output is stored under an id derived from the proposal id.

Security Impact:
    - Tokens are handed to the oracle untouched and are never logged
    - The core does not validate tokens; mismatched tokens are an oracle failure

Architecture:
    - Result ids are derived, never chosen by the caller
    - Writes are last-writer-wins: proposals whose ids share the same first
      digit run map to the same result id and overwrite each other
"""

import logging
import re
from typing import Optional

from cohort_ledger.domain.models import Proposal, Result
from cohort_ledger.domain.ports import (
    CryptoOraclePort,
    LedgerPort,
    OracleError,
)
from cohort_ledger.domain.services.base import LedgerService
from cohort_ledger.domain.services.proposal_engine import ProposalEngine

logger = logging.getLogger(__name__)

RESULT_ID_PREFIX = "RESULT"

_DIGIT_RUN = re.compile(r"[0-9]+")


def derive_result_id(proposal_id: str) -> str:
    """Derive the ledger key of the result for ``proposal_id``.

    The first maximal run of ASCII digits in the proposal id is appended to
    ``RESULT``. Without digits the key is ``RESULT`` alone.

    Example:
        ```python
        derive_result_id("P7x2")   # "RESULT7"
        derive_result_id("P0042")  # "RESULT0042"
        derive_result_id("P")      # "RESULT"
        ```
    """
    match = _DIGIT_RUN.search(proposal_id)
    digits = match.group(0) if match else ""
    return RESULT_ID_PREFIX + digits


class ResultEngine(LedgerService):
    """Re-key proposal aggregates and store them as results.

    Parameters:
        ledger: Ledger adapter holding proposals and results
        oracle: Crypto oracle performing the key switch
        proposals: Proposal engine used to read proposals (defaults to one
            over the same ledger and oracle)
    """

    def __init__(
        self,
        ledger: LedgerPort,
        oracle: CryptoOraclePort,
        proposals: Optional[ProposalEngine] = None,
    ):
        super().__init__(ledger)
        self._oracle = oracle
        self._proposals = proposals or ProposalEngine(ledger, oracle)

    def create_result(
        self,
        proposal_id: str,
        first_token: str,
        second_token: str,
        key_id: str,
        modulus: str,
    ) -> None:
        """Re-key the aggregate of ``proposal_id`` and store it as a result.

        The result lands at ``derive_result_id(proposal_id)``, replacing any
        result already stored there.

        Raises:
            NotFoundError: If the proposal does not exist
            DecodeError: If the stored value is not a Proposal
            OracleError: If the proposal has no aggregate or the key switch fails
            PersistenceError: If a ledger read or the write fails
        """
        proposal = self._proposals.find_proposal(proposal_id)
        new_value = self._key_switch(proposal, modulus, first_token, second_token)

        result = Result.build(
            derived_id=derive_result_id(proposal_id),
            proposal_id=proposal_id,
            key_id=key_id,
            value_ciphertext=new_value,
        )
        self._store(result)
        logger.info(f"Created result {result.derived_id} from proposal {proposal_id} under key {key_id}")

    def find_result(self, id: str) -> Result:
        """Read the result stored at ``id``.

        Raises:
            NotFoundError: If no value is stored at ``id``
            PersistenceError: If the ledger read fails
            DecodeError: If the stored value is not a Result
        """
        return self._load(Result, id)

    def _key_switch(self, proposal: Proposal, modulus: str, first_token: str, second_token: str) -> str:
        if not proposal.has_value:
            raise OracleError(
                f"Proposal {proposal.id} has no aggregate value to re-key",
                operation="key_switch",
                details={"proposal_id": proposal.id}
            )

        try:
            new_value = self._oracle.key_switch(modulus, first_token, second_token, proposal.value_ciphertext)
        except OracleError:
            raise
        except Exception as e:
            raise OracleError(
                f"Oracle failed to re-key proposal {proposal.id}: {str(e)}",
                operation="key_switch",
                details={"proposal_id": proposal.id}
            ) from e

        if not isinstance(new_value, str):
            raise OracleError(
                f"Oracle returned a non-string ciphertext for proposal {proposal.id}",
                operation="key_switch",
                details={"proposal_id": proposal.id}
            )
        return new_value
