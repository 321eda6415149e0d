"""Cohort contract: the invocation surface exposed to the host.

Composes the record registry, proposal engine and result engine over one
ledger and one crypto oracle, and exposes their eight operations with plain
string arguments.
"""

import logging
from typing import Iterator, Sequence, Union

from cohort_ledger.domain.models import Proposal, Record, Result
from cohort_ledger.domain.ports import CryptoOraclePort, LedgerPort
from cohort_ledger.domain.services.proposal_engine import ProposalEngine
from cohort_ledger.domain.services.record_registry import RecordRegistry
from cohort_ledger.domain.services.result_engine import ResultEngine

logger = logging.getLogger(__name__)


class CohortContract:
    """Entry point for hosts invoking the cohort ledger operations.

    Each call is independent: nothing is cached between calls and every
    operation re-reads the ledger.

    Example Usage:
        ```python
        contract = CohortContract(DuckDBLedger(), HTTPCryptoOracle(config))
        contract.create_record("P001", "Alice", "8412...", "D1", "S1", "K1")
        contract.create_proposal("PROP1", "hospital-a", "hospital-b", "P001,P002", "K1", "3233")
        contract.create_result("PROP1", "t1", "t2", "K2", "3233")
        result = contract.find_result("RESULT1")
        ```
    """

    def __init__(self, ledger: LedgerPort, oracle: CryptoOraclePort, strict_decode: bool = True):
        self.ledger = ledger
        self.oracle = oracle
        self.records = RecordRegistry(ledger, strict_decode=strict_decode)
        self.proposals = ProposalEngine(ledger, oracle, registry=self.records)
        self.results = ResultEngine(ledger, oracle, proposals=self.proposals)

    def create_record(self, id: str, display_name: str, condition: str,
                      diagnosis_id: str, status_id: str, key_id: str) -> None:
        self.records.create_record(id, display_name, condition, diagnosis_id, status_id, key_id)

    def find_record(self, id: str) -> Record:
        return self.records.find_record(id)

    def update_record(self, id: str, display_name: str, condition: str,
                      diagnosis_id: str, status_id: str, key_id: str) -> None:
        self.records.update_record(id, display_name, condition, diagnosis_id, status_id, key_id)

    def all_records(self, first_id: str, last_id: str) -> Iterator[tuple[str, Record]]:
        return self.records.all_records(first_id, last_id)

    def create_proposal(self, id: str, requester_id: str, requested_id: str,
                        subject_ids: Union[str, Sequence[str]], key_id: str, modulus: str) -> None:
        self.proposals.create_proposal(id, requester_id, requested_id, subject_ids, key_id, modulus)

    def find_proposal(self, id: str) -> Proposal:
        return self.proposals.find_proposal(id)

    def create_result(self, proposal_id: str, first_token: str, second_token: str,
                      key_id: str, modulus: str) -> None:
        self.results.create_result(proposal_id, first_token, second_token, key_id, modulus)

    def find_result(self, id: str) -> Result:
        return self.results.find_result(id)

    def close(self) -> None:
        """Release the oracle and ledger adapters' connections."""
        try:
            self.oracle.close()
        finally:
            self.ledger.close()
