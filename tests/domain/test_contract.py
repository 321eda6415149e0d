"""End-to-end tests for the CohortContract facade over an in-memory ledger."""

from unittest.mock import Mock

import pytest

from cohort_ledger.domain.ports import (
    ConflictError,
    CryptoOraclePort,
    DecodeError,
    LedgerPort,
    NotFoundError,
)
from cohort_ledger.domain.services import CohortContract


def test_record_to_result_flow(contract, oracle):
    """Test the full flow: records, then a proposal, then a re-keyed result."""
    contract.create_record("s1", "Alice", "c1", "D1", "S1", "K1")
    contract.create_record("s2", "Bob", "c2", "D1", "S2", "K1")
    contract.update_record("s2", "Bob", "c2b", "D1", "S2", "K1")
    oracle.mean_outputs[("3233", ("c1", "c2b"))] = "mean"
    oracle.key_switch_outputs[("3233", "t1", "t2", "mean")] = "rekeyed"

    contract.create_proposal("PROP1", "hospital-a", "hospital-b", "s1,s2", "K1", "3233")
    contract.create_result("PROP1", "t1", "t2", "K2", "3233")

    assert contract.find_proposal("PROP1").value_ciphertext == "mean"
    result = contract.find_result("RESULT1")
    assert result.proposal_id == "PROP1"
    assert result.key_id == "K2"
    assert result.value_ciphertext == "rekeyed"


def test_shared_keyspace(contract):
    """Test that records, proposals and results live in one keyspace."""
    contract.create_record("s1", "Alice", "c1", "D1", "S1", "K1")
    contract.create_proposal("PROP1", "A", "B", "s1", "K1", "M")
    contract.create_result("PROP1", "t1", "t2", "K2", "M")

    keys = [key for key, _ in contract.ledger.range_scan("", "")]
    assert keys == ["PROP1", "RESULT1", "s1"]


def test_all_records_strict_over_mixed_keyspace(contract):
    """Test that scanning over a proposal key fails loudly by default."""
    contract.create_record("s1", "Alice", "c1", "D1", "S1", "K1")
    contract.create_proposal("PROP1", "A", "B", "s1", "K1", "M")

    with pytest.raises(DecodeError):
        list(contract.all_records("", ""))


def test_lenient_contract(ledger, oracle):
    contract = CohortContract(ledger, oracle, strict_decode=False)
    contract.create_record("s1", "Alice", "c1", "D1", "S1", "K1")
    contract.create_proposal("PROP1", "A", "B", "s1", "K1", "M")

    records = dict(contract.all_records("", ""))
    assert records["PROP1"].display_name == ""
    assert records["s1"].display_name == "Alice"


def test_proposal_cannot_be_recreated(contract):
    contract.create_record("s1", "Alice", "c1", "D1", "S1", "K1")
    contract.create_proposal("PROP1", "A", "B", "s1", "K1", "M")
    with pytest.raises(ConflictError):
        contract.create_proposal("PROP1", "A", "B", "s1", "K1", "M")


def test_find_missing_entities(contract):
    with pytest.raises(NotFoundError):
        contract.find_record("s1")
    with pytest.raises(NotFoundError):
        contract.find_proposal("PROP1")
    with pytest.raises(NotFoundError):
        contract.find_result("RESULT1")


def test_close_releases_ledger_and_oracle(oracle):
    ledger = Mock(spec=LedgerPort)
    CohortContract(ledger, oracle).close()
    ledger.close.assert_called_once()
    assert oracle.closed is True


def test_ledger_closed_when_oracle_close_fails():
    ledger = Mock(spec=LedgerPort)
    oracle = Mock(spec=CryptoOraclePort)
    oracle.close.side_effect = RuntimeError("session already torn down")

    with pytest.raises(RuntimeError):
        CohortContract(ledger, oracle).close()
    ledger.close.assert_called_once()
