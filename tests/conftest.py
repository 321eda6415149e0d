"""Shared fixtures for the cohort ledger test suite."""

import pytest

from mocks.stub_oracle import StubOracle

from cohort_ledger.adapters.ledger.duckdb_ledger import DuckDBLedger
from cohort_ledger.domain.services import (
    CohortContract,
    ProposalEngine,
    RecordRegistry,
    ResultEngine,
)


@pytest.fixture
def ledger():
    """In-memory DuckDB ledger, closed after the test."""
    ledger = DuckDBLedger(db_path=":memory:")
    yield ledger
    ledger.close()


@pytest.fixture
def oracle():
    return StubOracle()


@pytest.fixture
def registry(ledger):
    return RecordRegistry(ledger)


@pytest.fixture
def proposal_engine(ledger, oracle, registry):
    return ProposalEngine(ledger, oracle, registry=registry)


@pytest.fixture
def result_engine(ledger, oracle, proposal_engine):
    return ResultEngine(ledger, oracle, proposals=proposal_engine)


@pytest.fixture
def contract(ledger, oracle):
    return CohortContract(ledger, oracle)


@pytest.fixture
def seeded_registry(registry):
    """Registry holding subjects s1, s2 and s3 with ciphertexts c1, c2 and c3."""
    registry.create_record("s1", "Subject One", "c1", "D1", "S1", "K1")
    registry.create_record("s2", "Subject Two", "c2", "D2", "S1", "K1")
    registry.create_record("s3", "Subject Three", "c3", "D1", "S2", "K1")
    return registry
