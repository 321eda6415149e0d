"""Ledger adapters for Cohort-Ledger.

This module contains the adapters that implement the LedgerPort interface
for storing records, proposals and results.
"""

from cohort_ledger.adapters.ledger.duckdb_ledger import DuckDBLedger
from cohort_ledger.adapters.ledger.postgresql_ledger import PostgreSQLLedger

__all__ = ["DuckDBLedger", "PostgreSQLLedger"]
