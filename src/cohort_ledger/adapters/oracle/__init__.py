"""Crypto oracle adapters for Cohort-Ledger."""

from cohort_ledger.adapters.oracle.http_oracle import HTTPCryptoOracle

__all__ = ["HTTPCryptoOracle"]
