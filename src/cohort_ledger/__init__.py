"""Cohort-Ledger: encrypted cohort statistics over a key-value ledger."""

__version__ = "1.0.0"
