"""Adapters layer for Cohort-Ledger.

This module contains the adapters that interface with external systems.
Adapters implement the Port interfaces defined in the domain layer.
"""
