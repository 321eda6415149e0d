"""Domain layer for Cohort-Ledger.

This module contains the ledger entity schemas, the port contracts and the
error taxonomy. All domain models are pure Python with no external
dependencies beyond Pydantic.
"""

from .models import (
    Record,
    Proposal,
    Result,
)

__all__ = [
    "Record",
    "Proposal",
    "Result",
]
