"""Domain services for Cohort-Ledger.

Each service is a stateless orchestration layer over the ledger and crypto
oracle ports. Data flows registry -> proposal engine -> result engine.
"""

from .contract import CohortContract
from .proposal_engine import ProposalEngine
from .record_registry import RecordRegistry
from .result_engine import ResultEngine, derive_result_id

__all__ = [
    "CohortContract",
    "ProposalEngine",
    "RecordRegistry",
    "ResultEngine",
    "derive_result_id",
]
