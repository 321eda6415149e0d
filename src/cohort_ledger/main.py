"""Application wiring for Cohort-Ledger.

Builds the ledger adapter, the crypto oracle adapter and the contract facade
from configuration.

Architecture:
    - Follows Hexagonal Architecture principles
    - Adapters are selected from the configuration manager
    - The domain core only ever sees the ports
"""

import logging
from typing import Optional

from cohort_ledger.adapters.ledger import DuckDBLedger, PostgreSQLLedger
from cohort_ledger.adapters.oracle import HTTPCryptoOracle
from cohort_ledger.domain.ports import CryptoOraclePort, LedgerPort
from cohort_ledger.domain.services import CohortContract
from cohort_ledger.infrastructure.config_manager import LedgerConfig, OracleConfig
from cohort_ledger.infrastructure.settings import settings

logger = logging.getLogger(__name__)


def create_ledger_adapter(ledger_config: Optional[LedgerConfig] = None) -> LedgerPort:
    """Create the ledger adapter based on configuration.

    Raises:
        ValueError: If the ledger type is unsupported
    """
    ledger_config = ledger_config or settings.ledger_config

    if ledger_config.ledger_type == "duckdb":
        logger.info(f"Initializing DuckDB ledger with path: {ledger_config.db_path or ':memory:'}")
        return DuckDBLedger(ledger_config=ledger_config, scan_batch_size=settings.scan_batch_size)
    elif ledger_config.ledger_type == "postgresql":
        logger.info(f"Initializing PostgreSQL ledger with host: {ledger_config.host}")
        return PostgreSQLLedger(ledger_config=ledger_config, scan_batch_size=settings.scan_batch_size)
    else:
        raise ValueError(f"Unsupported ledger type: {ledger_config.ledger_type}")


def create_oracle_adapter(oracle_config: Optional[OracleConfig] = None) -> CryptoOraclePort:
    """Create the crypto oracle adapter based on configuration.

    Raises:
        ValueError: If no oracle URL is configured
    """
    oracle_config = oracle_config or settings.oracle_config
    logger.info(f"Initializing HTTP crypto oracle at {oracle_config.base_url}")
    return HTTPCryptoOracle(oracle_config)


def create_contract(
    ledger: Optional[LedgerPort] = None,
    oracle: Optional[CryptoOraclePort] = None,
) -> CohortContract:
    """Create the contract facade over configured (or injected) adapters."""
    return CohortContract(
        ledger or create_ledger_adapter(),
        oracle or create_oracle_adapter(),
        strict_decode=settings.strict_decode,
    )
