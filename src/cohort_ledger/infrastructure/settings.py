"""Application Settings and Configuration.

This module provides application-wide settings that combine configuration
from the configuration manager with application-specific defaults.

Security Impact:
    - Settings are loaded from secure configuration sources
    - Sensitive values are never logged
"""

import os
from typing import Optional

from cohort_ledger import __version__
from cohort_ledger.infrastructure.config_manager import (
    ConfigManager,
    LedgerConfig,
    OracleConfig,
)

APP_NAME = "Cohort-Ledger"
APP_VERSION = __version__

# Rows fetched per round trip during range scans
DEFAULT_SCAN_BATCH_SIZE = 500


class Settings:
    """Application settings loaded from the configuration manager and environment.

    Attributes:
        app_name: Display name (CL_APP_NAME)
        log_level: Logging level (CL_LOG_LEVEL)
        log_json: Emit JSON log lines (CL_LOG_JSON)
        strict_decode: Raise DecodeError for undecodable rows in range scans
            (CL_STRICT_DECODE). Disable only for ledgers with legacy rows.
        scan_batch_size: Rows fetched per round trip in range scans (CL_SCAN_BATCH_SIZE)
        config_file: JSON configuration file read instead of the CL_* ledger
            and oracle variables (CL_CONFIG_FILE)
    """

    def __init__(self):
        self._config_manager: Optional[ConfigManager] = None

        self.app_name = os.getenv("CL_APP_NAME", APP_NAME)
        self.log_level = os.getenv("CL_LOG_LEVEL", "INFO")
        self.log_json = os.getenv("CL_LOG_JSON", "false").lower() == "true"
        self.strict_decode = os.getenv("CL_STRICT_DECODE", "true").lower() == "true"
        self.config_file = os.getenv("CL_CONFIG_FILE")
        self._scan_batch_size = os.getenv("CL_SCAN_BATCH_SIZE", str(DEFAULT_SCAN_BATCH_SIZE))

    @property
    def scan_batch_size(self) -> int:
        """Validated scan batch size.

        Raises:
            ValueError: If CL_SCAN_BATCH_SIZE is not a positive integer
        """
        try:
            batch_size = int(self._scan_batch_size)
        except ValueError as e:
            raise ValueError(f"CL_SCAN_BATCH_SIZE must be an integer. Got: {self._scan_batch_size!r}") from e
        if batch_size <= 0:
            raise ValueError(f"CL_SCAN_BATCH_SIZE must be positive. Got: {batch_size}")
        return batch_size

    @property
    def config_manager(self) -> ConfigManager:
        if self._config_manager is None:
            if self.config_file:
                self._config_manager = ConfigManager.from_file(self.config_file)
            else:
                self._config_manager = ConfigManager.from_environment()
        return self._config_manager

    @property
    def ledger_config(self) -> LedgerConfig:
        """Ledger configuration, loaded lazily on first access."""
        return self.config_manager.get_ledger_config()

    @property
    def oracle_config(self) -> OracleConfig:
        """Oracle configuration, loaded lazily on first access.

        Raises:
            ValueError: If no oracle URL is configured
        """
        return self.config_manager.get_oracle_config()


# Global settings instance
settings = Settings()
