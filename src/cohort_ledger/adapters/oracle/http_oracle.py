"""HTTP Crypto Oracle Adapter.

This adapter implements the CryptoOraclePort contract by calling an external
homomorphic computation service over HTTP(S). The service owns the number
theory (modular mean with blinding, proxy re-encryption); this adapter only
ships opaque strings back and forth.

Endpoints:
    POST {base_url}/mean
        {"modulus": "...", "ciphertexts": ["...", ...]} -> {"ciphertext": "..."}
    POST {base_url}/key-switch
        {"modulus": "...", "firstToken": "...", "secondToken": "...",
         "ciphertext": "..."} -> {"ciphertext": "..."}

Security Impact:
    - The bearer token is read from SecretStr and never logged
    - Re-keying tokens are sent in the request body, never in URLs or logs
    - TLS verification is on by default
"""

import logging
from typing import Any, Optional, Sequence

import requests

from cohort_ledger.domain.ports import CryptoOraclePort, OracleError
from cohort_ledger.infrastructure.config_manager import OracleConfig

logger = logging.getLogger(__name__)


class HTTPCryptoOracle(CryptoOraclePort):
    """CryptoOraclePort backed by a remote oracle service.

    Parameters:
        oracle_config: OracleConfig with the base URL, timeout and token
        session: Optional requests.Session (a new one is created otherwise)

    Example Usage:
        ```python
        oracle = HTTPCryptoOracle(OracleConfig(base_url="https://oracle.example"))
        mean = oracle.compute_modular_mean("3233", ["1024", "2048"])
        ```
    """

    def __init__(self, oracle_config: OracleConfig, session: Optional[requests.Session] = None):
        self.base_url = oracle_config.base_url
        self.timeout = oracle_config.timeout_seconds
        self.verify_tls = oracle_config.verify_tls
        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})
        if oracle_config.api_token:
            self._session.headers["Authorization"] = f"Bearer {oracle_config.api_token.get_secret_value()}"

    def compute_modular_mean(self, modulus: str, ciphertexts: Sequence[str]) -> str:
        return self._call(
            "compute_modular_mean",
            "/mean",
            {"modulus": modulus, "ciphertexts": list(ciphertexts)},
        )

    def key_switch(self, modulus: str, first_token: str, second_token: str, ciphertext: str) -> str:
        return self._call(
            "key_switch",
            "/key-switch",
            {
                "modulus": modulus,
                "firstToken": first_token,
                "secondToken": second_token,
                "ciphertext": ciphertext,
            },
        )

    def _call(self, operation: str, path: str, payload: dict[str, Any]) -> str:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.post(url, json=payload, timeout=self.timeout, verify=self.verify_tls)
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            logger.error(f"Oracle {operation} rejected with status {status_code}")
            raise OracleError(
                f"Oracle rejected {operation} (HTTP {status_code})",
                operation=operation,
                details={"status_code": status_code, "url": url}
            ) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Oracle {operation} request failed: {str(e)}")
            raise OracleError(
                f"Oracle request for {operation} failed: {str(e)}",
                operation=operation,
                details={"url": url}
            ) from e

        try:
            body = response.json()
        except ValueError as e:
            raise OracleError(
                f"Oracle returned a non-JSON body for {operation}",
                operation=operation,
                details={"url": url}
            ) from e

        ciphertext = body.get("ciphertext") if isinstance(body, dict) else None
        if not isinstance(ciphertext, str):
            raise OracleError(
                f"Oracle response for {operation} has no ciphertext",
                operation=operation,
                details={"url": url}
            )

        logger.debug(f"Oracle {operation} succeeded")
        return ciphertext

    def close(self) -> None:
        self._session.close()
