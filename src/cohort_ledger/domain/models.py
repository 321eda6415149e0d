"""Ledger Entity Schema Definitions.

This module defines the three entities the cohort ledger stores: subject
Records, aggregation Proposals and re-keyed Results. Each model knows how to
encode itself into ledger bytes and how to decode itself back, so the rest of
the core never touches raw JSON.

Security Impact:
    - Ciphertexts, tokens and moduli are typed as distinct aliases so an
      identifier cannot be passed where a ciphertext is expected
    - Decode failures raise DecodeError instead of yielding zero-valued entities
    - Models are immutable once constructed

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Ledger values keep the established wire field names
      (``preExistingConditions``, ``keyID``...) so existing data stays readable
    - The ledger key is never stored inside the value; it is re-attached on decode
"""

import json
from typing import ClassVar, NewType, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, ValidationError as PydanticValidationError

from cohort_ledger.domain.ports import DecodeError, ValidationError

EntityId = NewType("EntityId", str)
KeyId = NewType("KeyId", str)
Ciphertext = NewType("Ciphertext", str)
Token = NewType("Token", str)
Modulus = NewType("Modulus", str)


def _require_identifier(value: str, field_name: str) -> str:
    if not value or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string")
    return value


class LedgerEntity(BaseModel):
    """Base class for entities persisted as JSON values in the ledger.

    Subclasses set ``key_field`` to the name of the field that holds the
    ledger key. That field is excluded from the encoded value.
    """

    key_field: ClassVar[str] = "id"

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
    )

    @property
    def ledger_key(self) -> str:
        """Ledger key this entity is stored under."""
        return getattr(self, self.key_field)

    @classmethod
    def build(cls, **fields):
        """Validated constructor for caller-supplied values.

        Raises:
            ValidationError: If the values do not form a valid entity
        """
        try:
            return cls(**fields)
        except PydanticValidationError as e:
            details = {
                ".".join(str(part) for part in error["loc"]): error["msg"]
                for error in e.errors()
            }
            raise ValidationError(
                f"Invalid {cls.__name__}: {'; '.join(f'{k}: {v}' for k, v in details.items())}",
                source=fields.get(cls.key_field),
                details=details,
            ) from e

    def to_bytes(self) -> bytes:
        """Encode the entity as UTF-8 JSON using the ledger field names."""
        return self.model_dump_json(by_alias=True).encode("utf-8")

    @classmethod
    def from_bytes(cls, key: str, raw: bytes):
        """Decode ledger bytes stored at ``key``.

        Parameters:
            key: Ledger key the bytes were read from
            raw: Stored value

        Returns:
            The decoded entity with its key field set to ``key``

        Raises:
            DecodeError: If the bytes are not a JSON object matching the entity
        """
        entity_type = cls.__name__
        try:
            payload = json.loads(bytes(raw).decode("utf-8"))
        except ValueError as e:
            raise DecodeError(
                f"{key} does not hold valid JSON for {entity_type}: {e}",
                entity_id=key,
                entity_type=entity_type,
            ) from e

        if not isinstance(payload, dict):
            raise DecodeError(
                f"{key} does not hold a JSON object for {entity_type}",
                entity_id=key,
                entity_type=entity_type,
            )

        payload[cls.key_field] = key
        try:
            return cls.model_validate(payload)
        except PydanticValidationError as e:
            raise DecodeError(
                f"{key} cannot be decoded as {entity_type}: {e.error_count()} invalid field(s)",
                entity_id=key,
                entity_type=entity_type,
            ) from e


class Record(LedgerEntity):
    """Encrypted subject record held by a custodian.

    Parameters:
        id: Externally assigned primary key (never changes once created)
        display_name: Subject display name
        pre_existing_conditions: Attribute ciphertext under the key ``key_id``
        diagnosis_id: Diagnosis identifier
        status_id: Status identifier
        key_id: Identifier of the key that produced the ciphertext
    """

    id: EntityId = Field(..., exclude=True, description="Ledger key of the record")
    display_name: str = Field(..., alias="name", description="Subject display name")
    pre_existing_conditions: Ciphertext = Field(
        ...,
        alias="preExistingConditions",
        description="Ciphertext of the sensitive attribute"
    )
    diagnosis_id: str = Field(..., alias="diagnosisID", description="Diagnosis identifier")
    status_id: str = Field(..., alias="statusID", description="Status identifier")
    key_id: KeyId = Field(..., alias="keyID", description="Key the ciphertext is under")

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        return _require_identifier(v, "id")

    @classmethod
    def zero_value(cls, key: str) -> "Record":
        """Empty record carrying only its key, used by lenient range scans."""
        return cls.model_construct(
            id=key,
            display_name="",
            pre_existing_conditions="",
            diagnosis_id="",
            status_id="",
            key_id="",
        )


class Proposal(LedgerEntity):
    """Aggregation request and its homomorphic mean.

    ``subject_ids`` keeps the caller's order and duplicates. A single
    comma-separated string is accepted as well and split on ``,``; this is how
    older ledgers received and stored the list.
    """

    id: EntityId = Field(..., exclude=True, description="Ledger key of the proposal")
    requester_id: str = Field(..., alias="requesterID", description="Party asking for the statistic")
    requested_id: str = Field(..., alias="requestedID", description="Party holding the records")
    subject_ids: list[EntityId] = Field(..., alias="patientsIDs", description="Ordered subject record ids")
    key_id: KeyId = Field(..., alias="keyID", description="Key the aggregate is expressed under")
    value_ciphertext: Optional[Ciphertext] = Field(
        None,
        alias="value",
        description="Aggregate ciphertext (set once aggregation succeeded)"
    )

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        return _require_identifier(v, "id")

    @field_validator("subject_ids", mode="before")
    @classmethod
    def split_subject_ids(cls, v):
        if isinstance(v, str):
            return v.split(",")
        return v

    @field_validator("subject_ids")
    @classmethod
    def validate_subject_ids(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("at least one subject id is required")
        for position, subject_id in enumerate(v):
            if not subject_id or not subject_id.strip():
                raise ValueError(f"subject id at position {position} is empty")
        return v

    @property
    def has_value(self) -> bool:
        return self.value_ciphertext is not None


class Result(LedgerEntity):
    """Re-keyed output of a Proposal, stored under a derived id."""

    key_field: ClassVar[str] = "derived_id"

    derived_id: EntityId = Field(..., exclude=True, description="Ledger key derived from the proposal id")
    proposal_id: EntityId = Field(..., alias="proposalID", description="Source proposal id")
    key_id: KeyId = Field(..., alias="keyID", description="Destination key")
    value_ciphertext: Ciphertext = Field(..., alias="value", description="Re-keyed ciphertext")

    @field_validator("derived_id", "proposal_id")
    @classmethod
    def validate_ids(cls, v: str, info) -> str:
        return _require_identifier(v, info.field_name)
