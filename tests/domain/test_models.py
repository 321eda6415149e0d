"""Tests for the ledger entity schemas.

These tests verify validation, immutability and the ledger value encoding of
Records, Proposals and Results.
"""

import json

import pytest

from cohort_ledger.domain.models import Proposal, Record, Result
from cohort_ledger.domain.ports import DecodeError, ValidationError


def make_record(**overrides):
    fields = dict(
        id="P001",
        display_name="Alice",
        pre_existing_conditions="84123",
        diagnosis_id="D1",
        status_id="S1",
        key_id="K1",
    )
    fields.update(overrides)
    return Record.build(**fields)


class TestRecord:
    """Test suite for the Record model."""

    def test_valid_record(self):
        record = make_record()
        assert record.id == "P001"
        assert record.display_name == "Alice"
        assert record.pre_existing_conditions == "84123"
        assert record.ledger_key == "P001"

    def test_empty_id_rejected(self):
        """Test that the validated constructor refuses an empty id."""
        with pytest.raises(ValidationError) as exc_info:
            make_record(id="")
        assert "id" in exc_info.value.details

    def test_whitespace_id_rejected(self):
        with pytest.raises(ValidationError):
            make_record(id="   ")

    def test_immutable_record(self):
        record = make_record()
        with pytest.raises(Exception):
            record.display_name = "Bob"

    def test_encoding_uses_ledger_field_names(self):
        """Test that values use the ledger JSON field names and omit the id."""
        payload = json.loads(make_record().to_bytes())
        assert payload == {
            "name": "Alice",
            "preExistingConditions": "84123",
            "diagnosisID": "D1",
            "statusID": "S1",
            "keyID": "K1",
        }

    def test_decode_reattaches_key(self):
        raw = b'{"name": "Alice", "preExistingConditions": "84123", "diagnosisID": "D1", "statusID": "S1", "keyID": "K1"}'
        record = Record.from_bytes("P042", raw)
        assert record.id == "P042"
        assert record.key_id == "K1"

    def test_decode_ignores_unknown_fields(self):
        raw = b'{"name": "A", "preExistingConditions": "1", "diagnosisID": "D", "statusID": "S", "keyID": "K", "extra": 1}'
        assert Record.from_bytes("P1", raw).display_name == "A"

    def test_decode_invalid_json(self):
        with pytest.raises(DecodeError) as exc_info:
            Record.from_bytes("P001", b"not json")
        assert exc_info.value.entity_id == "P001"
        assert exc_info.value.entity_type == "Record"

    def test_decode_invalid_utf8(self):
        with pytest.raises(DecodeError):
            Record.from_bytes("P001", b"\xff\xfe")

    def test_decode_non_object(self):
        with pytest.raises(DecodeError):
            Record.from_bytes("P001", b'["a", "b"]')

    def test_decode_missing_fields(self):
        """Test that a proposal value cannot be decoded as a Record."""
        raw = b'{"requesterID": "A", "requestedID": "B", "patientsIDs": ["s1"], "keyID": "K", "value": "v"}'
        with pytest.raises(DecodeError):
            Record.from_bytes("PROP1", raw)

    def test_zero_value(self):
        record = Record.zero_value("P009")
        assert record.id == "P009"
        assert record.display_name == ""
        assert record.pre_existing_conditions == ""
        assert record.key_id == ""


class TestProposal:
    """Test suite for the Proposal model."""

    def test_subject_ids_keep_order_and_duplicates(self):
        proposal = Proposal.build(
            id="PROP1", requester_id="A", requested_id="B",
            subject_ids=["s2", "s1", "s2"], key_id="K1",
        )
        assert proposal.subject_ids == ["s2", "s1", "s2"]
        assert not proposal.has_value

    def test_comma_separated_subject_ids(self):
        proposal = Proposal.build(
            id="PROP1", requester_id="A", requested_id="B",
            subject_ids="s1,s2,s3", key_id="K1",
        )
        assert proposal.subject_ids == ["s1", "s2", "s3"]

    def test_empty_subject_list_rejected(self):
        with pytest.raises(ValidationError):
            Proposal.build(id="PROP1", requester_id="A", requested_id="B", subject_ids=[], key_id="K1")

    def test_empty_subject_entry_rejected(self):
        with pytest.raises(ValidationError):
            Proposal.build(id="PROP1", requester_id="A", requested_id="B", subject_ids="s1,,s2", key_id="K1")

    def test_roundtrip_with_value(self):
        proposal = Proposal.build(
            id="PROP1", requester_id="A", requested_id="B",
            subject_ids=["s1", "s2"], key_id="K1", value_ciphertext="v",
        )
        decoded = Proposal.from_bytes("PROP1", proposal.to_bytes())
        assert decoded == proposal
        assert decoded.has_value

    def test_decode_legacy_comma_string(self):
        """Test that proposals stored with a comma-joined patientsIDs string still decode."""
        raw = b'{"requesterID": "A", "requestedID": "B", "patientsIDs": "s1,s2", "keyID": "K", "value": "v"}'
        proposal = Proposal.from_bytes("PROP7", raw)
        assert proposal.subject_ids == ["s1", "s2"]
        assert proposal.value_ciphertext == "v"


class TestResult:
    """Test suite for the Result model."""

    def test_ledger_key_is_derived_id(self):
        result = Result.build(derived_id="RESULT7", proposal_id="P7x2", key_id="K2", value_ciphertext="r")
        assert result.ledger_key == "RESULT7"
        assert json.loads(result.to_bytes()) == {"proposalID": "P7x2", "keyID": "K2", "value": "r"}

    def test_decode(self):
        result = Result.from_bytes("RESULT7", b'{"proposalID": "P7", "keyID": "K2", "value": "r"}')
        assert result.derived_id == "RESULT7"
        assert result.proposal_id == "P7"

    def test_empty_proposal_id_rejected(self):
        with pytest.raises(ValidationError):
            Result.build(derived_id="RESULT", proposal_id="", key_id="K2", value_ciphertext="r")
