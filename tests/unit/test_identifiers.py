"""Tests for identifier derivation and parsing."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from ulid import ULID

from auth_migrator.exceptions import MalformedIdentifierError
from auth_migrator.services.identifiers import (
    MigratedId,
    from_epoch_millis,
    from_epoch_seconds,
    new_id,
    parse_external_id,
)

T0 = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)


class TestNewId:
    """Tests for new_id."""

    def test_both_encodings_share_one_value(self):
        migrated = new_id(T0)
        assert ULID.from_str(migrated.ulid).to_uuid() == migrated.uuid

    def test_reparsing_either_encoding_yields_same_pair(self):
        migrated = new_id(T0)
        assert parse_external_id(migrated.ulid) == migrated
        assert parse_external_id(str(migrated.uuid)) == migrated

    def test_time_component_is_the_seed(self):
        migrated = new_id(T0)
        assert ULID.from_str(migrated.ulid).datetime == T0

    def test_naive_timestamp_treated_as_utc(self):
        migrated = new_id(T0.replace(tzinfo=None))
        assert ULID.from_str(migrated.ulid).datetime == T0

    def test_same_timestamp_gives_distinct_ids(self):
        assert new_id(T0) != new_id(T0)

    @pytest.mark.parametrize(
        "delta",
        [timedelta(milliseconds=1), timedelta(seconds=1), timedelta(days=365)],
    )
    def test_earlier_timestamp_sorts_first(self, delta):
        earlier = new_id(T0)
        later = new_id(T0 + delta)
        assert earlier.ulid < later.ulid

    def test_ulid_is_26_characters(self):
        assert len(new_id(T0).ulid) == 26


class TestParseExternalId:
    """Tests for parse_external_id."""

    ULID_TEXT = "01H8PKNWKKRPCBW4YGH1RWV279"

    def test_parses_ulid(self):
        parsed = parse_external_id(self.ULID_TEXT)
        assert parsed.ulid == self.ULID_TEXT
        assert parsed.uuid == ULID.from_str(self.ULID_TEXT).to_uuid()

    def test_parses_lowercase_ulid(self):
        assert parse_external_id(self.ULID_TEXT.lower()).ulid == self.ULID_TEXT

    def test_parses_canonical_uuid(self):
        expected = ULID.from_str(self.ULID_TEXT).to_uuid()
        assert parse_external_id(str(expected)).ulid == self.ULID_TEXT

    @pytest.mark.parametrize(
        "spelling",
        [
            lambda u: u.hex,
            lambda u: str(u).upper(),
            lambda u: "{" + str(u) + "}",
            lambda u: u.urn,
            lambda u: "  " + str(u) + "\n",
        ],
    )
    def test_parses_non_canonical_uuid_spellings(self, spelling):
        expected = ULID.from_str(self.ULID_TEXT).to_uuid()
        assert parse_external_id(spelling(expected)).uuid == expected

    @pytest.mark.parametrize(
        "text", ["", "not-an-id", "12345", "g" * 32, "provider:01H8PKNWKKRPCB"]
    )
    def test_malformed_identifier_raises(self, text):
        with pytest.raises(MalformedIdentifierError):
            parse_external_id(text)

    def test_malformed_identifier_is_a_value_error(self):
        with pytest.raises(ValueError):
            parse_external_id("nope")


class TestMigratedId:
    """Tests for the MigratedId pair."""

    def test_from_ulid(self):
        value = ULID()
        migrated = MigratedId.from_ulid(value)
        assert migrated.ulid == str(value)
        assert isinstance(migrated.uuid, uuid.UUID)
        assert migrated.uuid.int == int(value)


class TestEpochHelpers:
    def test_from_epoch_seconds(self):
        assert from_epoch_seconds(1_700_000_000) == T0

    def test_from_epoch_millis(self):
        assert from_epoch_millis(1_700_000_000_500) == T0 + timedelta(milliseconds=500)
