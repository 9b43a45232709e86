"""Tests for idempotency key validation and request fingerprints."""

import pytest

from wallet_ledger.services.idempotency import (
    MAX_KEY_LENGTH,
    request_fingerprint,
    validate_key,
)
from wallet_ledger.utils.errors import InvalidRequestError


class TestValidateKey:
    def test_absent_key(self):
        assert validate_key(None) is None

    def test_strips_surrounding_whitespace(self):
        assert validate_key("  join-42 ") == "join-42"

    def test_length_bounds(self):
        assert validate_key("k" * MAX_KEY_LENGTH) == "k" * MAX_KEY_LENGTH
        with pytest.raises(InvalidRequestError):
            validate_key("k" * (MAX_KEY_LENGTH + 1))

    @pytest.mark.parametrize("key", ["", "   ", "key\x00", "line\nbreak", "tab\there"])
    def test_rejected(self, key):
        with pytest.raises(InvalidRequestError) as exc_info:
            validate_key(key)
        assert "printable" in exc_info.value.message


class TestRequestFingerprint:
    def test_key_order_does_not_matter(self):
        assert request_fingerprint({"a": 1, "b": "2"}) == request_fingerprint({"b": "2", "a": 1})

    def test_values_matter(self):
        assert request_fingerprint({"capacity": 4}) != request_fingerprint({"capacity": 8})
