"""Tests for one-time code primitives."""

from __future__ import annotations

import uuid

import pytest

from realty_escrow.domain.otp import code_matches, generate_code, hash_code, signature_purpose


class TestGenerateCode:
    def test_length_and_digits(self) -> None:
        for _ in range(50):
            code = generate_code(6)
            assert len(code) == 6
            assert code.isdigit()

    def test_too_short_rejected(self) -> None:
        with pytest.raises(ValueError):
            generate_code(3)


class TestHashing:
    def test_plain_code_never_equals_hash(self) -> None:
        assert hash_code("123456") != "123456"
        assert len(hash_code("123456")) == 64

    def test_match_ignores_surrounding_whitespace(self) -> None:
        stored = hash_code("042917")
        assert code_matches(" 042917 ", stored)
        assert not code_matches("042918", stored)


class TestPurpose:
    def test_bound_to_contract_and_party(self) -> None:
        cid = uuid.UUID("12345678-1234-5678-1234-567812345678")
        assert signature_purpose(cid, "tenant-1") == (
            "contract-sign:12345678-1234-5678-1234-567812345678:tenant-1"
        )
        assert signature_purpose(cid, "owner-1") != signature_purpose(cid, "tenant-1")
