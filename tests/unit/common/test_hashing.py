"""Tests for common.hashing module."""

import hashlib

from common.hashing import content_hash, normalize_text


class TestNormalizeText:
    def test_trims_and_collapses_whitespace(self) -> None:
        assert normalize_text("  Regeringen \t föreslår\n ny  lag ") == "regeringen föreslår ny lag"

    def test_lowercases_swedish_letters(self) -> None:
        assert normalize_text("ÅÄÖ Älvsjö") == "åäö älvsjö"

    def test_empty_string(self) -> None:
        assert normalize_text("   ") == ""


class TestContentHash:
    def test_deterministic_output(self) -> None:
        assert content_hash("Sverige", "sv") == content_hash("Sverige", "sv")

    def test_returns_32_char_hex_string(self) -> None:
        result = content_hash("Sverige", "sv")
        assert len(result) == 32
        assert all(c in "0123456789abcdef" for c in result)

    def test_normalized_variants_share_hash(self) -> None:
        assert content_hash("Sverige", "sv") == content_hash("  sverige ", "sv")
        assert content_hash("Stor  brand i\tGöteborg", "sv") == content_hash(
            "stor brand i göteborg", "sv"
        )

    def test_different_language_produces_different_hash(self) -> None:
        assert content_hash("Sverige", "sv") != content_hash("Sverige", "en")

    def test_different_text_produces_different_hash(self) -> None:
        assert content_hash("Sverige", "sv") != content_hash("Norge", "sv")

    def test_language_separator_prevents_ambiguity(self) -> None:
        assert content_hash("ab", "c") != content_hash("a", "bc")

    def test_known_digest(self) -> None:
        expected = hashlib.md5(b"sverige\x00sv").hexdigest()
        assert content_hash(" SVERIGE ", "sv") == expected
