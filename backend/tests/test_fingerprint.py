"""
Tests for fingerprint.py - prompt normalization and content hashing.
"""
import re

from app.services.fingerprint import EMPTY_FINGERPRINT, fingerprint, normalize_prompt


class TestNormalizePrompt:
    """Tests for normalize_prompt()."""

    def test_lowercases_and_strips_punctuation(self):
        assert normalize_prompt("Press 1 for Sales.") == "press1forsales"

    def test_drops_non_ascii_letters(self):
        """Only [a-z0-9] survive normalization."""
        assert normalize_prompt("Para español, oprima 2") == "paraespaoloprima2"

    def test_none_is_empty(self):
        assert normalize_prompt(None) == ""


class TestFingerprint:
    """Tests for fingerprint()."""

    def test_deterministic(self):
        text = "Thank you for calling. Press 1 for Billing."
        assert fingerprint(text) == fingerprint(text)

    def test_case_and_punctuation_insensitive(self):
        assert fingerprint("Press 1 for Sales.") == fingerprint("press 1 for sales")
        assert fingerprint("  PRESS 1,  for SALES!! ") == fingerprint("press 1 for sales")

    def test_wording_change_changes_fingerprint(self):
        assert fingerprint("Press 1 for Sales.") != fingerprint("Press 1 for Sale.")
        assert fingerprint("Press 1 for Sales.") != fingerprint("Press 2 for Sales.")

    def test_empty_text_sentinel(self):
        assert fingerprint("") == EMPTY_FINGERPRINT
        assert fingerprint("   ...!!  ") == EMPTY_FINGERPRINT
        assert fingerprint(None) == EMPTY_FINGERPRINT

    def test_versioned_hex_format(self):
        assert re.fullmatch(r"v1:[0-9a-f]+", fingerprint("Main menu"))

    def test_known_values(self):
        """Rolling hash h = h*31 + c over the normalized text."""
        # 'a' = 97
        assert fingerprint("a") == "v1:61"
        # 'ab' = 97*31 + 98 = 3105
        assert fingerprint("A.B") == "v1:c21"

    def test_wraps_to_signed_32_bit(self):
        """Long prompts overflow 32 bits; the absolute signed value is rendered."""
        text = "Thank you for calling First National Bank. For account balances, press 1. " * 20
        value = int(fingerprint(text).split(":", 1)[1], 16)
        assert 0 <= value <= 2 ** 31
