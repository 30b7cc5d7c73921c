"""
Tests for menu_options.py - DTMF option extraction and input detection.
"""
from app.services.menu_options import MenuOption, extract_options, requires_input


class TestExtractOptions:
    """Tests for extract_options()."""

    def test_press_x_for_y_preserves_order(self):
        options = extract_options("Press 1 for Billing. Press 2 for Support.")
        assert options == [
            MenuOption(dtmf="1", label="Billing"),
            MenuOption(dtmf="2", label="Support"),
        ]

    def test_press_x_to_y(self):
        options = extract_options("Press 3 to pay your bill.")
        assert options == [MenuOption(dtmf="3", label="pay your bill")]

    def test_for_y_press_x(self):
        options = extract_options("For Sales, press 1. For Billing, press 2.")
        assert [o.to_dict() for o in options] == [
            {"dtmf": "1", "label": "Sales"},
            {"dtmf": "2", "label": "Billing"},
        ]

    def test_to_y_press_x(self):
        options = extract_options("To speak to a representative, press 0.")
        assert options == [MenuOption(dtmf="0", label="speak to a representative")]

    def test_press_or_say(self):
        options = extract_options("Press or say 4 for Claims.")
        assert options == [MenuOption(dtmf="4", label="Claims")]

    def test_case_insensitive(self):
        options = extract_options("PRESS 5 FOR ORDER STATUS.")
        assert options == [MenuOption(dtmf="5", label="ORDER STATUS")]

    def test_overlapping_patterns_deduplicated_by_digit(self):
        """'... press 2 for Support' also reads as 'for Billing, press 2'; the first match wins."""
        options = extract_options(
            "Press 1 for Billing, press 2 for Support, press 0 for an agent."
        )
        assert options == [
            MenuOption(dtmf="1", label="Billing"),
            MenuOption(dtmf="2", label="Support"),
            MenuOption(dtmf="0", label="an agent"),
        ]

    def test_mixed_phrasings_reported_pattern_by_pattern(self):
        options = extract_options("For account balances, press 1. Press 2 for lost cards.")
        assert [o.dtmf for o in options] == ["2", "1"]

    def test_no_options_is_leaf(self):
        assert extract_options("Please hold while we connect your call.") == []
        assert extract_options("") == []
        assert extract_options(None) == []


class TestRequiresInput:
    """Tests for requires_input()."""

    def test_enter_prompt(self):
        assert requires_input("Please ENTER your account number followed by pound.")

    def test_pin_prompt(self):
        assert requires_input("Key in your PIN now.")

    def test_plain_leaf(self):
        assert not requires_input("Our offices are closed. Goodbye.")
        assert not requires_input(None)
