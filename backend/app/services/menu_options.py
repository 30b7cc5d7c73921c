"""
Menu option extraction from IVR prompt transcripts.

Recovers {dtmf, label} pairs from the common phrasings:
  - "Press 1 for Billing" / "Press 1 to pay a bill"
  - "For Billing, press 1"
  - "To check your balance, press 1"
  - "Press or say 1 for Billing"
"""
from __future__ import annotations

import re
from dataclasses import dataclass, asdict
from typing import Dict, List

# Pattern order matters: options are reported pattern by pattern, in the
# order each pattern encounters them.
MENU_OPTION_PATTERNS = [
    re.compile(r"Press\s+(\d)\s+(?:for|to)\s+([^.,;]+)", re.IGNORECASE),
    re.compile(r"For\s+([^.,;]+?),?\s+press\s+(\d)", re.IGNORECASE),
    re.compile(r"To\s+([^.,;]+?),?\s+press\s+(\d)", re.IGNORECASE),
    re.compile(r"Press\s+or\s+say\s+(\d)\s+for\s+([^.,;]+)", re.IGNORECASE),
]

# Prompts that ask for free-form input (account numbers, PINs) rather than
# offering a menu.
INPUT_INDICATORS = ("enter", "pin")

_DIGITS_RE = re.compile(r"^\d+$")


@dataclass(frozen=True)
class MenuOption:
    dtmf: str
    label: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def extract_options(text: str | None) -> List[MenuOption]:
    """
    Extract navigable menu options from a transcript.

    The same phrase is often matched by more than one pattern
    ("... press 2 for Support" also reads as "for Billing, press 2"), so
    options are de-duplicated by DTMF digit, keeping the first match.
    """
    if not text:
        return []

    options: List[MenuOption] = []
    seen_digits: set[str] = set()

    for pattern in MENU_OPTION_PATTERNS:
        for match in pattern.finditer(text):
            g1, g2 = match.group(1), match.group(2)
            if _DIGITS_RE.match(g1):
                dtmf, label = g1, g2.strip()
            else:
                dtmf, label = g2, g1.strip()

            if dtmf in seen_digits:
                continue
            seen_digits.add(dtmf)
            options.append(MenuOption(dtmf=dtmf, label=label))

    return options


def requires_input(text: str | None) -> bool:
    lower = (text or "").lower()
    return any(indicator in lower for indicator in INPUT_INDICATORS)
