"""
Flow definitions replayed by the simulated telephony session.

A flow is a static tree of prompts keyed by DTMF digit. Curated flows are
plain configuration data handed to the simulator; nothing here is mutated
at runtime.
"""
from __future__ import annotations

import random
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence


@dataclass(frozen=True)
class FlowNode:
    dtmf: str
    label: str
    content: str
    type: str = "prompt"  # "menu" | "prompt" | "input"
    children: Sequence["FlowNode"] = field(default_factory=tuple)


@dataclass(frozen=True)
class IvrFlow:
    id: str
    platform: str
    welcome: str
    branches: Sequence[FlowNode] = field(default_factory=tuple)
    entry_points: Sequence[str] = field(default_factory=tuple)
    industry: str = "Unknown"


def normalize_entry_point(value: str) -> str:
    """'+1 (800) 555-0199' -> '+18005550199'; 'SIP:Desk@Example' -> 'sip:deskexample'."""
    return re.sub(r"[^0-9+a-z:]", "", value.strip().lower())


# ---------------------------------------------------------------------------
# Curated flows
# ---------------------------------------------------------------------------

DEFAULT_CATALOG: List[IvrFlow] = [
    IvrFlow(
        id="acme_wireless",
        platform="Amazon Connect",
        industry="Telecommunications",
        entry_points=("+18005550199",),
        welcome=(
            "Thank you for calling Acme Wireless. "
            "Press 1 for Billing, press 2 for Support, press 0 for an agent."
        ),
        branches=(
            FlowNode(
                dtmf="1",
                label="Billing",
                content=(
                    "You have reached the billing department. "
                    "Please hold for the next available representative."
                ),
            ),
            FlowNode(
                dtmf="2",
                label="Support",
                content=(
                    "Technical support is available around the clock. "
                    "Please hold while we connect your call."
                ),
            ),
            FlowNode(
                dtmf="0",
                label="an agent",
                content="Please hold while we transfer you to an agent.",
            ),
        ),
    ),
    IvrFlow(
        id="first_national_bank",
        platform="Genesys Cloud CX",
        industry="Banking",
        entry_points=("+18885550142",),
        welcome=(
            "Welcome to First National Bank. "
            "For account balances, press 1. To report a lost card, press 2."
        ),
        branches=(
            FlowNode(
                dtmf="1",
                label="Account Balance",
                type="input",
                content="Please enter your four digit PIN followed by the pound key.",
                children=(
                    FlowNode(
                        dtmf="*",
                        label="Balance",
                        content="Your available balance is one thousand two hundred dollars. Goodbye.",
                    ),
                ),
            ),
            FlowNode(
                dtmf="2",
                label="Lost Card",
                content="We have blocked your card. A replacement will arrive in five business days.",
            ),
        ),
    ),
    IvrFlow(
        id="skyhigh_airlines",
        platform="Twilio Flex",
        industry="Travel",
        entry_points=("+18775550123", "sip:ivr@skyhigh.example"),
        welcome=(
            "Hello, and welcome to SkyHigh Airlines. "
            "Press 1 for Reservations. Press 9 to hear these options again."
        ),
        branches=(
            FlowNode(
                dtmf="1",
                label="Reservations",
                content="Reservations are handled online at skyhigh dot example. Goodbye.",
            ),
            FlowNode(
                dtmf="9",
                label="Repeat",
                type="menu",
                content=(
                    "Hello, and welcome to SkyHigh Airlines. "
                    "Press 1 for Reservations. Press 9 to hear these options again."
                ),
            ),
        ),
    ),
]


def find_flow(catalog: Sequence[IvrFlow], entry_point: str) -> Optional[IvrFlow]:
    wanted = normalize_entry_point(entry_point)
    for flow in catalog:
        if any(normalize_entry_point(ep) == wanted for ep in flow.entry_points):
            return flow
    return None


# ---------------------------------------------------------------------------
# Derived flows
# ---------------------------------------------------------------------------

_TRANSCRIPT_OPTION_RE = re.compile(r"Press (\d) for ([^.,;]+)", re.IGNORECASE)


def parse_transcript_flow(text: str) -> IvrFlow:
    """Turn a pasted IVR transcript into a one-level flow of leaf branches."""
    branches = []
    for match in _TRANSCRIPT_OPTION_RE.finditer(text):
        label = match.group(2).strip()
        branches.append(
            FlowNode(
                dtmf=match.group(1),
                label=label,
                content=f"(Simulated) You selected {label}.",
            )
        )
    return IvrFlow(
        id="transcript_flow",
        platform="Text Transcript",
        welcome=text,
        branches=tuple(branches),
    )


def single_prompt_flow(entry_point: str) -> IvrFlow:
    return IvrFlow(
        id="simulated_text",
        platform="Simulated",
        welcome=entry_point,
        entry_points=(entry_point,),
    )


PROCEDURAL_PLATFORMS = [
    "Amazon Connect",
    "Genesys Cloud CX",
    "Twilio Flex",
    "Nice CXone",
    "Avaya Experience",
]

_PROCEDURAL_INDUSTRIES: Dict[str, Dict[str, object]] = {
    "Banking": {
        "greeting": "Thank you for calling First National Bank.",
        "options": ["Account Balance", "Lost Card", "Fraud Department", "Loan Services", "Speak to Agent"],
    },
    "Healthcare": {
        "greeting": "Welcome to City General Health. If this is a medical emergency, please hang up and dial 911.",
        "options": ["Appointments", "Pharmacy", "Billing", "Nurse Line", "Operator"],
    },
    "Retail": {
        "greeting": "You have reached SuperMart Customer Care.",
        "options": ["Order Status", "Returns", "Product Info", "Store Hours", "Representative"],
    },
    "Travel": {
        "greeting": "Hello, and welcome to SkyHigh Airlines. We are currently experiencing higher than normal call volumes.",
        "options": ["Reservations", "Flight Status", "Baggage Claims", "Miles Program", "Agent"],
    },
    "Utilities": {
        "greeting": "Thank you for calling Metro Power and Light.",
        "options": ["Pay Bill", "Report Outage", "Start or Stop Service", "Customer Service", "More Options"],
    },
}


def generate_procedural_flow(entry_point: str) -> IvrFlow:
    """
    Deterministic pseudo-IVR for an arbitrary entry point.

    The same entry point always yields the same platform, industry and tree,
    so repeated simulated crawls of one number are comparable.
    """
    rng = random.Random(normalize_entry_point(entry_point))

    platform = rng.choice(PROCEDURAL_PLATFORMS)
    industry = rng.choice(sorted(_PROCEDURAL_INDUSTRIES))
    profile = _PROCEDURAL_INDUSTRIES[industry]
    labels: List[str] = list(profile["options"])  # type: ignore[arg-type]

    num_options = rng.randint(3, 5)
    branches = []
    for i in range(1, num_options + 1):
        label = labels[i - 1]
        children = []
        # Roughly half of the branches get a sub-menu
        if rng.random() > 0.5:
            num_sub_options = rng.randint(2, 3)
            for j in range(1, num_sub_options + 1):
                children.append(
                    FlowNode(
                        dtmf=str(j),
                        label=f"{label} - Option {j}",
                        content=f"Connecting you to the {label} team, queue {j}. Goodbye.",
                    )
                )
            sub_menu = ", ".join(f"press {j} for queue {j}" for j in range(1, num_sub_options + 1))
            content = f"You have selected {label}. For the {label} team, {sub_menu}."
        else:
            content = f"You have selected {label}. Please hold while we retrieve your details."

        branches.append(
            FlowNode(
                dtmf=str(i),
                label=label,
                type="menu" if children else "prompt",
                content=content,
                children=tuple(children),
            )
        )

    menu = ", ".join(f"press {b.dtmf} for {b.label}" for b in branches)
    suffix = " (Powered by AWS)" if platform == "Amazon Connect" else ""
    welcome = f"{profile['greeting']}{suffix} {menu[0].upper()}{menu[1:]}."

    return IvrFlow(
        id=f"procedural_{industry.lower()}",
        platform=platform,
        industry=industry,
        welcome=welcome,
        branches=tuple(branches),
        entry_points=(entry_point,),
    )
