"""
Shared IVR flows and a fake telephony backend for discovery tests.
"""
from __future__ import annotations

import json
from typing import Dict, List

import httpx

from app.services.telephony.catalog import FlowNode, IvrFlow


# ---------------------------------------------------------------------------
# Transcripts
# ---------------------------------------------------------------------------

ACME_ENTRY_POINT = "+18005550199"
BANK_ENTRY_POINT = "+18885550142"
AIRLINE_ENTRY_POINT = "+18775550123"

PASTED_TRANSCRIPT = (
    "Thanks for calling Metro Power and Light. "
    "Press 1 for Pay Bill. Press 2 for Report Outage. Press 3 for Customer Service."
)


# ---------------------------------------------------------------------------
# Custom flows
# ---------------------------------------------------------------------------

def deep_chain_flow(levels: int, entry_point: str = "+15550000001") -> IvrFlow:
    """A single chain of menus, one option per level, all prompts distinct."""
    node = FlowNode(
        dtmf="1",
        label=f"Level {levels}",
        content=f"You are at level {levels}. Goodbye.",
    )
    for level in range(levels - 1, 0, -1):
        node = FlowNode(
            dtmf="1",
            label=f"Level {level}",
            type="menu",
            content=f"You are at level {level}. Press 1 for level {level + 1}.",
            children=(node,),
        )
    return IvrFlow(
        id="deep_chain",
        platform="Nice CXone",
        entry_points=(entry_point,),
        welcome="Main menu. Press 1 for level 1.",
        branches=(node,),
    )


SHARED_SUBMENU_FLOW = IvrFlow(
    id="shared_submenu",
    platform="Avaya Experience",
    entry_points=("+15550000002",),
    welcome="Main menu. Press 1 for Sales. Press 2 for Renewals.",
    branches=(
        FlowNode(
            dtmf="1",
            label="Sales",
            type="menu",
            content="Sales and renewals. Press 1 for new plans.",
            children=(
                FlowNode(dtmf="1", label="New plans", content="New plans are listed on our website. Goodbye."),
            ),
        ),
        # Reaches the same menu state as option 1 through a different path
        FlowNode(
            dtmf="2",
            label="Renewals",
            type="menu",
            content="Sales and renewals. Press 1 for new plans.",
            children=(
                FlowNode(dtmf="1", label="New plans", content="New plans are listed on our website. Goodbye."),
            ),
        ),
    ),
)


# ---------------------------------------------------------------------------
# Fake telephony backend (httpx.MockTransport handler)
# ---------------------------------------------------------------------------

class FakeTelephonyBackend:
    """
    Minimal stand-in for the telephony server.

    ``prompts`` maps a DTMF path joined with '>' ("" for the root) to the
    transcript heard there.
    """

    def __init__(self, prompts: Dict[str, str], *, dial_status: int = 200) -> None:
        self.prompts = prompts
        self.dial_status = dial_status
        self.calls: Dict[str, List[str]] = {}
        self.hangups: List[str] = []
        self.requests: List[tuple] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content or b"{}")
        self.requests.append((request.url.path, body))

        if request.url.path == "/dial":
            if self.dial_status != 200:
                return httpx.Response(self.dial_status, json={"error": "nope"})
            call_id = f"CA{len(self.calls) + 1:04d}"
            self.calls[call_id] = []
            return httpx.Response(
                200,
                json={
                    "callId": call_id,
                    "transcript": self.prompts[""],
                    "confidence": 0.97,
                    "audioUrl": f"https://recordings.example/{call_id}.wav",
                    "durationMs": 4200,
                },
            )

        if request.url.path == "/send-dtmf":
            path = self.calls[body["callId"]]
            path.append(body["digit"])
            return httpx.Response(
                200,
                json={
                    "transcript": self.prompts.get(">".join(path), "Invalid selection."),
                    "confidence": 0.95,
                    "detectedDtmf": body["digit"],
                },
            )

        if request.url.path == "/hangup":
            self.hangups.append(body["callId"])
            return httpx.Response(200, json={"ok": True})

        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)
