from __future__ import annotations

import hashlib
import logging
from typing import Optional, Sequence

from .base import AudioResult, TelephonyTransportError
from .catalog import (
    DEFAULT_CATALOG,
    FlowNode,
    IvrFlow,
    find_flow,
    generate_procedural_flow,
    parse_transcript_flow,
    single_prompt_flow,
)

logger = logging.getLogger(__name__)

SIMULATED_CONFIDENCE = 0.9
SIMULATED_MS_PER_CHAR = 50


def resolve_flow(
    entry_point: str,
    input_type: Optional[str],
    catalog: Sequence[IvrFlow],
    procedural: bool = False,
) -> IvrFlow:
    """
    Pick the flow a simulated call replays:

    - pasted transcripts are parsed into a one-level flow
    - known entry points replay their curated flow
    - otherwise a procedural flow (when enabled) or the raw entry point as a
      single prompt
    """
    if input_type == "text":
        return parse_transcript_flow(entry_point)

    curated = find_flow(catalog, entry_point)
    if curated is not None:
        return curated

    if procedural:
        return generate_procedural_flow(entry_point)

    return single_prompt_flow(entry_point)


class SimulatedTelephonySession:
    """
    Replays a flow tree in-process. Used only for explicit ``text`` and
    ``simulated`` input types; phone numbers and SIP URIs always go to the
    real backend.
    """

    kind = "simulated"

    def __init__(
        self,
        entry_point: str,
        input_type: Optional[str] = None,
        *,
        catalog: Optional[Sequence[IvrFlow]] = None,
        procedural: bool = False,
    ) -> None:
        self.flow = resolve_flow(
            entry_point,
            input_type,
            DEFAULT_CATALOG if catalog is None else catalog,
            procedural=procedural,
        )
        self.platform = self.flow.platform
        self._current: Optional[FlowNode] = None
        self._connected = False

    async def dial(self) -> AudioResult:
        self._connected = True
        self._current = None
        return self._process_audio(self.flow.welcome)

    async def send_dtmf(self, digit: str) -> AudioResult:
        if not self._connected:
            raise TelephonyTransportError("Call not connected")

        children = self._current.children if self._current else self.flow.branches

        if not children:
            return self._process_audio("Invalid option.")

        # Input prompts accept whatever the caller keys in
        if self._current is not None and self._current.type == "input":
            self._current = children[0]
            return self._process_audio(self._current.content)

        match = next((c for c in children if c.dtmf == digit), None)
        if match is not None:
            self._current = match
            return self._process_audio(match.content)

        return self._process_audio("Invalid selection. Please try again.")

    async def hangup(self) -> None:
        self._connected = False
        self._current = None

    def _process_audio(self, text: str) -> AudioResult:
        digest = hashlib.sha1(f"{self.flow.id}:{text}".encode("utf-8")).hexdigest()[:12]
        return AudioResult(
            transcript=text,
            confidence=SIMULATED_CONFIDENCE,
            audio_url=f"https://example.com/simulated/{digest}.mp3",
            duration_ms=len(text) * SIMULATED_MS_PER_CHAR,
        )
