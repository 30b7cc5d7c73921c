from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Protocol


class TelephonyError(RuntimeError):
    """Base class for failures talking to (or configuring) a telephony session."""


class TelephonyConfigurationError(TelephonyError):
    """Real calling was required but the telephony backend is unset or wrong."""


class TelephonyTransportError(TelephonyError):
    """The telephony backend was unreachable or answered with a non-2xx status."""


@dataclass
class AudioResult:
    """What was heard after dialing or sending a digit."""

    transcript: str
    confidence: float
    audio_url: str
    duration_ms: int
    detected_dtmf: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "AudioResult":
        # Telephony backend speaks camelCase JSON
        return cls(
            transcript=data.get("transcript") or "",
            confidence=float(data.get("confidence") or 0),
            audio_url=data.get("audioUrl") or "",
            duration_ms=int(data.get("durationMs") or 0),
            detected_dtmf=data.get("detectedDtmf"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class TelephonySession(Protocol):
    """
    One phone call used to replay a single DTMF path from the root.

    Sessions are never reused across paths: the crawler dials a fresh
    session per frame and hangs it up once the node is processed.
    """

    kind: str       # "real" | "simulated"
    platform: str   # platform label reported for the job

    async def dial(self) -> AudioResult:
        ...

    async def send_dtmf(self, digit: str) -> AudioResult:
        ...

    async def hangup(self) -> None:
        ...
