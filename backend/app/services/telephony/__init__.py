from __future__ import annotations

from typing import List, Optional, Sequence
from urllib.parse import urlparse

import httpx

from .base import (
    AudioResult,
    TelephonyConfigurationError,
    TelephonyError,
    TelephonySession,
    TelephonyTransportError,
)
from .catalog import DEFAULT_CATALOG, FlowNode, IvrFlow
from .real import RealTelephonySession
from .simulated import SimulatedTelephonySession
from ...core.config import Settings

# Input types that never place a real call
SIMULATED_INPUT_TYPES = ("text", "simulated")


def forbidden_backend_hosts(settings: Settings) -> List[str]:
    """Hosts that cannot be the telephony backend: the denylist plus our own frontend origins."""
    hosts = [h.strip().lower() for h in settings.TELEPHONY_BACKEND_DENYLIST.split(",") if h.strip()]
    for origin in (settings.FRONTEND_ORIGIN or "").split(","):
        host = urlparse(origin.strip()).hostname
        if host:
            hosts.append(host.lower())
    return hosts


def check_telephony_configuration(
    input_type: Optional[str],
    backend_url: Optional[str],
    forbidden_hosts: Sequence[str] = (),
) -> None:
    """
    Fail fast, before any call is placed, when real calling is required but
    the backend is unset or points at a service that cannot place calls.
    """
    if input_type in SIMULATED_INPUT_TYPES:
        return

    if not backend_url:
        raise TelephonyConfigurationError(
            "TELEPHONY_BACKEND_URL is missing. Set it to the public URL of the "
            "telephony server, or run discovery with input_type 'simulated'."
        )

    host = (urlparse(backend_url).hostname or "").lower()
    for forbidden in forbidden_hosts:
        if host == forbidden or host.endswith("." + forbidden):
            raise TelephonyConfigurationError(
                f"INVALID CONFIGURATION: TELEPHONY_BACKEND_URL is set to '{backend_url}'.\n"
                "That host serves the dashboard/API, which CANNOT handle phone calls.\n"
                "\n"
                "TO FIX THIS:\n"
                "1. To test without a telephony server: run discovery with input_type 'simulated'.\n"
                "2. For real calls: run the telephony server and expose it (e.g. ngrok http 3000),\n"
                "   then set TELEPHONY_BACKEND_URL to that public URL."
            )


def create_telephony_session(
    entry_point: str,
    input_type: Optional[str] = None,
    *,
    backend_url: Optional[str] = None,
    catalog: Optional[Sequence[IvrFlow]] = None,
    procedural: bool = False,
    timeout: float = 30,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> TelephonySession:
    """
    Choose the session variant for an entry point:

    - input_type "text" / "simulated" -> SimulatedTelephonySession
    - anything else (phone, sip, unset) -> RealTelephonySession

    Unknown formats go to the real backend rather than being silently
    simulated.
    """
    if input_type in SIMULATED_INPUT_TYPES:
        return SimulatedTelephonySession(
            entry_point,
            input_type,
            catalog=catalog,
            procedural=procedural,
        )

    if not backend_url:
        raise TelephonyConfigurationError(
            "TELEPHONY_BACKEND_URL is not configured for RealTelephonySession"
        )
    return RealTelephonySession(entry_point, backend_url, timeout=timeout, transport=transport)


__all__ = [
    "AudioResult",
    "DEFAULT_CATALOG",
    "FlowNode",
    "IvrFlow",
    "RealTelephonySession",
    "SIMULATED_INPUT_TYPES",
    "SimulatedTelephonySession",
    "TelephonyConfigurationError",
    "TelephonyError",
    "TelephonySession",
    "TelephonyTransportError",
    "check_telephony_configuration",
    "create_telephony_session",
    "forbidden_backend_hosts",
]
