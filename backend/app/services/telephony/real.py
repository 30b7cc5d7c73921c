from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from tenacity import retry, wait_exponential, stop_after_attempt, retry_if_exception_type

from .base import AudioResult, TelephonyTransportError

logger = logging.getLogger(__name__)

NOT_FOUND_HINT = (
    "Telephony backend returned 404 (Not Found) for {path}. "
    "TELEPHONY_BACKEND_URL is probably pointing at the dashboard/API instead of "
    "the telephony server, or the server does not expose {path}."
)


class RealTelephonySession:
    """
    Talks to the external telephony backend, which places the call, listens
    to prompts, runs speech-to-text and answers with the transcript.

        POST /dial        {endpoint}        -> {callId, transcript, ...}
        POST /send-dtmf   {callId, digit}   -> {transcript, ...}
        POST /hangup      {callId}          -> {ok: true}
    """

    kind = "real"
    platform = "Live/Discovered"

    def __init__(
        self,
        endpoint: str,
        backend_url: str,
        *,
        timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.endpoint = endpoint
        self.backend_url = backend_url.rstrip("/")
        self.timeout = timeout
        self.call_id: Optional[str] = None
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.backend_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        client = self._get_client()
        try:
            resp = await client.post(path, json=payload)
        except httpx.HTTPError as e:
            raise TelephonyTransportError(f"POST {path} to telephony backend failed: {e}") from e

        if resp.status_code == 404:
            raise TelephonyTransportError(NOT_FOUND_HINT.format(path=path))
        if resp.is_error:
            raise TelephonyTransportError(f"POST {path} failed with status {resp.status_code}")

        try:
            return resp.json()
        except ValueError as e:
            raise TelephonyTransportError(f"POST {path} returned a non-JSON body") from e

    async def dial(self) -> AudioResult:
        data = await self._post("/dial", {"endpoint": self.endpoint})
        self.call_id = data.get("callId")
        if not self.call_id:
            raise TelephonyTransportError("Telephony backend did not return a callId for /dial")

        logger.info(
            "Call placed",
            extra={"call_id": self.call_id, "step": "telephony:dial"},
        )
        return AudioResult.from_payload(data)

    async def send_dtmf(self, digit: str) -> AudioResult:
        if not self.call_id:
            raise TelephonyTransportError("Call not connected")

        data = await self._post("/send-dtmf", {"callId": self.call_id, "digit": digit})
        return AudioResult.from_payload(data)

    @retry(
        wait=wait_exponential(multiplier=0.2, min=0.2, max=1),
        stop=stop_after_attempt(3),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _post_hangup(self, call_id: str) -> httpx.Response:
        return await self._get_client().post("/hangup", json={"callId": call_id})

    async def hangup(self) -> None:
        """Best-effort: failures are logged, never raised."""
        call_id = self.call_id
        try:
            if call_id:
                resp = await self._post_hangup(call_id)
                if resp.is_error:
                    logger.warning(
                        "Hangup returned status %s",
                        resp.status_code,
                        extra={"call_id": call_id, "step": "telephony:hangup"},
                    )
        except httpx.HTTPError as e:
            logger.warning(
                "Hangup failed: %s",
                e,
                extra={"call_id": call_id, "step": "telephony:hangup"},
            )
        finally:
            self.call_id = None
            if self._client is not None:
                await self._client.aclose()
                self._client = None
