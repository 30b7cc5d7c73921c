"""
Tests for the telephony session abstraction: simulated replay, the real
HTTP-backed session, the factory and the configuration check.
"""
import asyncio

import httpx
import pytest

from app.core.config import Settings
from app.services.telephony import (
    RealTelephonySession,
    SimulatedTelephonySession,
    TelephonyConfigurationError,
    TelephonyTransportError,
    check_telephony_configuration,
    create_telephony_session,
    forbidden_backend_hosts,
)
from app.services.telephony.catalog import (
    DEFAULT_CATALOG,
    find_flow,
    generate_procedural_flow,
    normalize_entry_point,
    parse_transcript_flow,
)
from app.services.menu_options import extract_options

from tests.fixtures.ivr_fixtures import (
    ACME_ENTRY_POINT,
    BANK_ENTRY_POINT,
    PASTED_TRANSCRIPT,
    FakeTelephonyBackend,
)


def run(coro):
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class TestCatalog:
    """Tests for curated and derived flows."""

    def test_normalize_entry_point(self):
        assert normalize_entry_point(" +1 (800) 555-0199 ") == "+18005550199"
        assert normalize_entry_point("SIP:IVR@SkyHigh.Example") == "sip:ivrskyhighexample"

    def test_find_flow_ignores_formatting(self):
        flow = find_flow(DEFAULT_CATALOG, "+1 800-555-0199")
        assert flow is not None
        assert flow.platform == "Amazon Connect"

    def test_find_flow_unknown(self):
        assert find_flow(DEFAULT_CATALOG, "+15555550100") is None

    def test_parse_transcript_flow(self):
        flow = parse_transcript_flow(PASTED_TRANSCRIPT)
        assert flow.platform == "Text Transcript"
        assert flow.welcome == PASTED_TRANSCRIPT
        assert [(b.dtmf, b.label) for b in flow.branches] == [
            ("1", "Pay Bill"),
            ("2", "Report Outage"),
            ("3", "Customer Service"),
        ]
        assert flow.branches[0].content == "(Simulated) You selected Pay Bill."

    def test_procedural_flow_is_deterministic(self):
        a = generate_procedural_flow("+15555550100")
        b = generate_procedural_flow("+1 555 555 0100")
        assert a == b
        assert 3 <= len(a.branches) <= 5

    def test_procedural_welcome_lists_every_branch(self):
        flow = generate_procedural_flow("+15555550177")
        options = extract_options(flow.welcome)
        assert [o.dtmf for o in options] == [b.dtmf for b in flow.branches]


# ---------------------------------------------------------------------------
# Simulated session
# ---------------------------------------------------------------------------

class TestSimulatedTelephonySession:
    """Tests for SimulatedTelephonySession."""

    def test_curated_flow_replay(self):
        session = SimulatedTelephonySession(ACME_ENTRY_POINT, "simulated")
        assert session.platform == "Amazon Connect"

        welcome = run(session.dial())
        assert "Press 1 for Billing" in welcome.transcript
        assert welcome.confidence == 0.9
        assert welcome.duration_ms == len(welcome.transcript) * 50

        billing = run(session.send_dtmf("1"))
        assert "billing department" in billing.transcript

    def test_unknown_entry_point_is_single_prompt(self):
        session = SimulatedTelephonySession("Welcome. Goodbye.", "simulated")
        assert session.platform == "Simulated"
        assert run(session.dial()).transcript == "Welcome. Goodbye."
        assert run(session.send_dtmf("1")).transcript == "Invalid option."

    def test_text_input_parses_transcript(self):
        session = SimulatedTelephonySession(PASTED_TRANSCRIPT, "text")
        run(session.dial())
        assert run(session.send_dtmf("2")).transcript == "(Simulated) You selected Report Outage."

    def test_invalid_selection(self):
        session = SimulatedTelephonySession(ACME_ENTRY_POINT, "simulated")
        run(session.dial())
        assert run(session.send_dtmf("7")).transcript == "Invalid selection. Please try again."

    def test_input_node_accepts_any_value(self):
        session = SimulatedTelephonySession(BANK_ENTRY_POINT, "simulated")
        run(session.dial())
        pin_prompt = run(session.send_dtmf("1"))
        assert "PIN" in pin_prompt.transcript
        balance = run(session.send_dtmf("4321"))
        assert "balance" in balance.transcript

    def test_send_dtmf_requires_dial(self):
        session = SimulatedTelephonySession(ACME_ENTRY_POINT, "simulated")
        with pytest.raises(TelephonyTransportError, match="not connected"):
            run(session.send_dtmf("1"))

    def test_hangup_resets_position(self):
        session = SimulatedTelephonySession(ACME_ENTRY_POINT, "simulated")
        run(session.dial())
        run(session.send_dtmf("1"))
        run(session.hangup())
        with pytest.raises(TelephonyTransportError):
            run(session.send_dtmf("2"))

    def test_audio_reference_is_deterministic(self):
        a = run(SimulatedTelephonySession(ACME_ENTRY_POINT, "simulated").dial())
        b = run(SimulatedTelephonySession(ACME_ENTRY_POINT, "simulated").dial())
        assert a.audio_url == b.audio_url
        assert a.audio_url.startswith("https://example.com/simulated/")

    def test_injected_catalog(self):
        session = SimulatedTelephonySession(ACME_ENTRY_POINT, "simulated", catalog=[])
        assert session.platform == "Simulated"

    def test_procedural_fallback(self):
        session = SimulatedTelephonySession("+15555550100", "simulated", procedural=True)
        assert session.flow.id.startswith("procedural_")
        assert session.platform == generate_procedural_flow("+15555550100").platform


# ---------------------------------------------------------------------------
# Real session
# ---------------------------------------------------------------------------

PROMPTS = {
    "": "Press 1 for Sales. Press 2 for Support.",
    "1": "Sales is closed. Goodbye.",
}


class TestRealTelephonySession:
    """Tests for RealTelephonySession against a mocked backend."""

    def _session(self, backend):
        return RealTelephonySession(
            ACME_ENTRY_POINT,
            "http://telephony.test/",
            transport=backend.transport(),
        )

    def test_dial_send_dtmf_hangup(self):
        backend = FakeTelephonyBackend(PROMPTS)
        session = self._session(backend)

        async def scenario():
            first = await session.dial()
            second = await session.send_dtmf("1")
            await session.hangup()
            return first, second

        first, second = run(scenario())

        assert first.transcript == PROMPTS[""]
        assert first.confidence == 0.97
        assert first.duration_ms == 4200
        assert first.audio_url.endswith(".wav")
        assert second.transcript == PROMPTS["1"]
        assert second.detected_dtmf == "1"
        assert second.audio_url == ""
        assert second.duration_ms == 0

        assert backend.requests == [
            ("/dial", {"endpoint": ACME_ENTRY_POINT}),
            ("/send-dtmf", {"callId": "CA0001", "digit": "1"}),
            ("/hangup", {"callId": "CA0001"}),
        ]
        assert session.call_id is None

    def test_dial_404_reports_misconfiguration(self):
        backend = FakeTelephonyBackend(PROMPTS, dial_status=404)
        session = self._session(backend)
        with pytest.raises(TelephonyTransportError, match="404") as exc:
            run(session.dial())
        assert "TELEPHONY_BACKEND_URL" in str(exc.value)

    def test_dial_non_2xx(self):
        backend = FakeTelephonyBackend(PROMPTS, dial_status=503)
        session = self._session(backend)
        with pytest.raises(TelephonyTransportError, match="failed with status 503"):
            run(session.dial())

    def test_send_dtmf_non_2xx(self):
        def handler(request):
            if request.url.path == "/dial":
                return httpx.Response(200, json={"callId": "CA1", "transcript": "Hi"})
            return httpx.Response(500)

        session = RealTelephonySession(
            ACME_ENTRY_POINT, "http://telephony.test", transport=httpx.MockTransport(handler)
        )

        async def scenario():
            await session.dial()
            await session.send_dtmf("1")

        with pytest.raises(TelephonyTransportError, match="/send-dtmf failed with status 500"):
            run(scenario())

    def test_network_error_is_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        session = RealTelephonySession(
            ACME_ENTRY_POINT, "http://telephony.test", transport=httpx.MockTransport(handler)
        )
        with pytest.raises(TelephonyTransportError, match="connection refused"):
            run(session.dial())

    def test_send_dtmf_requires_call(self):
        session = RealTelephonySession(ACME_ENTRY_POINT, "http://telephony.test")
        with pytest.raises(TelephonyTransportError, match="Call not connected"):
            run(session.send_dtmf("1"))

    def test_hangup_is_best_effort(self):
        attempts = []

        def handler(request):
            if request.url.path == "/dial":
                return httpx.Response(200, json={"callId": "CA1", "transcript": "Hi"})
            attempts.append(request.url.path)
            raise httpx.ConnectError("backend went away", request=request)

        session = RealTelephonySession(
            ACME_ENTRY_POINT, "http://telephony.test", transport=httpx.MockTransport(handler)
        )

        async def scenario():
            await session.dial()
            await session.hangup()

        run(scenario())

        assert attempts == ["/hangup"] * 3
        assert session.call_id is None

    def test_hangup_without_call_is_noop(self):
        backend = FakeTelephonyBackend(PROMPTS)
        session = self._session(backend)
        run(session.hangup())
        assert backend.requests == []


# ---------------------------------------------------------------------------
# Factory & configuration
# ---------------------------------------------------------------------------

class TestCreateTelephonySession:
    """Tests for create_telephony_session()."""

    def test_text_is_simulated(self):
        session = create_telephony_session(PASTED_TRANSCRIPT, "text")
        assert isinstance(session, SimulatedTelephonySession)
        assert session.kind == "simulated"

    def test_simulated_ignores_backend(self):
        session = create_telephony_session(
            ACME_ENTRY_POINT, "simulated", backend_url="http://telephony.test"
        )
        assert isinstance(session, SimulatedTelephonySession)

    def test_phone_is_real(self):
        session = create_telephony_session(
            ACME_ENTRY_POINT, "phone", backend_url="http://telephony.test"
        )
        assert isinstance(session, RealTelephonySession)
        assert session.kind == "real"
        assert session.platform == "Live/Discovered"

    def test_unknown_format_defaults_to_real(self):
        session = create_telephony_session("front-desk", None, backend_url="http://telephony.test")
        assert isinstance(session, RealTelephonySession)

    def test_real_without_backend_raises(self):
        with pytest.raises(TelephonyConfigurationError):
            create_telephony_session("sip:ivr@skyhigh.example", "sip")


class TestCheckTelephonyConfiguration:
    """Tests for check_telephony_configuration() and forbidden_backend_hosts()."""

    def test_simulated_needs_no_backend(self):
        check_telephony_configuration("simulated", None)
        check_telephony_configuration("text", None)

    def test_missing_backend(self):
        with pytest.raises(TelephonyConfigurationError, match="TELEPHONY_BACKEND_URL is missing"):
            check_telephony_configuration("phone", None)

    def test_forbidden_host(self):
        with pytest.raises(TelephonyConfigurationError, match="INVALID CONFIGURATION"):
            check_telephony_configuration(
                "phone",
                "https://happy-otter-123.convex.site",
                ["convex.site"],
            )

    def test_allowed_host(self):
        check_telephony_configuration("sip", "https://abc.ngrok-free.app", ["convex.site"])

    def test_forbidden_hosts_include_frontend_origins(self):
        settings = Settings(
            _env_file=None,
            DATABASE_URL="sqlite://",
            REDIS_URL="redis://localhost:6379/0",
            FRONTEND_ORIGIN="https://dashboard.example.com, http://localhost:5173",
        )
        hosts = forbidden_backend_hosts(settings)
        assert "convex.site" in hosts
        assert "vly.site" in hosts
        assert "dashboard.example.com" in hosts
        assert "localhost" in hosts
