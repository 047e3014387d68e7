"""Unit tests for the HTTP mutation gateways.

Requests are served by httpx.MockTransport so no network is involved.
"""

import asyncio
import json
from decimal import Decimal
from typing import Callable, List

import httpx
import pytest

from src.dealflow.config import BoardSettings
from src.dealflow.errors import GatewayError
from src.dealflow.reconcile import (
    ApiClient,
    CampaignGateway,
    MutationGateway,
    OpportunityGateway,
)


def run_async(coro):
    return asyncio.run(coro)


BASE_URL = "https://crm.example.com"

Handler = Callable[[httpx.Request], httpx.Response]


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Handler) -> None:
        self.requests: List[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)


def _json_handler(payload, status_code: int = 200) -> Handler:
    return lambda request: httpx.Response(status_code, json=payload)


def _body(request: httpx.Request):
    return json.loads(request.content) if request.content else None


class TestApiClient:
    def test_gateways_satisfy_protocol(self) -> None:
        assert isinstance(CampaignGateway(BASE_URL), MutationGateway)
        assert isinstance(OpportunityGateway(BASE_URL), MutationGateway)

    def test_bearer_token_and_json_headers(self) -> None:
        transport = RecordingTransport(_json_handler({}))
        gateway = CampaignGateway(BASE_URL, token="secret", transport=transport)

        run_async(gateway.update_state(12, "confirmed"))

        headers = transport.requests[0].headers
        assert headers["Authorization"] == "Bearer secret"
        assert headers["Accept"] == "application/json"

    def test_no_auth_header_without_token(self) -> None:
        transport = RecordingTransport(_json_handler({}))
        gateway = CampaignGateway(BASE_URL, transport=transport)

        run_async(gateway.update_state(12, "confirmed"))

        assert "Authorization" not in transport.requests[0].headers

    @pytest.mark.parametrize(
        "payload, reason",
        [
            ({"message": "Stage is locked"}, "Stage is locked"),
            ({"detail": "Not found."}, "Not found."),
            ({"error": "conflict"}, "conflict"),
            ({"unexpected": True}, "HTTP 400"),
        ],
    )
    def test_error_reason_from_body(self, payload, reason: str) -> None:
        transport = RecordingTransport(_json_handler(payload, status_code=400))
        gateway = CampaignGateway(BASE_URL, transport=transport)

        with pytest.raises(GatewayError) as exc_info:
            run_async(gateway.update_state(12, "confirmed"))

        assert exc_info.value.message == reason
        assert exc_info.value.status_code == 400
        assert exc_info.value.request_url.endswith("/api/v1/campaigns/12/update_status/")

    def test_non_json_error_body(self) -> None:
        transport = RecordingTransport(lambda request: httpx.Response(500, text="boom"))
        gateway = CampaignGateway(BASE_URL, transport=transport)

        with pytest.raises(GatewayError) as exc_info:
            run_async(gateway.update_state(12, "confirmed"))

        assert exc_info.value.message == "HTTP 500"
        assert exc_info.value.response_body == "boom"

    def test_no_retry_by_default(self) -> None:
        transport = RecordingTransport(_json_handler({}, status_code=503))
        gateway = CampaignGateway(BASE_URL, transport=transport)

        with pytest.raises(GatewayError):
            run_async(gateway.update_state(12, "confirmed"))

        assert len(transport.requests) == 1

    def test_retries_transient_status_on_stage_reset(self) -> None:
        responses = [
            httpx.Response(503),
            httpx.Response(200, json={"id": 5, "stage": "brief"}),
        ]
        transport = RecordingTransport(lambda request: responses.pop(0))
        gateway = OpportunityGateway(BASE_URL, max_retries=2, base_delay=0, transport=transport)

        snapshot = run_async(gateway.reset(5))

        assert snapshot.state == "brief"
        assert len(transport.requests) == 2

    def test_post_mutations_are_sent_once(self) -> None:
        transport = RecordingTransport(_json_handler({}, status_code=503))
        gateway = CampaignGateway(BASE_URL, max_retries=3, base_delay=0, transport=transport)

        with pytest.raises(GatewayError) as exc_info:
            run_async(gateway.update_state(12, "confirmed"))

        assert exc_info.value.status_code == 503
        assert len(transport.requests) == 1

    def test_post_connection_error_is_not_retried(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        transport = RecordingTransport(handler)
        gateway = OpportunityGateway(BASE_URL, max_retries=2, base_delay=0, transport=transport)

        with pytest.raises(GatewayError):
            run_async(gateway.mark_won(5))

        assert len(transport.requests) == 1

    def test_connection_errors_exhaust_retries(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        transport = RecordingTransport(handler)
        client = ApiClient(BASE_URL, max_retries=1, base_delay=0, transport=transport)

        with pytest.raises(GatewayError) as exc_info:
            run_async(client._request("GET", "/api/v1/campaigns/12/"))

        assert exc_info.value.status_code is None
        assert "connection refused" in exc_info.value.message
        assert len(transport.requests) == 2

    def test_backoff_is_capped(self) -> None:
        client = ApiClient(BASE_URL, base_delay=1.0, max_delay=3.0)

        for attempt in range(6):
            assert 0 <= client._calculate_backoff(attempt) <= 3.0

    def test_from_settings(self) -> None:
        settings = BoardSettings(
            api_base_url="https://crm.example.com/",
            api_token="abc",
            max_retries=2,
            request_timeout_seconds=5,
        )

        client = OpportunityGateway.from_settings(settings)

        assert isinstance(client, OpportunityGateway)
        assert client.base_url == BASE_URL
        assert client.token == "abc"
        assert client.max_retries == 2
        assert client.timeout == 5

    def test_context_manager_closes_client(self) -> None:
        transport = RecordingTransport(_json_handler({}))

        async def test():
            async with CampaignGateway(BASE_URL, transport=transport) as gateway:
                await gateway.reset(3)
                http_client = gateway.client
            return gateway, http_client

        gateway, http_client = run_async(test())

        assert http_client.is_closed
        assert gateway._client is None


class TestCampaignGateway:
    def test_update_state(self) -> None:
        transport = RecordingTransport(
            _json_handler(
                {"id": 12, "status": "confirmed", "value": "5000.00", "owner": 3, "name": "Spring tour"}
            )
        )
        gateway = CampaignGateway(BASE_URL, transport=transport)

        snapshot = run_async(gateway.update_state(12, "confirmed"))

        request = transport.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/api/v1/campaigns/12/update_status/"
        assert _body(request) == {"status": "confirmed"}
        assert snapshot.aggregate_value == Decimal("5000.00")
        assert snapshot.owner_id == 3
        assert snapshot.title == "Spring tour"

    def test_mark_terminal_sends_notes(self) -> None:
        transport = RecordingTransport(_json_handler({}))
        gateway = CampaignGateway(BASE_URL, transport=transport)

        snapshot = run_async(gateway.mark_terminal(12, "lost", reason="Budget cut"))

        assert _body(transport.requests[0]) == {"status": "lost", "notes": "Budget cut"}
        assert snapshot.id == 12
        assert snapshot.state == "lost"

    def test_reset_reopens_at_lead(self) -> None:
        transport = RecordingTransport(lambda request: httpx.Response(204))
        gateway = CampaignGateway(BASE_URL, transport=transport)

        snapshot = run_async(gateway.reset(12))

        request = transport.requests[0]
        assert request.url.path == "/api/v1/campaigns/12/reopen/"
        assert request.content == b""
        assert snapshot.state == "lead"


class TestOpportunityGateway:
    def test_update_state_advances_stage(self) -> None:
        transport = RecordingTransport(
            _json_handler({"id": 5, "stage": "qualified", "estimated_value": 1200, "title": "Festival"})
        )
        gateway = OpportunityGateway(BASE_URL, transport=transport)

        snapshot = run_async(gateway.update_state(5, "qualified"))

        request = transport.requests[0]
        assert request.url.path == "/api/v1/artist-sales/opportunities/5/advance-stage/"
        assert _body(request) == {"stage": "qualified"}
        assert snapshot.value == Decimal(1200)
        assert snapshot.title == "Festival"

    def test_mark_lost(self) -> None:
        transport = RecordingTransport(
            _json_handler({"id": 5, "stage": "closed_lost", "lost_reason": "Went elsewhere"})
        )
        gateway = OpportunityGateway(BASE_URL, transport=transport)

        snapshot = run_async(
            gateway.mark_terminal(5, "closed_lost", reason="Went elsewhere", competitor="Acme")
        )

        request = transport.requests[0]
        assert request.url.path == "/api/v1/artist-sales/opportunities/5/mark-lost/"
        assert _body(request) == {"lost_reason": "Went elsewhere", "competitor": "Acme"}
        assert snapshot.lost_reason == "Went elsewhere"

    def test_mark_lost_without_reason_sends_empty_string(self) -> None:
        transport = RecordingTransport(_json_handler({}))
        gateway = OpportunityGateway(BASE_URL, transport=transport)

        run_async(gateway.mark_terminal(5, "closed_lost"))

        assert _body(transport.requests[0]) == {"lost_reason": ""}

    def test_other_terminal_state_advances_stage(self) -> None:
        transport = RecordingTransport(_json_handler({}))
        gateway = OpportunityGateway(BASE_URL, transport=transport)

        run_async(gateway.mark_terminal(5, "completed"))

        request = transport.requests[0]
        assert request.url.path.endswith("/5/advance-stage/")
        assert _body(request) == {"stage": "completed"}

    def test_mark_won(self) -> None:
        transport = RecordingTransport(_json_handler({}))
        gateway = OpportunityGateway(BASE_URL, transport=transport)

        snapshot = run_async(gateway.mark_won(5))

        assert transport.requests[0].url.path.endswith("/5/mark-won/")
        assert snapshot.state == "won"

    def test_reset_patches_first_stage(self) -> None:
        transport = RecordingTransport(_json_handler({"id": 5, "stage": "brief"}))
        gateway = OpportunityGateway(BASE_URL, transport=transport)

        snapshot = run_async(gateway.reset(5))

        request = transport.requests[0]
        assert request.method == "PATCH"
        assert request.url.path == "/api/v1/artist-sales/opportunities/5/"
        assert _body(request) == {"stage": "brief"}
        assert snapshot.state == "brief"
