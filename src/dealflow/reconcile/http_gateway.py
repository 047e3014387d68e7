"""HTTP mutation gateways for the deal REST API.

This module provides async MutationGateway implementations for:
- Campaigns (unconstrained pipeline): status updates and reopen
- Opportunities (gated pipeline): stage advance, mark lost, reset

Both share ApiClient, which owns the httpx client and the retry logic.
Retries are off by default: a failed mutation is compensated locally
and the user retries by dragging again. When enabled, only idempotent
requests are retried.

Source:
- src/dealflow/config.py (api_base_url, api_token, max_retries)
- src/dealflow/stages/definitions.py (CampaignStatus, OpportunityStage)
"""

import asyncio
import logging
import random
from typing import Any, Dict, Optional

import httpx

from src.dealflow.board.models import DealId, DealSnapshot
from src.dealflow.config import BoardSettings
from src.dealflow.errors import GatewayError
from src.dealflow.stages.definitions import CampaignStatus, OpportunityStage


logger = logging.getLogger(__name__)


class ApiClient:
    """Async JSON API client with retry logic.

    Attributes:
        base_url: Base URL of the API, without trailing slash.
        token: Bearer token, if the API needs one.
        max_retries: Retry attempts for transient failures of idempotent requests.
        base_delay: Base delay in seconds for exponential backoff.
        max_delay: Maximum delay in seconds between retries.
        timeout: Request timeout in seconds.

    Example:
        >>> async with CampaignGateway("https://crm.example.com") as gateway:
        ...     await gateway.update_state(12, "confirmed")
    """

    # HTTP status codes that should trigger a retry
    RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}

    # Methods that are safe to send twice
    IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        max_retries: int = 0,
        base_delay: float = 0.5,
        max_delay: float = 10.0,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(
        cls,
        settings: BoardSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "ApiClient":
        return cls(
            base_url=settings.api_base_url,
            token=settings.api_token,
            max_retries=settings.max_retries,
            timeout=settings.request_timeout_seconds,
            transport=transport,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it if necessary."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._default_headers(),
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _default_headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": "dealflow/0.1",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(
        self,
        exc_type: Any,
        exc_val: Any,
        exc_tb: Any,
    ) -> None:
        await self.close()

    def _calculate_backoff(self, attempt: int) -> float:
        """Exponential backoff with full jitter.

        Args:
            attempt: The current retry attempt (0-indexed).

        Returns:
            Delay in seconds before the next retry.
        """
        capped_delay = min(self.base_delay * (2 ** attempt), self.max_delay)
        return random.uniform(0, capped_delay)

    @staticmethod
    def _error_reason(response: httpx.Response) -> str:
        """Extract a human-readable reason from an error response.

        The API reports errors as {"message": ...}, {"detail": ...} or
        {"error": ...}; anything else falls back to the status code.
        """
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            for key in ("message", "detail", "error"):
                value = body.get(key)
                if isinstance(value, str) and value.strip():
                    return value
        return f"HTTP {response.status_code}"

    async def _request(
        self,
        method: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
        idempotent: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """Make an HTTP request with retry logic.

        Only idempotent requests are retried; anything else is sent once.

        Args:
            method: HTTP method (POST, PATCH, ...).
            path: API path (e.g., /api/v1/campaigns/1/reopen/).
            json_data: Optional JSON body for the request.
            idempotent: Override for methods whose idempotency depends on
                the endpoint. Defaults to membership in IDEMPOTENT_METHODS.

        Returns:
            The decoded JSON object, or an empty dict for empty bodies.

        Raises:
            GatewayError: If the request fails after all retries.
        """
        if idempotent is None:
            idempotent = method.upper() in self.IDEMPOTENT_METHODS
        max_retries = self.max_retries if idempotent else 0
        last_exception: Optional[Exception] = None

        for attempt in range(max_retries + 1):
            try:
                response = await self.client.request(
                    method=method,
                    url=path,
                    json=json_data,
                )

                if response.status_code in self.RETRYABLE_STATUS_CODES:
                    if attempt < max_retries:
                        delay = self._calculate_backoff(attempt)
                        logger.warning(
                            "Retryable error from deal API",
                            extra={
                                "status_code": response.status_code,
                                "attempt": attempt + 1,
                                "max_retries": max_retries,
                                "delay": delay,
                                "path": path,
                            },
                        )
                        await asyncio.sleep(delay)
                        continue

                if response.status_code >= 400:
                    error_body = response.text
                    logger.error(
                        "Deal API error",
                        extra={
                            "status_code": response.status_code,
                            "path": path,
                            "method": method,
                            "response_body": error_body[:500],
                        },
                    )
                    raise GatewayError(
                        message=self._error_reason(response),
                        status_code=response.status_code,
                        response_body=error_body,
                        request_url=str(response.url),
                    )

                if not response.content:
                    return {}
                payload = response.json()
                return payload if isinstance(payload, dict) else {}

            except GatewayError:
                raise
            except httpx.RequestError as e:
                # TimeoutException is a RequestError subclass
                last_exception = e
                if attempt < max_retries:
                    delay = self._calculate_backoff(attempt)
                    logger.warning(
                        "Request error, retrying",
                        extra={
                            "error": str(e),
                            "attempt": attempt + 1,
                            "max_retries": max_retries,
                            "delay": delay,
                            "path": path,
                        },
                    )
                    await asyncio.sleep(delay)
                    continue

        logger.error(
            "Deal API request failed after all retries",
            extra={
                "path": path,
                "method": method,
                "max_retries": max_retries,
                "last_error": str(last_exception),
            },
        )
        raise GatewayError(
            message=f"Request failed: {last_exception}",
            request_url=f"{self.base_url}{path}",
        )


def _optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class CampaignGateway(ApiClient):
    """MutationGateway for campaigns.

    Endpoints:
        POST /api/v1/campaigns/{id}/update_status/  {"status", "notes"?}
        POST /api/v1/campaigns/{id}/reopen/
    """

    PATH = "/api/v1/campaigns"

    @staticmethod
    def snapshot_from_payload(
        payload: Dict[str, Any],
        deal_id: DealId,
        state: str,
    ) -> DealSnapshot:
        """Build a snapshot from a campaign response.

        Endpoints that answer with a bare acknowledgement fall back to the
        requested id and state.
        """
        return DealSnapshot(
            id=payload.get("id", deal_id),
            state=payload.get("status") or state,
            aggregate_value=payload.get("value"),
            owner_id=_optional_int(payload.get("owner")),
            title=payload.get("name") or payload.get("title"),
        )

    async def update_state(self, deal_id: DealId, state: str) -> DealSnapshot:
        payload = await self._request(
            "POST",
            f"{self.PATH}/{deal_id}/update_status/",
            {"status": state},
        )
        return self.snapshot_from_payload(payload, deal_id, state)

    async def mark_terminal(
        self,
        deal_id: DealId,
        state: str,
        reason: Optional[str] = None,
    ) -> DealSnapshot:
        body: Dict[str, Any] = {"status": state}
        if reason:
            body["notes"] = reason
        payload = await self._request(
            "POST",
            f"{self.PATH}/{deal_id}/update_status/",
            body,
        )
        return self.snapshot_from_payload(payload, deal_id, state)

    async def reset(self, deal_id: DealId) -> DealSnapshot:
        payload = await self._request("POST", f"{self.PATH}/{deal_id}/reopen/")
        return self.snapshot_from_payload(payload, deal_id, CampaignStatus.LEAD.value)


class OpportunityGateway(ApiClient):
    """MutationGateway for sales opportunities.

    Endpoints:
        POST  /api/v1/artist-sales/opportunities/{id}/advance-stage/  {"stage"}
        POST  /api/v1/artist-sales/opportunities/{id}/mark-lost/
              {"lost_reason", "competitor"?}
        POST  /api/v1/artist-sales/opportunities/{id}/mark-won/
        PATCH /api/v1/artist-sales/opportunities/{id}/  {"stage"}
    """

    PATH = "/api/v1/artist-sales/opportunities"

    @staticmethod
    def snapshot_from_payload(
        payload: Dict[str, Any],
        deal_id: DealId,
        state: str,
    ) -> DealSnapshot:
        return DealSnapshot(
            id=payload.get("id", deal_id),
            state=payload.get("stage") or state,
            aggregate_value=payload.get("estimated_value"),
            owner_id=_optional_int(payload.get("owner")),
            title=payload.get("title") or payload.get("name"),
            lost_reason=payload.get("lost_reason") or None,
        )

    async def update_state(self, deal_id: DealId, state: str) -> DealSnapshot:
        payload = await self._request(
            "POST",
            f"{self.PATH}/{deal_id}/advance-stage/",
            {"stage": state},
        )
        return self.snapshot_from_payload(payload, deal_id, state)

    async def mark_terminal(
        self,
        deal_id: DealId,
        state: str,
        reason: Optional[str] = None,
        competitor: Optional[str] = None,
    ) -> DealSnapshot:
        if state == OpportunityStage.CLOSED_LOST.value:
            body: Dict[str, Any] = {"lost_reason": reason or ""}
            if competitor:
                body["competitor"] = competitor
            payload = await self._request(
                "POST",
                f"{self.PATH}/{deal_id}/mark-lost/",
                body,
            )
        else:
            payload = await self._request(
                "POST",
                f"{self.PATH}/{deal_id}/advance-stage/",
                {"stage": state},
            )
        return self.snapshot_from_payload(payload, deal_id, state)

    async def mark_won(self, deal_id: DealId) -> DealSnapshot:
        """Record a signed deal (moves the opportunity to "won")."""
        payload = await self._request("POST", f"{self.PATH}/{deal_id}/mark-won/")
        return self.snapshot_from_payload(payload, deal_id, OpportunityStage.WON.value)

    async def reset(self, deal_id: DealId) -> DealSnapshot:
        first = OpportunityStage.BRIEF.value
        payload = await self._request(
            "PATCH",
            f"{self.PATH}/{deal_id}/",
            {"stage": first},
            idempotent=True,
        )
        return self.snapshot_from_payload(payload, deal_id, first)
