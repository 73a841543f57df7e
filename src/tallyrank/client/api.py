"""Async HTTP client for the vote endpoints.

Maps error responses back onto the engine's exception types so callers
handle a rate-limit rejection or a missing identity the same way whether they
talk to the service in-process or over HTTP.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from tallyrank.core.errors import (
    CooldownError,
    InvalidDirectionError,
    NoIdentityError,
    ProductNotFoundError,
    StoreUnavailableError,
    TallyrankError,
)
from tallyrank.services.toggle import VoteDirection, VoteView, parse_direction

logger = logging.getLogger(__name__)

HTTP_UNAUTHORIZED = 401
HTTP_NOT_FOUND = 404
HTTP_UNPROCESSABLE = 422
HTTP_TOO_MANY_REQUESTS = 429


class VoteTransportError(TallyrankError):
    """The request never produced a response (network failure, timeout)."""

    code = "transport"
    status_code = 0


def view_from_payload(payload: dict[str, Any]) -> VoteView:
    """Build a ``VoteView`` from a vote status response body."""
    direction = payload.get("direction")
    return VoteView(
        upvotes=int(payload["upvotes"]),
        downvotes=int(payload["downvotes"]),
        direction=VoteDirection(direction) if direction else None,
    )


class VoteApiClient:
    """Client for ``/api/v1/votes`` carrying the caller's identity."""

    def __init__(
        self,
        base_url: str,
        *,
        fingerprint: str | None = None,
        token: str | None = None,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        headers: dict[str, str] = {}
        if fingerprint:
            headers["X-Client-Fingerprint"] = fingerprint
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._headers = headers

    async def __aenter__(self) -> VoteApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def get_status(self, product_id: int) -> VoteView:
        """Fetch a product's tally and the caller's direction."""
        response = await self._request("GET", f"/api/v1/votes/{product_id}", product_id)
        return view_from_payload(response)

    async def cast_vote(self, product_id: int, direction: VoteDirection | str) -> VoteView:
        """Cast a vote and return the authoritative post-mutation view."""
        requested = parse_direction(direction)
        response = await self._request(
            "POST",
            "/api/v1/votes/",
            product_id,
            json={"product_id": product_id, "direction": requested.value},
        )
        return view_from_payload(response)

    async def _request(
        self, method: str, url: str, product_id: int, **kwargs: Any
    ) -> dict[str, Any]:
        try:
            response = await self._client.request(method, url, headers=self._headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("Vote request %s %s failed: %s", method, url, exc)
            raise VoteTransportError(str(exc)) from exc

        if response.is_success:
            body: dict[str, Any] = response.json()
            return body

        raise _error_from_response(response, product_id)


def _error_from_response(response: httpx.Response, product_id: int) -> TallyrankError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    detail = body.get("detail") if isinstance(body, dict) else None

    status = response.status_code
    if status == HTTP_UNAUTHORIZED:
        return NoIdentityError(detail or "A valid voter identity is required")
    if status == HTTP_TOO_MANY_REQUESTS:
        retry_ms = body.get("retry_after_ms") if isinstance(body, dict) else None
        if retry_ms is None:
            retry_ms = int(response.headers.get("Retry-After", "1")) * 1000
        return CooldownError(int(retry_ms))
    if status == HTTP_UNPROCESSABLE:
        return InvalidDirectionError(detail)
    if status == HTTP_NOT_FOUND:
        return ProductNotFoundError(product_id)
    return StoreUnavailableError(detail or f"Vote service returned {status}")
