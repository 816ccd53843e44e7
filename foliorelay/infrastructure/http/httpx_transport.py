"""Transport port implemented with an `httpx.AsyncClient`.

Every HTTP status is returned as a TransportResponse; only failures to
complete the exchange (connect errors, resets, client-side timeouts) are
raised, as NetworkFailure.
"""

import logging
from typing import Any, Optional

import httpx

from foliorelay.domain.errors import NetworkFailure
from foliorelay.domain.interfaces.transport import Transport
from foliorelay.domain.models.transport import TransportRequest, TransportResponse

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 30.0


def _decode_body(response: httpx.Response) -> Any:
    content_type = response.headers.get("content-type", "")
    if "json" in content_type:
        try:
            return response.json()
        except ValueError:
            logger.debug(f"Response declared JSON but could not be decoded ({response.status_code})")
    return response.text


class HttpxTransport(Transport):
    """Sends TransportRequests with a shared, lazily created AsyncClient."""

    def __init__(self, timeout_s: float = DEFAULT_TIMEOUT_S, client: Optional[httpx.AsyncClient] = None):
        self.timeout_s = timeout_s
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_s), follow_redirects=True)
            logger.debug(f"Created httpx.AsyncClient (timeout={self.timeout_s}s)")
        return self._client

    async def send(self, request: TransportRequest) -> TransportResponse:
        client = self._get_client()
        timeout = httpx.Timeout(request.timeout_s) if request.timeout_s is not None else httpx.USE_CLIENT_DEFAULT
        logger.debug(f"{request.method} {request.url}")
        try:
            response = await client.request(
                request.method,
                request.url,
                headers=dict(request.headers),
                params={k: v for k, v in request.params.items() if v is not None},
                json=request.json_body,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            raise NetworkFailure(f"Request to {request.url} timed out: {type(e).__name__}") from e
        except httpx.TransportError as e:
            raise NetworkFailure(f"Request to {request.url} failed: {type(e).__name__}: {e}") from e

        logger.debug(f"{request.method} {request.url} -> {response.status_code}")
        return TransportResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=_decode_body(response),
        )

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
