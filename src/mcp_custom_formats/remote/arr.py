"""Radarr/Sonarr v3 REST client for custom formats.

Both applications expose the same resource:

    GET  /api/v3/customformat
    POST /api/v3/customformat
    PUT  /api/v3/customformat/{id}

Authentication uses the ``X-Api-Key`` header.
"""
import logging
from typing import Any, Optional

import httpx
from tenacity import AsyncRetrying

from ..errors import RemoteError
from ..schema import Instance
from ..utils.connection import retry_policy
from ..utils.logging_config import timed
from .base import RemoteInstanceClient

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v3"


class ArrClient(RemoteInstanceClient):
    """httpx-based client for one arr instance."""

    RETRY_MIN_WAIT = 1.0
    RETRY_MAX_WAIT = 10.0

    def __init__(
        self,
        instance: Instance,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(instance)
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    async def open(self) -> None:
        if self._http is not None:
            return
        self._http = httpx.AsyncClient(
            base_url=f"{self.instance.base_url}{API_PREFIX}",
            headers={
                "X-Api-Key": self.instance.get_api_key(),
                "Accept": "application/json",
            },
            timeout=httpx.Timeout(self.instance.timeout),
            transport=self._transport,
        )
        logger.debug(f"HTTP session opened for {self.instance_id} ({self.instance.base_url})")

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def _request(
        self,
        method: str,
        path: str,
        payload: Optional[dict[str, Any]] = None,
    ) -> Any:
        await self.open()
        assert self._http is not None

        policy = retry_policy(
            max_attempts=self.instance.retries,
            min_wait=self.RETRY_MIN_WAIT,
            max_wait=self.RETRY_MAX_WAIT,
        )
        try:
            async for attempt in AsyncRetrying(**policy):
                with attempt:
                    response = await self._http.request(method, path, json=payload)
        except httpx.TransportError as e:
            raise RemoteError(
                f"{self.instance_id} unreachable: {type(e).__name__}: {e}"
            ) from e

        if response.is_error:
            raise RemoteError(
                self._error_message(response),
                status_code=response.status_code,
            )

        if not response.content:
            return None
        return response.json()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Extract a readable message from an arr error response.

        Validation failures come back as a list of
        ``{"propertyName": ..., "errorMessage": ...}`` objects; other errors
        as ``{"message": ...}``.
        """
        prefix = f"HTTP {response.status_code}"
        try:
            body = response.json()
        except ValueError:
            text = response.text.strip()
            return f"{prefix}: {text[:200]}" if text else prefix

        if isinstance(body, list):
            messages = [
                item.get("errorMessage") or str(item)
                for item in body
                if isinstance(item, dict)
            ]
            if messages:
                return f"{prefix}: {'; '.join(messages)}"
        if isinstance(body, dict) and body.get("message"):
            return f"{prefix}: {body['message']}"
        return prefix

    @timed("list_custom_formats")
    async def list_custom_formats(self) -> list[dict[str, Any]]:
        data = await self._request("GET", "/customformat")
        return list(data or [])

    @timed("create_custom_format")
    async def create_custom_format(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/customformat", payload)

    @timed("update_custom_format")
    async def update_custom_format(
        self,
        remote_id: int,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        return await self._request("PUT", f"/customformat/{remote_id}", payload)
