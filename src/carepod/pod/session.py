"""Authenticated pod session.

The identity handshake happens elsewhere. A session here is what that
handshake produces: an identity URI plus an HTTP client whose requests are
already authenticated as that identity.
"""

from types import TracebackType
from typing import Any, Mapping, Optional, Type

import httpx

from carepod.core.exceptions import TransportError
from carepod.utils.logging import get_logger

logger = get_logger(__name__)

NO_STORE = {"Cache-Control": "no-store"}


class PodSession:
    """Identity-bound fetch capability.

    Every request carries ``Cache-Control: no-store``; access decisions are
    made by the pod on each request and must never be served from a cache.
    """

    def __init__(self, web_id: str, client: httpx.AsyncClient):
        """Initialize the session.

        Args:
            web_id: Identity URI the client is authenticated as
            client: HTTP client carrying that identity's credentials
        """
        self.web_id = web_id
        self._client: Optional[httpx.AsyncClient] = client

    @classmethod
    def from_auth(
        cls, web_id: str, auth: httpx.Auth, **client_kwargs: Any
    ) -> "PodSession":
        """Create a session from an httpx auth flow (DPoP, bearer, ...)."""
        return cls(web_id, httpx.AsyncClient(auth=auth, **client_kwargs))

    @property
    def is_open(self) -> bool:
        """Whether the session can still issue requests."""
        return self._client is not None

    async def fetch(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        content: Optional[str] = None,
    ) -> httpx.Response:
        """Issue one authenticated request.

        Raises:
            TransportError: If the session is closed or the pod is unreachable
        """
        if self._client is None:
            raise TransportError("Session is closed", "SESSION_CLOSED")

        merged = {**NO_STORE, **(headers or {})}
        try:
            return await self._client.request(
                method,
                url,
                headers=merged,
                content=content.encode("utf-8") if content is not None else None,
            )
        except httpx.RequestError as e:
            logger.warning("pod_unreachable", method=method, url=url, error=str(e))
            raise TransportError(f"{method} {url} failed: {e}") from e

    async def close(self) -> None:
        """Tear down the session."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("session_closed", web_id=self.web_id)

    async def __aenter__(self) -> "PodSession":
        """Enter the session context."""
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        """Close the session on exit."""
        await self.close()
