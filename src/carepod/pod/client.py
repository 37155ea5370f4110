"""Resource client for pod storage.

The pod offers GET and PUT only. Every write is a full replacement, so an
"update" anywhere in this package means read the whole document, change it
in memory and PUT it back. Two writers racing on the same resource silently
overwrite each other; the last PUT wins.
"""

import json
from typing import Any, List, Optional

import httpx

from carepod.core.exceptions import ForbiddenError, PodRequestError
from carepod.pod.listing import parse_container_listing
from carepod.pod.session import PodSession
from carepod.utils.logging import get_logger

logger = get_logger(__name__)

JSON_TYPE = "application/json"
TEXT_TYPE = "text/plain; charset=utf-8"
TURTLE_TYPE = "text/turtle; charset=utf-8"
LISTING_ACCEPT = "text/turtle, application/ld+json;q=0.9"

CONTAINER_TURTLE = (
    "@prefix ldp: <http://www.w3.org/ns/ldp#>.\n"
    "<> a ldp:BasicContainer, ldp:Container ."
)


def _error_for(method: str, url: str, response: httpx.Response) -> PodRequestError:
    try:
        body = response.text
    except (UnicodeDecodeError, httpx.ResponseNotRead):
        body = ""
    if response.status_code == 403:
        return ForbiddenError(method, url, body)
    return PodRequestError(method, url, response.status_code, body)


class ResourceClient:
    """GET/PUT helpers bound to one authenticated session.

    Nothing is cached; every read is a fresh round trip to the pod.
    """

    def __init__(self, session: PodSession):
        """Initialize the client.

        Args:
            session: Authenticated session requests are issued through
        """
        self.session = session

    async def fetch(
        self, url: str, method: str = "GET", accept: Optional[str] = None
    ) -> httpx.Response:
        """Raw request for callers that interpret the status themselves."""
        headers = {"Accept": accept} if accept else None
        return await self.session.fetch(method, url, headers=headers)

    async def get_json(self, url: str) -> Optional[Any]:
        """Read a JSON resource.

        Returns:
            The decoded body, or None if the resource does not exist

        Raises:
            ForbiddenError: On 403
            PodRequestError: On any other non-2xx status
            ValueError: If the body is not valid JSON
        """
        response = await self.fetch(url, accept=JSON_TYPE)
        if response.status_code == 404:
            return None
        if not response.is_success:
            raise _error_for("GET", url, response)
        return json.loads(response.text)

    async def get_text(self, url: str) -> Optional[str]:
        """Read a text resource, or None if it does not exist."""
        response = await self.fetch(url)
        if response.status_code == 404:
            return None
        if not response.is_success:
            raise _error_for("GET", url, response)
        return response.text

    async def put_json(self, url: str, body: Any) -> None:
        """Replace a resource with a JSON document."""
        response = await self.session.fetch(
            "PUT",
            url,
            headers={"Content-Type": JSON_TYPE},
            content=json.dumps(body, indent=2, ensure_ascii=False),
        )
        if not response.is_success:
            raise _error_for("PUT", url, response)

    async def put_text(self, url: str, text: str) -> None:
        """Replace a resource with plain text."""
        response = await self.session.fetch(
            "PUT", url, headers={"Content-Type": TEXT_TYPE}, content=text
        )
        if not response.is_success:
            raise _error_for("PUT", url, response)

    async def put_turtle(self, url: str, turtle: str) -> None:
        """Replace a resource with a Turtle document."""
        response = await self.session.fetch(
            "PUT", url, headers={"Content-Type": TURTLE_TYPE}, content=turtle
        )
        if not response.is_success:
            raise _error_for("PUT", url, response)

    async def ensure_container(self, url: str) -> None:
        """Create a container unless it already exists.

        Safe to call concurrently: a 412 from a racing creator is success.
        """
        response = await self.fetch(url)
        if response.is_success:
            return
        if response.status_code != 404:
            raise _error_for("GET", url, response)

        created = await self.session.fetch(
            "PUT", url, headers={"Content-Type": TURTLE_TYPE}, content=CONTAINER_TURTLE
        )
        if not created.is_success and created.status_code != 412:
            raise _error_for("PUT", url, created)
        logger.info("container_created", url=url, status=created.status_code)

    async def list_container(self, url: str) -> List[str]:
        """Member URLs of a container, or an empty list if it does not exist."""
        response = await self.fetch(url, accept=LISTING_ACCEPT)
        if response.status_code == 404:
            return []
        if not response.is_success:
            raise _error_for("GET", url, response)
        content_type = response.headers.get("content-type", "")
        return parse_container_listing(response.text, content_type, url)
