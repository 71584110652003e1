"""Thin aiohttp wrapper that reads the whole response body inside the request context."""
import json
from dataclasses import dataclass
from typing import Any

import aiohttp


@dataclass
class HttpResponse:
    """Status and raw body of a completed HTTP exchange."""

    status: int
    reason: str = ""
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """Parse the body; an empty body parses to an empty dict."""
        if not self.text.strip():
            return {}
        return json.loads(self.text)


async def send_request(
    session: aiohttp.ClientSession,
    method: str,
    url: str,
    **kwargs: Any,
) -> HttpResponse:
    """Issue one request and buffer the body.

    Raises:
        aiohttp.ClientError: On transport failures (no response).
        asyncio.TimeoutError: When the transport times out.
    """
    async with session.request(method, url, **kwargs) as response:
        text = await response.text()
        return HttpResponse(status=response.status, reason=response.reason or "", text=text)
