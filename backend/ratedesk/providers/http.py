from __future__ import annotations

import asyncio
import http.client
from typing import Awaitable, Callable
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ratedesk.errors import NetworkFailure


Fetch = Callable[[str, float], Awaitable[str]]


def fetch_text(url: str, timeout: float, user_agent: str | None = None) -> str:
    headers = {"Accept": "*/*"}
    if user_agent:
        headers["User-Agent"] = user_agent
    request = Request(url, headers=headers)
    try:
        with urlopen(request, timeout=timeout) as response:
            status = response.status
            body = response.read()
            charset = response.headers.get_content_charset() or "utf-8"
    except HTTPError as exc:
        raise NetworkFailure(url, f"HTTP {exc.code}", status_code=exc.code) from exc
    except URLError as exc:
        raise NetworkFailure(url, str(exc.reason)) from exc
    except (http.client.HTTPException, OSError, ValueError) as exc:
        raise NetworkFailure(url, str(exc) or exc.__class__.__name__) from exc

    if not 200 <= status < 300:
        raise NetworkFailure(url, f"HTTP {status}", status_code=status)
    try:
        return body.decode(charset, errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")


class HttpFetcher:
    """Async GET returning the decoded body; every transport problem is a ``NetworkFailure``."""

    def __init__(self, user_agent: str | None = None) -> None:
        self.user_agent = user_agent

    async def __call__(self, url: str, timeout: float) -> str:
        # urlopen's timeout is per socket operation; this bounds the whole request.
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(fetch_text, url, timeout, self.user_agent), timeout
            )
        except TimeoutError as exc:
            raise NetworkFailure(url, "timed out") from exc
