"""
CloudflareScraper - Simple client interface over ChallengeTransport

The transport performs one exchange per call, like a round tripper. The
scraper adds what a browser-like client does on top: default headers,
request bodies, and following redirects, where every hop goes through the
transport so a challenge on any hop is solved.

Example usage:
    import cloudflare_scraper as cfs

    async with cfs.create_scraper() as scraper:
        response = await scraper.get("https://example.com")
        print(response.text)
"""

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import urlencode

from .config import ExecutorConfig, TransportConfig
from .errors import RequestTimeout, TransportError
from .http.client import RequestExecutor, redirect_request
from .http.cookies import CookieJar
from .http.models import Headers, Request, Response
from .transport import ChallengeTransport, create_transport


logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Upgrade-Insecure-Requests": "1",
}

RequestBody = Union[bytes, str, Mapping[str, str], None]


class CloudflareScraper:
    """Async HTTP client that solves Cloudflare challenges transparently."""

    def __init__(self, transport: ChallengeTransport,
                 headers: Optional[Dict[str, str]] = None):
        self.transport = transport
        self.headers = Headers(DEFAULT_HEADERS if headers is None else headers)
        self._is_closed = False

    @property
    def cookies(self) -> CookieJar:
        return self.transport.cookie_jar

    async def get(self, url: str, **kwargs) -> Response:
        """Perform a GET request."""
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, data: RequestBody = None, **kwargs) -> Response:
        """Perform a POST request."""
        return await self.request("POST", url, data=data, **kwargs)

    async def request(self, method: str, url: str,
                      headers: Optional[Mapping[str, str]] = None,
                      data: RequestBody = None,
                      timeout: Optional[float] = None,
                      allow_redirects: bool = True) -> Response:
        """Perform an HTTP request with Cloudflare challenge solving.

        timeout (default ``TransportConfig.timeout``) bounds the whole call,
        redirect hops included. Expiry raises RequestTimeout.
        """
        if self._is_closed:
            raise RuntimeError("Scraper has been closed")

        request_headers = self.headers.copy()
        for name, value in (headers or {}).items():
            request_headers[name] = value

        if isinstance(data, Mapping):
            body = urlencode(data).encode("ascii")
            if "Content-Type" not in request_headers:
                request_headers["Content-Type"] = "application/x-www-form-urlencoded"
        elif isinstance(data, str):
            body = data.encode("utf-8")
        else:
            body = data

        request = Request(method, url, request_headers, body)
        if timeout is None:
            timeout = self.transport.config.timeout
        try:
            async with asyncio.timeout(timeout):
                return await self._send(request, timeout, allow_redirects)
        except TimeoutError as e:
            raise RequestTimeout(f"{method} {url} timed out after {timeout}s") from e

    async def _send(self, request: Request, timeout: Optional[float],
                    allow_redirects: bool) -> Response:
        response = await self.transport.execute(request, timeout=timeout)

        redirects = 0
        max_redirects = self.transport.config.max_redirects
        while allow_redirects and response.is_redirect:
            if redirects >= max_redirects:
                raise TransportError(f"Exceeded {max_redirects} redirects requesting {request.url}")
            redirects += 1
            follow = redirect_request(response)
            for name, value in self.headers.items():
                if name not in follow.headers:
                    follow.headers[name] = value
            logger.debug("Redirect %d: %s", redirects, follow.url)
            response = await self.transport.execute(follow, timeout=timeout)

        return response

    async def close(self) -> None:
        """Close the scraper and the executor under it."""
        if self._is_closed:
            return
        self._is_closed = True
        await self.transport.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __repr__(self) -> str:
        return f"<CloudflareScraper cookies={len(self.cookies)}>"


def create_scraper(config: Optional[TransportConfig] = None,
                   executor_config: Optional[ExecutorConfig] = None,
                   executor: Optional[RequestExecutor] = None,
                   cookie_jar: Optional[CookieJar] = None,
                   headers: Optional[Dict[str, str]] = None,
                   **kwargs: Any) -> CloudflareScraper:
    """
    Create a CloudflareScraper instance.

    Args:
        config: TransportConfig for challenge handling
        executor_config: ExecutorConfig for the default curl_cffi executor
        executor: Custom RequestExecutor; overrides executor_config
        cookie_jar: Jar to share with other scrapers
        headers: Default headers, replacing the browser-like defaults
        **kwargs: TransportConfig fields, used when config is not given

    Example:
        >>> scraper = create_scraper(challenge_delay=5.0)
        >>> response = await scraper.get("https://example.com")
    """
    if config is None:
        config = TransportConfig(**kwargs)
    elif kwargs:
        raise TypeError("Pass either config or TransportConfig keyword arguments, not both")

    transport = create_transport(executor, config, executor_config, cookie_jar)
    return CloudflareScraper(transport, headers=headers)
