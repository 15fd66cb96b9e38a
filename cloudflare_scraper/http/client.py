"""Request executors used by the challenge transport.

The transport talks to the network only through a RequestExecutor, so any
implementation (proxying, retries, TLS fingerprinting) can be plugged in.
CurlCffiExecutor is the default and uses curl_cffi for Chrome-accurate TLS.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import urljoin

from curl_cffi import CurlError
from curl_cffi.requests import AsyncSession

from ..config import ExecutorConfig
from ..errors import TransportError
from .models import Headers, Request, Response


logger = logging.getLogger(__name__)


class RequestExecutor(ABC):
    """
    Abstract base class for request executors.

    An executor performs exactly one HTTP exchange per call: it does not
    follow redirects and does not manage cookies. Network and TLS failures
    are raised as TransportError.
    """

    @abstractmethod
    async def send(self, request: Request) -> Response:
        """Perform the request and return the fully buffered response."""
        pass

    async def close(self) -> None:
        """Close executor and cleanup resources."""
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class CurlCffiExecutor(RequestExecutor):
    """
    Executor backed by a curl_cffi AsyncSession.

    Impersonates a browser TLS/HTTP2 fingerprint, which Cloudflare checks
    before it even serves a challenge.
    """

    def __init__(self, config: Optional[ExecutorConfig] = None):
        self.config = config or ExecutorConfig()
        self.config.validate()
        self._session: Optional[AsyncSession] = None
        self._closed = False

    def _get_session(self) -> AsyncSession:
        if self._session is None:
            session_kwargs = {
                "impersonate": self.config.impersonate,
                "verify": self.config.verify_ssl,
                "timeout": self.config.timeout,
            }
            if self.config.proxy_url:
                session_kwargs["proxies"] = {
                    "http": self.config.proxy_url,
                    "https": self.config.proxy_url,
                }
            self._session = AsyncSession(**session_kwargs)
        return self._session

    async def send(self, request: Request) -> Response:
        if self._closed:
            raise TransportError("Executor has been closed")

        session = self._get_session()
        logger.debug("%s %s", request.method, request.url)

        try:
            raw = await session.request(
                method=request.method,
                url=request.url,
                headers=request.headers.items_all(),
                data=request.body,
                allow_redirects=False,
            )
        except CurlError as e:
            raise TransportError(f"{request.method} {request.url} failed: {e}") from e
        finally:
            # Cookies are owned by the transport's jar
            session.cookies.clear()

        return Response(
            status_code=raw.status_code,
            headers=Headers(raw.headers.multi_items()),
            content=raw.content,
            request=request,
            url=str(raw.url),
        )

    async def close(self) -> None:
        if self._session is not None and not self._closed:
            await self._session.close()
        self._closed = True


def redirect_request(response: Response) -> Optional[Request]:
    """Build the follow-up request for a redirect response, or None.

    303 always becomes GET; 301/302 turn POST into GET as browsers do;
    307/308 keep the method and body.
    """
    if not response.is_redirect:
        return None

    previous = response.request
    location = urljoin(response.url, response.headers["Location"])

    method = previous.method
    body = previous.body
    if response.status_code == 303 or (response.status_code in (301, 302) and method == "POST"):
        if method != "HEAD":
            method = "GET"
        body = None

    headers = Headers()
    agent = previous.headers.get("User-Agent")
    if agent:
        headers["User-Agent"] = agent
    if "Referer" in previous.headers:
        headers["Referer"] = previous.headers["Referer"]
    if body is not None and "Content-Type" in previous.headers:
        headers["Content-Type"] = previous.headers["Content-Type"]

    return Request(method=method, url=location, headers=headers, body=body)
