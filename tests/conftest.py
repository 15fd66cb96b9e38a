"""
Shared fixtures for cloudflare_scraper tests.

FakeExecutor stands in for the network: tests register canned responses per
(method, url) and inspect the requests the transport actually sent.
"""

import asyncio
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import pytest

from cloudflare_scraper.config import TransportConfig
from cloudflare_scraper.errors import TransportError
from cloudflare_scraper.http.client import RequestExecutor
from cloudflare_scraper.http.cookies import CookieJar
from cloudflare_scraper.http.models import Headers, Request, Response
from cloudflare_scraper.transport import ChallengeTransport


FIXTURES_DIR = Path(__file__).parent / "fixtures"

CHALLENGE_HEADERS = {
    "Server": "cloudflare-nginx",
    "Content-Type": "text/html; charset=UTF-8",
}

PASS_INPUT = '<input type="hidden" name="pass" value="1489420115.133-OTOh1C5gCZ"/>'


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: transport and client level tests")
    config.addinivalue_line("markers", "contract: public behaviour of the challenge transport")


class CannedResponse:
    """Response template, or an exception to raise, for one route."""

    def __init__(self, status: int = 200, headers=None,
                 body: Union[bytes, str] = b"", delay: float = 0.0,
                 error: Optional[Exception] = None):
        self.status = status
        self.headers = headers or {}
        self.body = body.encode("utf-8") if isinstance(body, str) else body
        self.delay = delay
        self.error = error


class FakeExecutor(RequestExecutor):
    """In-memory executor serving canned responses by (method, url).

    Several responses registered for one route are served in order; the
    last one keeps being served once the others are used up. Unknown routes
    get a 404.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[CannedResponse]] = {}
        self.requests: List[Request] = []
        self.closed = False

    def add(self, method: str, url: str, status: int = 200, headers=None,
            body: Union[bytes, str] = b"", delay: float = 0.0) -> "FakeExecutor":
        self.routes.setdefault((method, url), []).append(
            CannedResponse(status, headers, body, delay)
        )
        return self

    def fail(self, method: str, url: str, error: Exception) -> "FakeExecutor":
        self.routes.setdefault((method, url), []).append(CannedResponse(error=error))
        return self

    def add_challenge(self, url: str, body: str) -> "FakeExecutor":
        return self.add("GET", url, status=503, headers=CHALLENGE_HEADERS, body=body)

    def sent(self, method: str, url: str) -> List[Request]:
        return [r for r in self.requests if r.method == method and r.url == url]

    async def send(self, request: Request) -> Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url))
        if not queue:
            return Response(404, Headers(), b"not found", request)

        canned = queue.pop(0) if len(queue) > 1 else queue[0]
        if canned.delay:
            await asyncio.sleep(canned.delay)
        if canned.error is not None:
            raise canned.error
        return Response(canned.status, Headers(canned.headers), canned.body, request)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def challenge_html() -> str:
    """Cloudflare IUAM page for example.com whose script evaluates to 42."""
    return (FIXTURES_DIR / "challenge.html").read_text(encoding="utf-8")


@pytest.fixture
def challenge_html_without_pass(challenge_html) -> str:
    """The same page without the pass form field."""
    return challenge_html.replace(PASS_INPUT, "")


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def cookie_jar() -> CookieJar:
    return CookieJar()


@pytest.fixture
def fast_config() -> TransportConfig:
    """Transport configuration without the challenge delay."""
    return TransportConfig(challenge_delay=0)


@pytest.fixture
def transport(executor, cookie_jar, fast_config) -> ChallengeTransport:
    return ChallengeTransport(executor, cookie_jar=cookie_jar, config=fast_config)


@pytest.fixture
def network_error() -> TransportError:
    return TransportError("connection reset by peer")
