"""
Unit tests for challenge detection.

A response is a challenge only for status 503 with an exact anti-bot
Server header; everything else passes through.
"""

import pytest

from cloudflare_scraper.challenge.detector import ChallengeDetector
from cloudflare_scraper.http.models import Headers, Request, Response


@pytest.fixture
def challenge_detector():
    """Create challenge detector instance for testing."""
    return ChallengeDetector()


def make_response(status, server=None):
    headers = Headers({"Server": server} if server is not None else None)
    return Response(status, headers, b"", Request("GET", "https://example.com/"))


class TestChallengeDetector:

    @pytest.mark.parametrize("server", ["cloudflare-nginx", "cloudflare"])
    def test_known_signatures(self, challenge_detector, server):
        assert challenge_detector.is_challenge_response(make_response(503, server))

    @pytest.mark.parametrize("status", [200, 403, 429, 500, 502, 504])
    def test_other_status_codes(self, challenge_detector, status):
        assert not challenge_detector.is_challenge_response(make_response(status, "cloudflare"))

    @pytest.mark.parametrize("server", ["nginx", "Cloudflare", "cloudflare ", "cloudflare-nginx/1.0", ""])
    def test_signature_must_match_exactly(self, challenge_detector, server):
        assert not challenge_detector.is_challenge_response(make_response(503, server))

    def test_missing_server_header(self, challenge_detector):
        assert not challenge_detector.is_challenge_response(make_response(503))

    def test_header_name_is_case_insensitive(self, challenge_detector):
        headers = Headers([("server", "cloudflare")])

        assert challenge_detector.is_challenge(503, headers)

    def test_plain_mapping(self, challenge_detector):
        assert challenge_detector.is_challenge(503, {"Server": "cloudflare-nginx"})

    def test_custom_signatures(self):
        detector = ChallengeDetector(["my-waf"])

        assert detector.is_challenge(503, {"Server": "my-waf"})
        assert not detector.is_challenge(503, {"Server": "cloudflare"})
