"""Cloudflare challenge detection.

A response is a JavaScript challenge only when it is a 503 served by one of
the known anti-bot Server signatures. Any other response, whatever its
status code, passes through untouched.
"""

from typing import FrozenSet, Iterable, Mapping, Optional

from ..config import CHALLENGE_SERVER_SIGNATURES
from ..http.models import Response


CHALLENGE_STATUS_CODE = 503


class ChallengeDetector:
    """Classifies executor responses as challenge or pass-through."""

    def __init__(self, server_signatures: Optional[Iterable[str]] = None):
        self.server_signatures: FrozenSet[str] = frozenset(
            server_signatures if server_signatures is not None else CHALLENGE_SERVER_SIGNATURES
        )

    def is_challenge(self, status_code: int, headers: Mapping[str, str]) -> bool:
        """Check status and Server header against the challenge signature."""
        if status_code != CHALLENGE_STATUS_CODE:
            return False
        return headers.get("Server") in self.server_signatures

    def is_challenge_response(self, response: Response) -> bool:
        return self.is_challenge(response.status_code, response.headers)
