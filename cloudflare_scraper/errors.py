"""Exception hierarchy for the Cloudflare challenge transport.

Every stage of the challenge pipeline raises its own exception type so callers
can tell a page-format change apart from a network failure.
"""

from typing import Optional


class ScraperError(Exception):
    """Base exception for all cloudflare_scraper errors."""
    pass


class ConfigurationError(ScraperError):
    """Raised when a configuration value is missing or invalid."""
    pass


class TransportError(ScraperError):
    """Raised when the underlying request executor fails."""
    pass


class RequestTimeout(TransportError):
    """Raised when a call exceeds its timeout."""
    pass


class ChallengeError(ScraperError):
    """Base exception for failures while solving a challenge.

    Carries the transport stage that failed and the URL being challenged.
    """

    def __init__(self, message: str, stage: Optional[str] = None, url: Optional[str] = None):
        super().__init__(message)
        self.stage = stage
        self.url = url

    def __str__(self) -> str:
        message = super().__str__()
        if self.stage and self.url:
            return f"{message} (stage={self.stage}, url={self.url})"
        if self.stage:
            return f"{message} (stage={self.stage})"
        return message


class ExtractionError(ChallengeError):
    """Raised when the challenge page does not match the known patterns."""
    pass


class EvaluationError(ChallengeError):
    """Raised when the extracted script fails to evaluate to an integer."""
    pass


class ResubmissionError(ChallengeError):
    """Raised when the answer request fails at the transport level."""
    pass


__all__ = [
    "ScraperError",
    "ConfigurationError",
    "TransportError",
    "RequestTimeout",
    "ChallengeError",
    "ExtractionError",
    "EvaluationError",
    "ResubmissionError",
]
