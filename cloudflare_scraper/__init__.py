"""Transparent Cloudflare JavaScript challenge solving for asyncio HTTP clients.

ChallengeTransport wraps any request executor. When a response is a
Cloudflare "I'm Under Attack" challenge it evaluates the page's arithmetic
in a restricted evaluator, submits the answer and hands back the origin's
response as if no challenge had been served.

Key Features:
- Pluggable request executor (curl_cffi with browser TLS impersonation by default)
- Sandboxed arithmetic evaluator, no JavaScript engine required
- Thread-safe cookie jar shared by the initial and answer requests
- Per-call timeouts and asyncio-friendly challenge delay
"""

# Simple scraper interface - PRIMARY INTERFACE
from .scraper import (
    CloudflareScraper,
    create_scraper,
)

from .transport import (
    ChallengeTransport,
    ChallengeAttempt,
    TransportState,
    create_transport,
)

from .config import (
    TransportConfig,
    ExecutorConfig,
    load_config,
    config_from_dict,
    DEFAULT_USER_AGENT,
    CHALLENGE_SERVER_SIGNATURES,
    CHALLENGE_PATH,
)

from .errors import (
    ScraperError,
    ConfigurationError,
    TransportError,
    RequestTimeout,
    ChallengeError,
    ExtractionError,
    EvaluationError,
    ResubmissionError,
)

from .http import (
    Headers,
    Request,
    Response,
    RequestExecutor,
    CurlCffiExecutor,
    Cookie,
    CookieJar,
)

from .challenge import (
    ChallengeDetector,
    ChallengeExtractor,
    ChallengePatterns,
    ExtractedChallenge,
    ArithmeticEvaluator,
    AnswerBuilder,
    build_answer_params,
)

# Version information
__version__ = "1.0.0"
__author__ = "cloudflare-scraper contributors"
__license__ = "MIT"

# Module metadata
__title__ = "cloudflare-scraper"
__description__ = "Transparent Cloudflare JavaScript challenge solving for asyncio HTTP clients"

__all__ = [
    # Primary interface
    "CloudflareScraper",
    "create_scraper",
    "ChallengeTransport",
    "ChallengeAttempt",
    "TransportState",
    "create_transport",

    # Configuration
    "TransportConfig",
    "ExecutorConfig",
    "load_config",
    "config_from_dict",
    "DEFAULT_USER_AGENT",
    "CHALLENGE_SERVER_SIGNATURES",
    "CHALLENGE_PATH",

    # Errors
    "ScraperError",
    "ConfigurationError",
    "TransportError",
    "RequestTimeout",
    "ChallengeError",
    "ExtractionError",
    "EvaluationError",
    "ResubmissionError",

    # HTTP layer
    "Headers",
    "Request",
    "Response",
    "RequestExecutor",
    "CurlCffiExecutor",
    "Cookie",
    "CookieJar",

    # Challenge stages
    "ChallengeDetector",
    "ChallengeExtractor",
    "ChallengePatterns",
    "ExtractedChallenge",
    "ArithmeticEvaluator",
    "AnswerBuilder",
    "build_answer_params",

    # Version info
    "__version__",
    "__author__",
    "__license__",
    "__title__",
    "__description__",
]


# Module initialization
def _initialize_logging():
    """Initialize default logging configuration."""
    import logging

    logger = logging.getLogger(__name__)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)


# Initialize on import
_initialize_logging()
