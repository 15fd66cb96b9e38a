"""ChallengeTransport: transparent Cloudflare JavaScript challenge solving.

Wraps any RequestExecutor. Responses that are not a challenge are returned
exactly as the executor produced them. For a challenge the transport waits
the mandatory delay, extracts and evaluates the page's arithmetic, submits
the answer to /cdn-cgi/l/chk_jschl and returns that response instead.

State machine per call:

    IDLE -> DISPATCHED -> PASS_THROUGH
                       -> CHALLENGE_DETECTED -> EXTRACTING -> EVALUATING
                          -> BUILDING_ANSWER -> RESUBMITTING -> DONE

Any stage failure ends in FAILED and raises a ChallengeError subclass that
records the stage.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import urlencode, urljoin

from .challenge import (
    AnswerBuilder,
    ArithmeticEvaluator,
    ChallengeDetector,
    ChallengeExtractor,
)
from .config import CHALLENGE_PATH, ExecutorConfig, TransportConfig
from .errors import ChallengeError, RequestTimeout, ResubmissionError, TransportError
from .http.client import CurlCffiExecutor, RequestExecutor, redirect_request
from .http.cookies import CookieJar
from .http.models import Headers, Request, Response


class TransportState(Enum):
    """States of a single execute() call."""
    IDLE = "idle"
    DISPATCHED = "dispatched"
    PASS_THROUGH = "pass_through"
    CHALLENGE_DETECTED = "challenge_detected"
    EXTRACTING = "extracting"
    EVALUATING = "evaluating"
    BUILDING_ANSWER = "building_answer"
    RESUBMITTING = "resubmitting"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ChallengeAttempt:
    """Bookkeeping for one challenge being solved."""
    url: str
    state: TransportState = TransportState.CHALLENGE_DETECTED
    started: float = field(default_factory=time.monotonic)
    redirects: int = 0

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started


class ChallengeTransport(RequestExecutor):
    """
    Request executor that solves Cloudflare IUAM challenges in-line.

    The cookie jar is shared by every request this transport sends, so the
    clearance cookies issued while answering a challenge are presented on
    later requests to the same site. Pass a jar explicitly to share it
    between transports; by default each transport gets its own.
    """

    def __init__(self, executor: RequestExecutor,
                 cookie_jar: Optional[CookieJar] = None,
                 config: Optional[TransportConfig] = None,
                 detector: Optional[ChallengeDetector] = None,
                 extractor: Optional[ChallengeExtractor] = None,
                 evaluator: Optional[ArithmeticEvaluator] = None,
                 answer_builder: Optional[AnswerBuilder] = None):
        self.config = config or TransportConfig()
        self.config.validate()

        self.executor = executor
        self.cookie_jar = cookie_jar if cookie_jar is not None else CookieJar()
        self.detector = detector or ChallengeDetector(self.config.server_signatures)
        self.extractor = extractor or ChallengeExtractor()
        self.evaluator = evaluator or ArithmeticEvaluator()
        self.answer_builder = answer_builder or AnswerBuilder()

        self._stats = {
            "total_requests": 0,
            "challenges_detected": 0,
            "challenges_solved": 0,
            "challenges_failed": 0,
        }

        self.logger = logging.getLogger(__name__)
        if self.config.enable_detailed_logging:
            self.logger.setLevel(logging.DEBUG)

    async def send(self, request: Request) -> Response:
        return await self.execute(request)

    async def execute(self, request: Request, timeout: Optional[float] = None) -> Response:
        """
        Perform request, solving a Cloudflare challenge if one is served.

        Args:
            request: Request to perform. It is never mutated.
            timeout: Bound in seconds on the whole call, including the
                challenge delay and the answer request. Defaults to
                config.timeout; None means no bound.

        Returns:
            The origin's response, either direct or after the challenge.

        Raises:
            TransportError: the executor failed on the initial request.
            RequestTimeout: the call exceeded its timeout.
            ExtractionError, EvaluationError, ResubmissionError: the
                challenge could not be solved.
        """
        if timeout is None:
            timeout = self.config.timeout

        try:
            async with asyncio.timeout(timeout):
                return await self._execute(request)
        except TimeoutError as e:
            raise RequestTimeout(f"{request.method} {request.url} timed out after {timeout}s") from e

    async def _execute(self, request: Request) -> Response:
        self._stats["total_requests"] += 1

        prepared = request.copy()
        if "User-Agent" not in prepared.headers:
            prepared.headers["User-Agent"] = self.config.user_agent

        self.logger.debug("%s -> %s: %s %s", TransportState.IDLE.value,
                          TransportState.DISPATCHED.value, prepared.method, prepared.url)
        response = await self._send(prepared)

        if not self.detector.is_challenge_response(response):
            self.logger.debug("%s: %s %s [%d]", TransportState.PASS_THROUGH.value,
                              prepared.method, prepared.url, response.status_code)
            return response

        self._stats["challenges_detected"] += 1
        self.logger.info("Cloudflare challenge detected for %s", prepared.url)

        try:
            result = await self._solve(response)
        except ChallengeError:
            self._stats["challenges_failed"] += 1
            raise

        self._stats["challenges_solved"] += 1
        return result

    async def _send(self, request: Request) -> Response:
        response = await self.executor.send(self.cookie_jar.add_cookie_header(request))
        self.cookie_jar.extract_cookies(response)
        return response

    def _advance(self, attempt: ChallengeAttempt, state: TransportState) -> None:
        self.logger.debug("%s -> %s: %s", attempt.state.value, state.value, attempt.url)
        attempt.state = state

    async def _solve(self, challenge_response: Response) -> Response:
        original = challenge_response.request
        attempt = ChallengeAttempt(url=original.url)

        try:
            # Cloudflare rejects answers that arrive before its own timer fires
            await asyncio.sleep(self.config.challenge_delay)

            self._advance(attempt, TransportState.EXTRACTING)
            challenge = self.extractor.extract(challenge_response.text)

            self._advance(attempt, TransportState.EVALUATING)
            value = self.evaluator.evaluate(challenge.script)

            self._advance(attempt, TransportState.BUILDING_ANSWER)
            params = self.answer_builder.build(value, original.host, challenge)
            answer_request = self._build_answer_request(original, params)

            self._advance(attempt, TransportState.RESUBMITTING)
            response = await self._resubmit(answer_request, attempt)
        except ChallengeError as e:
            e.stage = e.stage or attempt.state.value
            e.url = e.url or attempt.url
            self._advance(attempt, TransportState.FAILED)
            self.logger.warning("Challenge for %s failed while %s: %s",
                                attempt.url, e.stage, e.args[0] if e.args else e)
            raise

        self._advance(attempt, TransportState.DONE)
        self.logger.info("Challenge for %s solved in %.2fs [%d]",
                         attempt.url, attempt.elapsed, response.status_code)
        return response

    def _build_answer_request(self, original: Request, params: Dict[str, str]) -> Request:
        url = f"{urljoin(original.url, CHALLENGE_PATH)}?{urlencode(params)}"
        headers = Headers()
        headers["User-Agent"] = original.headers.get("User-Agent", self.config.user_agent)
        headers["Referer"] = original.url
        return Request("GET", url, headers)

    async def _resubmit(self, request: Request, attempt: ChallengeAttempt) -> Response:
        response = await self._send_answer(request)

        while self.config.follow_redirects and response.is_redirect:
            if attempt.redirects >= self.config.max_redirects:
                raise ResubmissionError(
                    f"Stopped after {self.config.max_redirects} redirects"
                )
            attempt.redirects += 1
            request = redirect_request(response)
            self.logger.debug("Following redirect %d to %s", attempt.redirects, request.url)
            response = await self._send_answer(request)

        return response

    async def _send_answer(self, request: Request) -> Response:
        try:
            return await self._send(request)
        except TransportError as e:
            raise ResubmissionError(f"Answer request to {request.url} failed: {e}") from e

    def get_stats(self) -> Dict[str, Any]:
        """Get challenge handling statistics."""
        return dict(self._stats)

    def reset_stats(self) -> None:
        for key in self._stats:
            self._stats[key] = 0

    async def close(self) -> None:
        await self.executor.close()


def create_transport(executor: Optional[RequestExecutor] = None,
                     config: Optional[TransportConfig] = None,
                     executor_config: Optional[ExecutorConfig] = None,
                     cookie_jar: Optional[CookieJar] = None) -> ChallengeTransport:
    """Create a transport, defaulting to a curl_cffi executor."""
    if executor is None:
        executor = CurlCffiExecutor(executor_config)
    return ChallengeTransport(executor, cookie_jar=cookie_jar, config=config)
