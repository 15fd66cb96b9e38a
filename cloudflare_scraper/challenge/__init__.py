"""Challenge handling: detection, extraction, evaluation and answer building.

Each stage sits behind its own class so the page patterns or the evaluator
can be replaced without touching the transport.
"""

from .detector import (
    ChallengeDetector,
    CHALLENGE_STATUS_CODE,
)

from .extractor import (
    ChallengePatterns,
    ChallengeExtractor,
    ExtractedChallenge,
    DEFAULT_PATTERNS,
)

from .evaluator import (
    ArithmeticEvaluator,
    evaluate,
    MAX_SCRIPT_LENGTH,
)

from .answer import (
    AnswerBuilder,
    build_answer_params,
    compute_answer,
)

__all__ = [
    "ChallengeDetector",
    "CHALLENGE_STATUS_CODE",
    "ChallengePatterns",
    "ChallengeExtractor",
    "ExtractedChallenge",
    "DEFAULT_PATTERNS",
    "ArithmeticEvaluator",
    "evaluate",
    "MAX_SCRIPT_LENGTH",
    "AnswerBuilder",
    "build_answer_params",
    "compute_answer",
]
