"""Construction of the answer parameters for the chk_jschl endpoint."""

from dataclasses import dataclass
from typing import Dict

from .extractor import ExtractedChallenge


def compute_answer(value: int, host: str) -> int:
    """Final answer: the script result plus the length of the request host.

    The page script adds ``t.length`` where t is the host the page was
    served from, and the server checks the same sum.
    """
    return value + len(host)


@dataclass(frozen=True)
class AnswerBuilder:
    """Builds the ordered query parameters for the answer request."""

    def build(self, value: int, host: str, challenge: ExtractedChallenge) -> Dict[str, str]:
        params: Dict[str, str] = {}
        if challenge.jschl_vc is not None:
            params["jschl_vc"] = challenge.jschl_vc
        if challenge.pass_value is not None:
            params["pass"] = challenge.pass_value
        params["jschl_answer"] = str(compute_answer(value, host))
        return params


def build_answer_params(value: int, host: str, challenge: ExtractedChallenge) -> Dict[str, str]:
    return AnswerBuilder().build(value, host, challenge)
