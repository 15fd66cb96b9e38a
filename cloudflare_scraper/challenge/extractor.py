"""Extraction of the challenge script and form tokens from a challenge page.

All page-format knowledge lives in ChallengePatterns, so a new page layout
means a new pattern set and nothing else. A layout the patterns do not
recognize is reported as ExtractionError.
"""

import re
from dataclasses import dataclass
from typing import Optional, Pattern

from ..errors import ExtractionError


@dataclass(frozen=True)
class ChallengePatterns:
    """Regular expressions describing one version of the challenge page."""

    jschl_vc: Pattern = re.compile(r'name="jschl_vc" value="(\w+)"')
    pass_field: Pattern = re.compile(r'name="pass" value="(.+?)"')

    # The setTimeout block from the "var s,t,o,p,b,r,e,a,k,i,n,g,f" declaration
    # up to and including the line assigning a.value
    script: Pattern = re.compile(
        r"setTimeout\(function\(\)\{\s+"
        r"(var s,t,o,p,b,r,e,a,k,i,n,g,f.+?\r?\n[\s\S]+?a\.value =.+?)\r?\n"
    )

    # a.value = parseInt(x, 10) + t.length; ... -> parseInt(x, 10)
    answer_assignment: Pattern = re.compile(r"a\.value = (parseInt\(.+?\)).+")

    # Indented DOM plumbing such as "t = document.createElement('div');"
    statement_line: Pattern = re.compile(r"\s{3,}[a-z](?: = |\.).+")

    # Characters that could break out of a string context
    unsafe_chars: Pattern = re.compile(r"[\n\\']")


DEFAULT_PATTERNS = ChallengePatterns()


@dataclass(frozen=True)
class ExtractedChallenge:
    """Normalized challenge script plus the optional form tokens."""
    script: str
    jschl_vc: Optional[str] = None
    pass_value: Optional[str] = None


class ChallengeExtractor:
    """Pulls the arithmetic script and form tokens out of challenge HTML."""

    def __init__(self, patterns: ChallengePatterns = DEFAULT_PATTERNS):
        self.patterns = patterns

    def extract(self, body: str) -> ExtractedChallenge:
        """Extract and normalize the challenge from a page body."""
        return ExtractedChallenge(
            script=self.extract_script(body),
            jschl_vc=self._search(self.patterns.jschl_vc, body),
            pass_value=self._search(self.patterns.pass_field, body),
        )

    def extract_script(self, body: str) -> str:
        match = self.patterns.script.search(body)
        if match is None:
            raise ExtractionError("No matching challenge javascript found")
        return self.normalize(match.group(1))

    def normalize(self, script: str) -> str:
        """Reduce the raw setTimeout block to an evaluable expression."""
        script = self.patterns.answer_assignment.sub(r"\1", script)
        script = self.patterns.statement_line.sub("", script)
        return self.patterns.unsafe_chars.sub("", script)

    @staticmethod
    def _search(pattern: Pattern, body: str) -> Optional[str]:
        match = pattern.search(body)
        return match.group(1) if match else None
