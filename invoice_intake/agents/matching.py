import re
import logging
from typing import List, Optional

from invoice_intake.errors import MatchRankingParseError
from invoice_intake.models.invoice import ExtractedFields
from invoice_intake.models.issue import Issue
from invoice_intake.tools.groq_llm import GroqLLMTool

logger = logging.getLogger(__name__)

RANKING_PROMPT_TEMPLATE = """Given this invoice description: "{description}"

Which of these issues is the best match? Respond with ONLY the issue ID number (1, 2, 3, etc.) or "none" if no good match.

{candidates}"""

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def _same(a: Optional[str], b: Optional[str]) -> bool:
    if a is None or b is None:
        return False
    return a.lower() == b.lower()


def filter_candidates(building: str, unit: str, issues: List[Issue]) -> List[Issue]:
    """Issues at exactly this building and unit, ignoring case. Keeps fetch order."""
    return [i for i in issues if _same(i.building, building) and _same(i.unit, unit)]


def parse_ranking_reply(reply: str, candidate_count: int) -> int:
    """Return the 0-based candidate index named by the reply, or raise MatchRankingParseError."""
    match = _LEADING_INT.match(reply or "")
    if not match:
        raise MatchRankingParseError(f"Ranking reply is not an index: {reply!r}")
    index = int(match.group(1))
    if not 1 <= index <= candidate_count:
        raise MatchRankingParseError(f"Ranking index {index} outside 1..{candidate_count}")
    return index - 1


class IssueMatcher:
    """
    Links an invoice to an existing maintenance issue.

    Building and unit must match exactly; the description is only used to
    break ties between several issues at the same unit.
    """

    def __init__(self, llm: GroqLLMTool):
        self.llm = llm

    async def match(self, fields: ExtractedFields, issues: List[Issue]) -> Optional[str]:
        if not fields.building or not fields.unit:
            return None

        candidates = filter_candidates(fields.building, fields.unit, issues)
        if len(candidates) == 1:
            return candidates[0].id
        if not candidates:
            logger.info(f"No issue at {fields.building} / {fields.unit}")
            return None
        if not fields.description:
            logger.info(f"{len(candidates)} issues at {fields.building} / {fields.unit} and no description to rank by")
            return None

        return await self._rank(fields.description, candidates)

    async def _rank(self, description: str, candidates: List[Issue]) -> Optional[str]:
        prompt = RANKING_PROMPT_TEMPLATE.format(
            description=description,
            candidates="\n".join(f"{i + 1}. {c.description}" for i, c in enumerate(candidates))
        )
        reply = await self.llm.complete(prompt, max_tokens=10)
        try:
            index = parse_ranking_reply(reply, len(candidates))
        except MatchRankingParseError as e:
            logger.info(f"No issue selected by ranking: {e}")
            return None
        return candidates[index].id
