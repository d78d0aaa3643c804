"""
RizzedIn — End-of-conversation evaluation parsing.

The scoring model is asked for a JSON object of the form::

    {
      "decision": "approved" | "rejected",
      "reasoning": "...",
      "rubric": {"engagement": 1-10, "depth": 1-10, "authenticity": 1-10,
                 "respectfulness": 1-10, "compatibility": 1-10,
                 "overall": 1-10}
    }

Models routinely wrap that object in markdown fences or surround it with
prose, so extraction tries several strategies before giving up.  A failed
parse never propagates: the conversation must still terminate, so the
caller receives a conservative default (rejected, neutral rubric).

The decision string is passed through as supplied; the approval policy
lives in the prompt and is not recomputed here.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field

import structlog
from json_repair import repair_json

from app.models.user import RUBRIC_DIMENSIONS, RUBRIC_SEED_SCORE
from app.services.exceptions import UpstreamParseError

logger = structlog.get_logger(__name__)

VALID_DECISIONS: frozenset[str] = frozenset({"approved", "rejected"})
DEFAULT_DECISION = "rejected"
DEFAULT_REASONING = "Unable to evaluate"
MISSING_REASONING = "No reasoning provided"

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)


def neutral_rubric() -> dict[str, float]:
    return {dim: RUBRIC_SEED_SCORE for dim in RUBRIC_DIMENSIONS}


@dataclass
class Evaluation:
    decision: str
    reasoning: str
    rubric: dict[str, float] = field(default_factory=neutral_rubric)
    parsed: bool = True

    @property
    def approved(self) -> bool:
        return self.decision == "approved"

    def to_dict(self) -> dict:
        return {
            "decision": self.decision,
            "reasoning": self.reasoning,
            "rubric": dict(self.rubric),
            "parsed": self.parsed,
        }


def default_evaluation(reasoning: str = DEFAULT_REASONING) -> Evaluation:
    """Conservative outcome used whenever the model output is unusable."""
    return Evaluation(
        decision=DEFAULT_DECISION,
        reasoning=reasoning,
        rubric=neutral_rubric(),
        parsed=False,
    )


def extract_json_object(text: str | None) -> dict:
    """Pull a JSON object out of free-text model output.

    Pipeline:
    1. Direct ``json.loads`` on the stripped text
    2. Markdown code-fence extraction
    3. First ``{`` to last ``}`` substring
    4. ``json_repair`` on the whole text, then on the brace substring

    Raises
    ------
    UpstreamParseError
        If no strategy yields a JSON object.
    """
    if not text or not text.strip():
        raise UpstreamParseError("Empty response text, cannot parse JSON")

    cleaned = text.strip()

    candidates: list[str] = [cleaned]

    fence_match = _FENCE_PATTERN.search(cleaned)
    if fence_match:
        candidates.append(fence_match.group(1).strip())

    first_brace = cleaned.find("{")
    last_brace = cleaned.rfind("}")
    brace_candidate = None
    if first_brace >= 0 and last_brace > first_brace:
        brace_candidate = cleaned[first_brace : last_brace + 1]
        candidates.append(brace_candidate)

    for candidate in candidates:
        try:
            result = json.loads(candidate)
        except (json.JSONDecodeError, TypeError):
            continue
        if isinstance(result, dict):
            return result

    for candidate in (cleaned, brace_candidate):
        if candidate is None:
            continue
        try:
            result = json.loads(repair_json(candidate))
        except (json.JSONDecodeError, TypeError, Exception) as exc:
            logger.debug("json_repair_failed", error=str(exc))
            continue
        if isinstance(result, dict) and result:
            logger.info("json_parsed_via_json_repair", original_preview=cleaned[:80])
            return result

    raise UpstreamParseError(
        f"Failed to parse JSON from model response. Preview: {cleaned[:200]}"
    )


def _coerce_rubric(raw: object) -> dict[str, float]:
    rubric = neutral_rubric()
    if not isinstance(raw, dict):
        return rubric
    for dim in RUBRIC_DIMENSIONS:
        value = raw.get(dim)
        try:
            score = float(value)
        except (TypeError, ValueError):
            continue
        rubric[dim] = max(1.0, min(10.0, score))
    return rubric


def parse_evaluation(text: str | None) -> Evaluation:
    """Parse the scoring model's evaluation, falling back to the default."""
    try:
        payload = extract_json_object(text)
    except UpstreamParseError as exc:
        logger.warning("evaluation_parse_failed", error=str(exc))
        return default_evaluation()

    decision = str(payload.get("decision", "")).strip().lower()
    if decision not in VALID_DECISIONS:
        logger.warning("evaluation_decision_invalid", decision=payload.get("decision"))
        decision = DEFAULT_DECISION

    reasoning = str(payload.get("reasoning") or MISSING_REASONING).strip()
    rubric = _coerce_rubric(payload.get("rubric"))

    return Evaluation(decision=decision, reasoning=reasoning, rubric=rubric)
