"""Unit tests for evaluation parsing and JSON extraction."""
import json

import pytest

from app.services.evaluation_parser import (
    DEFAULT_REASONING,
    MISSING_REASONING,
    default_evaluation,
    extract_json_object,
    parse_evaluation,
)
from app.services.exceptions import UpstreamParseError

PAYLOAD = {
    "decision": "approved",
    "reasoning": "Shared love of climbing.",
    "rubric": {
        "engagement": 8,
        "depth": 7,
        "authenticity": 9,
        "respectfulness": 10,
        "compatibility": 7,
        "overall": 8,
    },
}


class TestExtractJsonObject:
    def test_plain_json(self):
        assert extract_json_object(json.dumps(PAYLOAD)) == PAYLOAD

    def test_fenced_json_matches_unwrapped(self):
        fenced = f"```json\n{json.dumps(PAYLOAD)}\n```"
        assert extract_json_object(fenced) == extract_json_object(json.dumps(PAYLOAD))

    def test_surrounding_prose(self):
        text = f"Here is my evaluation: {json.dumps(PAYLOAD)} Hope that helps!"
        assert extract_json_object(text)["decision"] == "approved"

    def test_trailing_comma_is_repaired(self):
        text = '{"decision": "rejected", "reasoning": "Too brief",}'
        assert extract_json_object(text)["decision"] == "rejected"

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_input_raises(self, text):
        with pytest.raises(UpstreamParseError):
            extract_json_object(text)

    def test_json_array_is_not_an_object(self):
        with pytest.raises(UpstreamParseError):
            extract_json_object("[1, 2, 3]")


class TestParseEvaluation:
    def test_valid_payload(self):
        evaluation = parse_evaluation(json.dumps(PAYLOAD))
        assert evaluation.approved
        assert evaluation.parsed
        assert evaluation.reasoning == "Shared love of climbing."
        assert evaluation.rubric["respectfulness"] == 10.0

    def test_garbage_falls_back_to_default(self):
        evaluation = parse_evaluation("I cannot evaluate this conversation.")
        assert evaluation.decision == "rejected"
        assert evaluation.reasoning == DEFAULT_REASONING
        assert not evaluation.parsed
        assert set(evaluation.rubric.values()) == {5.0}

    def test_decision_is_passed_through(self):
        # The model approved despite low compatibility; the decision is not recomputed
        payload = dict(PAYLOAD, rubric=dict(PAYLOAD["rubric"], overall=9, compatibility=4))
        evaluation = parse_evaluation(json.dumps(payload))
        assert evaluation.decision == "approved"
        assert evaluation.rubric["compatibility"] == 4.0

    def test_unknown_decision_becomes_rejected(self):
        evaluation = parse_evaluation(json.dumps(dict(PAYLOAD, decision="maybe")))
        assert evaluation.decision == "rejected"
        assert evaluation.parsed

    def test_decision_case_is_normalised(self):
        assert parse_evaluation(json.dumps(dict(PAYLOAD, decision=" Approved "))).approved

    def test_scores_are_clamped(self):
        rubric = dict(PAYLOAD["rubric"], engagement=14, depth=-3, overall="7.5")
        evaluation = parse_evaluation(json.dumps(dict(PAYLOAD, rubric=rubric)))
        assert evaluation.rubric["engagement"] == 10.0
        assert evaluation.rubric["depth"] == 1.0
        assert evaluation.rubric["overall"] == 7.5

    def test_missing_fields_use_neutral_values(self):
        evaluation = parse_evaluation('{"decision": "rejected"}')
        assert evaluation.reasoning == MISSING_REASONING
        assert evaluation.rubric["overall"] == 5.0

    def test_default_evaluation(self):
        evaluation = default_evaluation()
        assert not evaluation.approved
        assert evaluation.to_dict()["parsed"] is False
