"""Response parser tests: sanitizing, reason codes, lenient optional fields."""

import os
import sys

# Ensure the backend package is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import json

import pytest

from competitive_intel.services.payload_parser import (
    ParsedMemo,
    ParseFailure,
    parse_memo_payload,
    sanitize_json,
    validate_required_keys,
)

VALID = {
    "categoryLabel": "DeFi - Lending",
    "crowdednessLevel": "high",
    "shortLandscapeSummary": "Lending on Solana is dominated by two protocols.",
    "referenceProjects": [
        {
            "name": "Kamino",
            "chainOrPlatform": "Solana",
            "note": "Largest lending market",
            "metrics": {"tvl": "$2.1B", "marketCap": "N/A"},
        }
    ],
    "tractionDifficulty": {"label": "high", "explanation": "Incumbents own liquidity."},
    "differentiationWindow": {"label": "narrow", "explanation": "Rates are commoditised."},
    "noiseVsSignal": "mixed",
    "evaluatorNotes": "Needs a distinct mechanism.",
    "claims": [{"text": "Kamino leads", "claimType": "fact", "evidenceIds": ["tvl_1"]}],
    "protocol": {"bucket": "Lending", "categoryKings": ["Kamino", "Marginfi"]},
    "timestamp": "2026-01-01T00:00:00+00:00",
}


class TestSanitizeJson:
    def test_strips_code_fences(self):
        assert sanitize_json('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_strips_surrounding_prose(self):
        assert sanitize_json('Here you go: {"a": {"b": 2}} hope it helps') == '{"a": {"b": 2}}'

    def test_strips_bom(self):
        assert sanitize_json("\ufeff" + '{"a": 1}') == '{"a": 1}'

    def test_no_object(self):
        with pytest.raises(ValueError):
            sanitize_json("no json here")

    def test_validate_required_keys(self):
        missing = validate_required_keys(
            {"categoryLabel": " ", "crowdednessLevel": "high"},
            ["categoryLabel", "crowdednessLevel", "referenceProjects"],
        )
        assert missing == ["categoryLabel", "referenceProjects"]


class TestReasonCodes:
    @pytest.mark.parametrize("raw", [None, "", "   \n "])
    def test_empty_response(self, raw):
        assert parse_memo_payload(raw) == ParseFailure("empty_llm_response")

    @pytest.mark.parametrize(
        "raw",
        [
            "I cannot help with that.",
            "{'categoryLabel': 'single quotes'}",
            '{"categoryLabel": "truncated", "crowdednessLevel": ',
            "[1, 2, 3]",
        ],
    )
    def test_unparsable(self, raw):
        assert parse_memo_payload(raw) == ParseFailure("invalid_llm_payload")

    def test_missing_required_key(self):
        payload = dict(VALID)
        del payload["crowdednessLevel"]
        assert parse_memo_payload(json.dumps(payload)) == ParseFailure("invalid_schema_returned")

    def test_reference_projects_must_be_a_list(self):
        payload = dict(VALID, referenceProjects={"name": "Kamino"})
        assert parse_memo_payload(json.dumps(payload)) == ParseFailure("invalid_schema_returned")

    @pytest.mark.parametrize("key", ["categoryLabel", "crowdednessLevel"])
    @pytest.mark.parametrize("value", [False, 0, {}, [], "  "])
    def test_labels_must_be_non_blank_strings(self, key, value):
        payload = dict(VALID, **{key: value})
        assert parse_memo_payload(json.dumps(payload)) == ParseFailure("invalid_schema_returned")

    def test_deeply_nested_payload(self):
        raw = json.dumps(VALID)[:-1] + ', "n": ' + "[" * 100000 + "]" * 100000 + "}"
        assert parse_memo_payload(raw) == ParseFailure("invalid_llm_payload")


class TestParsedMemo:
    def test_valid_payload(self):
        result = parse_memo_payload(json.dumps(VALID))
        assert isinstance(result, ParsedMemo)
        memo = result.memo
        assert memo.category_label == "DeFi - Lending"
        assert memo.crowdedness_level == "high"
        assert memo.traction_difficulty.label == "high"
        assert memo.differentiation_window.explanation == "Rates are commoditised."
        assert memo.protocol.category_kings == ["Kamino", "Marginfi"]
        assert memo.narrative is None
        assert result.raw_claims == VALID["claims"]

    def test_fenced_payload(self):
        result = parse_memo_payload("```json\n" + json.dumps(VALID) + "\n```")
        assert isinstance(result, ParsedMemo)

    def test_claims_are_not_normalized_here(self):
        result = parse_memo_payload(json.dumps(VALID))
        assert result.memo.claims == []

    def test_reference_project_fields(self):
        project = parse_memo_payload(json.dumps(VALID)).memo.reference_projects[0]
        assert project.name == "Kamino"
        assert project.platform == "Solana"
        assert project.metrics.tvl == "$2.1B"
        assert project.has_real_metric()

    def test_malformed_projects_are_skipped(self):
        payload = dict(VALID, referenceProjects=["Kamino", {"note": "no name"}, {"name": "Drift"}])
        memo = parse_memo_payload(json.dumps(payload)).memo
        assert [p.name for p in memo.reference_projects] == ["Drift"]
        assert memo.reference_projects[0].metrics is None

    def test_optional_fields_are_coerced(self):
        payload = dict(
            VALID,
            shortLandscapeSummary=["not", "a", "string"],
            tractionDifficulty="extreme",
            claims="not a list",
        )
        result = parse_memo_payload(json.dumps(payload))
        assert result.memo.short_landscape_summary == ""
        assert result.memo.traction_difficulty.label == "extreme"
        assert result.raw_claims == []

    def test_legacy_section_names(self):
        payload = dict(VALID)
        del payload["protocol"]
        payload["memecoin"] = {"narrativeLabel": "Dog Coin", "narrativeCrowdedness": "high"}
        memo = parse_memo_payload(json.dumps(payload)).memo
        assert memo.narrative.narrative_label == "Dog Coin"
        assert memo.protocol is None
