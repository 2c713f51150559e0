from __future__ import annotations

import json

from devops_agent.review.parser import ResilientResponseParser
from devops_agent.review.parser import balance_brackets
from devops_agent.review.parser import extract_json_span


def test_extract_json_span_strips_surrounding_prose() -> None:
    text = 'Sure! Here you go:\n```json\n{"a": {"b": 1}}\n```\nHope it helps.'
    assert extract_json_span(text) == '{"a": {"b": 1}}'


def test_extract_json_span_none_without_braces() -> None:
    assert extract_json_span("no structured data here") is None
    assert extract_json_span("} backwards {") is None


def test_balance_brackets_closes_arrays_before_objects() -> None:
    repaired = balance_brackets('{"a": [1, 2,')
    assert repaired == '{"a": [1, 2]}'
    assert json.loads(repaired) == {"a": [1, 2]}


def test_parse_analysis_chunk_valid_reply_matches_strict_parse() -> None:
    payload = {
        "issues": [
            {"line": 4, "severity": "critical", "category": "Security", "message": "SQL injection"},
            {"line": 10, "severity": "medium", "category": "Quality", "message": "Long function", "autoFixable": True},
        ],
        "hasMore": True,
        "summary": "",
        "suggestions": ["add tests"],
        "architecturalInsights": [],
    }
    reply = f"Analysis below.\n```json\n{json.dumps(payload)}\n```"

    result = ResilientResponseParser(on_diagnostic=lambda _: None).parse_analysis_chunk(text=reply, path="a.js")

    assert [(f.line, f.severity, f.message) for f in result.findings] == [
        (4, "critical", "SQL injection"),
        (10, "medium", "Long function"),
    ]
    assert [f.kind for f in result.findings] == ["error", "warning"]
    assert all(f.file == "a.js" for f in result.findings)
    assert result.findings[1].auto_fixable is True
    assert result.suggestions == ["add tests"]
    assert result.complete is False


def test_parse_analysis_chunk_repairs_truncated_reply() -> None:
    diagnostics: list[str] = []
    reply = (
        '{"hasMore": false, "issues": ['
        '{"line": 3, "severity": "high", "category": "Security", "message": "Hardcoded key"}, '
        '{"line": 9, "sever'
    )

    result = ResilientResponseParser(on_diagnostic=diagnostics.append).parse_analysis_chunk(text=reply, path="b.ts")

    assert len(result.findings) == 1
    assert result.findings[0].line == 3
    assert result.findings[0].message == "Hardcoded key"
    assert result.complete is True
    assert diagnostics


def test_parse_analysis_chunk_without_json_is_empty_and_final() -> None:
    diagnostics: list[str] = []
    result = ResilientResponseParser(on_diagnostic=diagnostics.append).parse_analysis_chunk(
        text="I could not analyze this file.", path="c.js"
    )
    assert result.findings == []
    assert result.summary == ""
    assert result.complete is True
    assert diagnostics == ["No JSON object found in service reply"]


def test_parse_analysis_chunk_unrecoverable_reply_returns_default() -> None:
    diagnostics: list[str] = []
    reply = '{"issues": [{"line": 1, "message": "unterminated}'
    result = ResilientResponseParser(on_diagnostic=diagnostics.append).parse_analysis_chunk(text=reply, path="d.js")
    assert result.findings == []
    assert any("repair failed" in d for d in diagnostics)


def test_parse_analysis_chunk_normalizes_and_skips_bad_entries() -> None:
    payload = {
        "issues": [
            {"severity": "HIGH", "category": "Bug", "message": "no line given"},
            {"line": "approx 7", "severity": "low", "message": "bad line"},
            {"line": 2, "severity": "urgent", "message": "unknown severity"},
            {"line": 5, "severity": "medium"},
            "not an object",
        ]
    }
    diagnostics: list[str] = []
    result = ResilientResponseParser(on_diagnostic=diagnostics.append).parse_analysis_chunk(
        text=json.dumps(payload), path="e.js"
    )

    assert [(f.line, f.severity, f.kind) for f in result.findings] == [
        (1, "high", "error"),
        (1, "low", "warning"),
    ]
    assert result.findings[0].category == "Bug"
    assert result.findings[1].category == "General"
    assert len(diagnostics) == 3


def test_parse_fix_proposal_defaults_to_zero_confidence_noop() -> None:
    parser = ResilientResponseParser(on_diagnostic=lambda _: None)

    missing = parser.parse_fix_proposal(text='{"explanation": "changed things"}', original_text="orig")
    assert missing.patched_text == "orig"
    assert missing.confidence == 0

    garbage = parser.parse_fix_proposal(text="sorry, no fix", original_text="orig")
    assert garbage.patched_text == "orig"
    assert garbage.confidence == 0
    assert garbage.explanation == "Failed to generate fix"


def test_parse_fix_proposal_coerces_confidence() -> None:
    parser = ResilientResponseParser(on_diagnostic=lambda _: None)
    as_string = parser.parse_fix_proposal(text='{"fixedCode": "new", "confidence": "85"}', original_text="old")
    assert as_string.patched_text == "new"
    assert as_string.confidence == 85
    assert as_string.original_text == "old"

    clamped = parser.parse_fix_proposal(text='{"fixedCode": "new", "confidence": 150}', original_text="old")
    assert clamped.confidence == 100


def test_parse_architecture_review() -> None:
    parser = ResilientResponseParser(on_diagnostic=lambda _: None)
    review = parser.parse_architecture_review(
        text='{"overallQuality": 82, "insights": ["layered"], "recommendations": [], "securityConcerns": ["secrets"]}'
    )
    assert review.overall_quality == 82
    assert review.insights == ["layered"]
    assert review.security_concerns == ["secrets"]

    empty = parser.parse_architecture_review(text="nothing")
    assert empty.overall_quality is None
    assert empty.insights == []


def test_custom_repair_strategy_is_used() -> None:
    calls: list[str] = []

    def repair(span: str) -> str:
        calls.append(span)
        return '{"issues": []}'

    parser = ResilientResponseParser(repair=repair, on_diagnostic=lambda _: None)
    result = parser.parse_analysis_chunk(text='{"issues": [oops]}', path="f.js")
    assert calls == ['{"issues": [oops]}']
    assert result.findings == []
    assert result.complete is True


def test_parse_fix_proposal_empty_fixed_code_keeps_original() -> None:
    parser = ResilientResponseParser(on_diagnostic=lambda _: None)
    proposal = parser.parse_fix_proposal(
        text='{"fixedCode": "", "explanation": "removed", "confidence": 95}', original_text="const a = 1;\n"
    )
    assert proposal.patched_text == "const a = 1;\n"


def test_parse_analysis_chunk_non_finite_line_defaults_to_one() -> None:
    parser = ResilientResponseParser(on_diagnostic=lambda _: None)
    for line in ("1e400", "Infinity", "NaN"):
        reply = '{"issues": [{"line": ' + line + ', "severity": "high", "message": "x"}]}'
        result = parser.parse_analysis_chunk(text=reply, path="e.js")
        assert [(f.line, f.message) for f in result.findings] == [(1, "x")]
