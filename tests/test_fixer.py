from __future__ import annotations

import json

import anyio

from devops_agent.review.fixer import SequentialFixEngine
from devops_agent.review.fixer import select_fixable
from devops_agent.review.models import Finding
from devops_agent.review.models import FixBatchOutcome
from devops_agent.review.models import kind_for_severity
from devops_agent.review.parser import ResilientResponseParser


def _finding(line: int, message: str, severity: str = "high") -> Finding:
    return Finding(
        kind=kind_for_severity(severity),  # type: ignore[arg-type]
        severity=severity,  # type: ignore[arg-type]
        category="Security",
        message=message,
        file="app.js",
        line=line,
    )


def _fix_reply(code: str, confidence: int) -> str:
    return "Here is the fix:\n" + json.dumps({"fixedCode": code, "explanation": "done", "confidence": confidence})


class ScriptedResponder:
    def __init__(self, replies: list[str | Exception]) -> None:
        self.replies = list(replies)
        self.prompts: list[str] = []

    async def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def _apply(engine: SequentialFixEngine, text: str, findings: list[Finding]) -> FixBatchOutcome:
    async def _run() -> FixBatchOutcome:
        return await engine.apply_fixes(text=text, path="app.js", findings=findings)

    return anyio.run(_run)


def _engine(responder: ScriptedResponder) -> SequentialFixEngine:
    return SequentialFixEngine(complete=responder, parser=ResilientResponseParser(on_diagnostic=lambda _: None))


def test_low_confidence_proposal_is_rejected() -> None:
    responder = ScriptedResponder([_fix_reply("patched", 65)])
    outcome = _apply(_engine(responder), "original", [_finding(1, "eval usage")])

    assert outcome.text == "original"
    assert (outcome.fixed, outcome.failed) == (0, 1)
    assert outcome.details == []


def test_threshold_is_strictly_greater_than_seventy() -> None:
    responder = ScriptedResponder([_fix_reply("patched", 70), _fix_reply("patched", 71)])
    outcome = _apply(_engine(responder), "original", [_finding(1, "a"), _finding(2, "b")])

    assert (outcome.fixed, outcome.failed) == (1, 1)
    assert outcome.text == "patched"


def test_accepted_fixes_are_threaded_in_order() -> None:
    responder = ScriptedResponder([_fix_reply("v1", 90), _fix_reply("v2-unrelated", 80)])
    outcome = _apply(_engine(responder), "v0", [_finding(1, "first"), _finding(2, "second")])

    assert outcome.text == "v2-unrelated"
    assert outcome.fixed == 2
    assert [d.confidence for d in outcome.details] == [90, 80]
    assert [d.finding for d in outcome.details] == ["first", "second"]
    assert "```\nv0\n```" in responder.prompts[0]
    assert "```\nv1\n```" in responder.prompts[1]


def test_request_failure_does_not_abort_batch() -> None:
    responder = ScriptedResponder([RuntimeError("rate limited"), _fix_reply("fixed", 95)])
    outcome = _apply(_engine(responder), "original", [_finding(1, "a"), _finding(2, "b")])

    assert (outcome.fixed, outcome.failed) == (1, 1)
    assert outcome.text == "fixed"
    assert len(outcome.details) == 1


def test_unparseable_reply_counts_as_failure() -> None:
    responder = ScriptedResponder(["I cannot fix this."])
    outcome = _apply(_engine(responder), "original", [_finding(1, "a")])
    assert (outcome.text, outcome.fixed, outcome.failed) == ("original", 0, 1)


def test_empty_finding_list_returns_original_text() -> None:
    responder = ScriptedResponder([])
    outcome = _apply(_engine(responder), "original", [])
    assert outcome.text == "original"
    assert (outcome.fixed, outcome.failed) == (0, 0)
    assert responder.prompts == []


def test_select_fixable_keeps_only_critical_and_high() -> None:
    findings = [_finding(1, "a", "critical"), _finding(2, "b", "medium"), _finding(3, "c", "high"), _finding(4, "d", "low")]
    assert [f.message for f in select_fixable(findings)] == ["a", "c"]


def test_empty_patched_text_never_erases_file() -> None:
    responder = ScriptedResponder([_fix_reply("", 95)])
    outcome = _apply(_engine(responder), "const a = 1;\n", [_finding(1, "a")])
    assert outcome.text == "const a = 1;\n"
