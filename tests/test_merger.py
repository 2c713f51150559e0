from __future__ import annotations

from devops_agent.review.merger import merge_findings
from devops_agent.review.merger import sort_findings
from devops_agent.review.models import Finding
from devops_agent.review.models import kind_for_severity


def _finding(line: int, message: str, severity: str = "medium", file: str = "a.js", category: str = "X") -> Finding:
    return Finding(
        kind=kind_for_severity(severity),  # type: ignore[arg-type]
        severity=severity,  # type: ignore[arg-type]
        category=category,
        message=message,
        file=file,
        line=line,
    )


def test_local_scanner_wins_on_duplicate_key() -> None:
    local = [_finding(5, "M1", severity="low")]
    service = [_finding(5, "M1", severity="critical"), _finding(2, "M2", severity="high")]

    merged = merge_findings(primary=local, secondary=service)

    assert [(f.line, f.message, f.severity) for f in merged] == [(2, "M2", "high"), (5, "M1", "low")]


def test_merge_with_itself_is_identity_for_merged_input() -> None:
    a = merge_findings(
        primary=[_finding(3, "x", "low"), _finding(1, "y", "critical"), _finding(9, "z", "critical")],
        secondary=[],
    )
    assert merge_findings(primary=a, secondary=a) == a


def test_merge_output_has_unique_keys() -> None:
    primary = [_finding(1, "a"), _finding(2, "b")]
    secondary = [_finding(1, "a"), _finding(2, "b", file="b.js"), _finding(2, "b", file="b.js"), _finding(3, "c")]

    merged = merge_findings(primary=primary, secondary=secondary)

    keys = [f.dedup_key() for f in merged]
    assert len(keys) == len(set(keys)) == 4


def test_first_occurrence_within_secondary_wins() -> None:
    secondary = [_finding(4, "dup", category="first"), _finding(4, "dup", category="second")]
    merged = merge_findings(primary=[], secondary=secondary)
    assert [f.category for f in merged] == ["first"]


def test_ordering_is_stable_for_equal_severity_and_line() -> None:
    findings = [
        _finding(7, "second", "high", file="b.js"),
        _finding(7, "first", "high", file="a.js"),
        _finding(1, "top", "critical"),
        _finding(2, "low one", "low"),
    ]
    assert [f.message for f in sort_findings(findings)] == ["top", "second", "first", "low one"]
