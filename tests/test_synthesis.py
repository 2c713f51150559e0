from __future__ import annotations

import json
from datetime import datetime, timezone

from devops_agent.review.models import AIInsights
from devops_agent.review.models import ArchitectureReview
from devops_agent.review.models import Finding
from devops_agent.review.synthesis import build_report
from devops_agent.review.synthesis import render_json
from devops_agent.review.synthesis import render_markdown


def _findings() -> list[Finding]:
    return [
        Finding(
            kind="error",
            severity="critical",
            category="Security",
            message="eval is dangerous",
            file="/repo/src/a.js",
            line=2,
            snippet="eval(x)",
            suggested_fix="Use JSON.parse",
        ),
        Finding(
            kind="warning",
            severity="low",
            category="Code Quality",
            message="console.log left",
            file="/repo/src/b.js",
            line=9,
            auto_fixable=True,
        ),
    ]


def test_build_report_counts_by_severity() -> None:
    report = build_report(findings=_findings(), files_analyzed=3, now=datetime(2026, 1, 2, tzinfo=timezone.utc))
    assert report.summary.total_issues == 2
    assert (report.summary.critical, report.summary.high, report.summary.low) == (1, 0, 1)
    assert report.summary.auto_fixable == 1
    assert report.timestamp == "2026-01-02T00:00:00+00:00"


def test_render_markdown_groups_by_relative_file() -> None:
    insights = AIInsights(architectural_review=ArchitectureReview(overall_quality=80, insights=["layered"]))
    report = build_report(findings=_findings(), files_analyzed=2, ai_insights=insights)

    md = render_markdown(report=report, base_path="/repo")

    assert "### src/a.js" in md
    assert "- **Line 2** [CRITICAL] [Security]" in md
    assert "  - Code: `eval(x)`" in md
    assert "  - **Fix:** Use JSON.parse" in md
    assert "  - Auto-fixable" in md
    assert "- **Quality Score:** 80/100" in md
    assert md.index("src/a.js") < md.index("src/b.js")


def test_render_markdown_without_findings() -> None:
    md = render_markdown(report=build_report(findings=[], files_analyzed=1))
    assert md.endswith("No issues found.")


def test_render_json_is_machine_readable() -> None:
    payload = json.loads(render_json(build_report(findings=_findings(), files_analyzed=2)))
    assert payload["summary"]["total_issues"] == 2
    assert payload["findings"][0]["severity"] == "critical"
