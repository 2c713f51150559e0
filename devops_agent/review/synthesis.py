from __future__ import annotations

"""
Synthesis（汇总输出）。

注意：
- 这里是**确定性输出**（不依赖 LLM），报告格式稳定、可 diff
- 报告里的 findings 保持传入顺序（已由 merger/scanner 排好序）
"""

import os
from datetime import datetime, timezone

from devops_agent.review.models import AIInsights
from devops_agent.review.models import Finding
from devops_agent.review.models import ReviewReport
from devops_agent.review.models import ReviewSummary


def build_report(
    findings: list[Finding],
    files_analyzed: int,
    ai_insights: AIInsights | None = None,
    now: datetime | None = None,
) -> ReviewReport:
    """统计各 severity 数量并生成报告对象。"""
    summary = ReviewSummary(
        total_issues=len(findings),
        critical=sum(1 for f in findings if f.severity == "critical"),
        high=sum(1 for f in findings if f.severity == "high"),
        medium=sum(1 for f in findings if f.severity == "medium"),
        low=sum(1 for f in findings if f.severity == "low"),
        auto_fixable=sum(1 for f in findings if f.auto_fixable),
    )
    timestamp = (now or datetime.now(timezone.utc)).isoformat()
    return ReviewReport(
        summary=summary,
        findings=findings,
        files_analyzed=files_analyzed,
        timestamp=timestamp,
        ai_insights=ai_insights,
    )


def render_json(report: ReviewReport) -> str:
    return report.model_dump_json(indent=2)


def render_markdown(report: ReviewReport, base_path: str | None = None) -> str:
    """
    将报告拼成 Markdown。

    - base_path：给定时文件路径显示为相对路径
    - findings 按文件分组，组内保持原顺序
    """
    s = report.summary
    lines: list[str] = []
    lines.append("# Code Review Report")
    lines.append("")
    lines.append(f"**Generated:** {report.timestamp}")
    lines.append("")
    lines.append("## Summary")
    lines.append("")
    lines.append(f"- **Total Issues:** {s.total_issues}")
    lines.append(f"- **Critical:** {s.critical}")
    lines.append(f"- **High:** {s.high}")
    lines.append(f"- **Medium:** {s.medium}")
    lines.append(f"- **Low:** {s.low}")
    lines.append(f"- **Auto-fixable:** {s.auto_fixable}")
    lines.append(f"- **Files Analyzed:** {report.files_analyzed}")
    lines.append("")

    arch = report.ai_insights.architectural_review if report.ai_insights else None
    if arch is not None:
        lines.append("## Architecture Review")
        lines.append("")
        quality = "n/a" if arch.overall_quality is None else f"{arch.overall_quality}/100"
        lines.append(f"- **Quality Score:** {quality}")
        for title, items in (
            ("Insights", arch.insights),
            ("Security Concerns", arch.security_concerns),
            ("Recommendations", arch.recommendations),
        ):
            if items:
                lines.append(f"- **{title}:**")
                lines.extend(f"  - {item}" for item in items)
        lines.append("")

    if not report.findings:
        lines.append("No issues found.")
        return "\n".join(lines)

    lines.append("## Issues")
    lines.append("")
    by_file: dict[str, list[Finding]] = {}
    for f in report.findings:
        display = os.path.relpath(f.file, base_path) if base_path else f.file
        by_file.setdefault(display, []).append(f)

    for display, findings in by_file.items():
        lines.append(f"### {display}")
        lines.append("")
        for f in findings:
            lines.append(f"- **Line {f.line}** [{f.severity.upper()}] [{f.category}]")
            lines.append(f"  - {f.message}")
            if f.snippet:
                lines.append(f"  - Code: `{f.snippet}`")
            if f.suggested_fix:
                lines.append(f"  - **Fix:** {f.suggested_fix}")
            if f.auto_fixable:
                lines.append("  - Auto-fixable")
        lines.append("")

    return "\n".join(lines)
