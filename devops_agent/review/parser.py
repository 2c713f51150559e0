"""
Resilient Response Parser（从自然语言回复里“抠出”结构化数据）。

背景：
- 服务端被要求输出 JSON，但实际经常包在 markdown/解释文字里，或者因为输出长度被截断
- 这里的策略是：宁可什么都没发生，也不要凭空编造 finding

流程：
1) 找第一个 `{` 到最后一个 `}` 的片段（找不到 -> 默认值）
2) 严格 `json.loads`
3) 失败则交给 repair 策略（默认：括号配平）后再严格解析一次
4) 仍失败 -> 默认值 + 诊断回调
5) 成功 -> 归一化成领域模型（所有默认值都偏向“无事发生”）

注意：
- parser **从不抛异常**；诊断信息通过注入的 `on_diagnostic` 回调输出（默认写 logger）
- repair 是可替换的策略函数，方便以后换成流式容错解析器
"""

from __future__ import annotations

import json
import logging
import math
import re
from collections.abc import Callable

from pydantic import ValidationError

from devops_agent.review.models import SEVERITY_RANK
from devops_agent.review.models import AnalysisResult
from devops_agent.review.models import ArchitectureReview
from devops_agent.review.models import Finding
from devops_agent.review.models import FixProposal
from devops_agent.review.models import RawIssue
from devops_agent.review.models import kind_for_severity

logger = logging.getLogger(__name__)

Diagnostic = Callable[[str], None]
RepairStrategy = Callable[[str], str]

_TRAILING_SEPARATOR = re.compile(r",\s*$")


def log_diagnostic(message: str) -> None:
    """默认诊断观察者：转发到模块 logger。"""
    logger.warning(message)


def extract_json_span(text: str) -> str | None:
    """返回第一个 `{` 到最后一个 `}`（含）的片段；没有就返回 None。"""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        return None
    return text[start : end + 1]


def balance_brackets(span: str) -> str:
    """
    括号配平（启发式）。

    - 统计 `{}` / `[]` 的开闭数量
    - 去掉末尾悬空的分隔符（例如截断前的 `,`）
    - 先补 `]` 再补 `}`：本 schema 里数组总是先于外层对象闭合
    """
    open_braces = span.count("{")
    close_braces = span.count("}")
    open_brackets = span.count("[")
    close_brackets = span.count("]")

    repaired = _TRAILING_SEPARATOR.sub("", span.rstrip())
    if open_brackets > close_brackets:
        repaired += "]" * (open_brackets - close_brackets)
    if open_braces > close_braces:
        repaired += "}" * (open_braces - close_braces)
    return repaired


class ResilientResponseParser:
    """把服务端回复解析成 analysis chunk / fix proposal / architecture review。"""

    def __init__(
        self,
        repair: RepairStrategy = balance_brackets,
        on_diagnostic: Diagnostic | None = None,
    ) -> None:
        """
        - repair: 严格解析失败后使用的修复策略（输入 JSON 片段，输出修复后的片段）
        - on_diagnostic: 诊断回调；默认写 logger（测试里可以传一个 list.append）
        """
        self._repair = repair
        self._on_diagnostic = on_diagnostic or log_diagnostic

    def load_object(self, text: str) -> dict[str, object] | None:
        """步骤 1~4：得到一个 JSON object（dict），拿不到就返回 None。"""
        span = extract_json_span(text)
        if span is None:
            self._on_diagnostic("No JSON object found in service reply")
            return None

        try:
            parsed = json.loads(span)
        except json.JSONDecodeError as exc:
            self._on_diagnostic(f"Initial JSON parse failed ({exc}), attempting repair")
            try:
                parsed = json.loads(self._repair(span))
            except json.JSONDecodeError as repair_exc:
                self._on_diagnostic(f"JSON repair failed: {repair_exc}")
                return None

        if not isinstance(parsed, dict):
            self._on_diagnostic(f"Expected a JSON object, got {type(parsed).__name__}")
            return None
        return parsed

    def parse_analysis_chunk(self, text: str, path: str) -> AnalysisResult:
        """
        解析一次 analysis 回复（一个 chunk）。

        - 每条 issue -> `Finding`：缺 line 默认 1；kind 由 severity 推导
        - `complete` = not hasMore（hasMore 缺省为 False）
        - 失败：空结果，`complete=True`（与缺 hasMore 一致，不再续传）
        """
        payload = self.load_object(text)
        if payload is None:
            return AnalysisResult(complete=True)

        raw_issues = payload.get("issues")
        findings: list[Finding] = []
        if isinstance(raw_issues, list):
            for index, raw in enumerate(raw_issues):
                finding = self._to_finding(raw=raw, path=path, index=index)
                if finding is not None:
                    findings.append(finding)
        elif raw_issues is not None:
            self._on_diagnostic(f"`issues` is not a list in reply for {path}")

        summary = payload.get("summary")
        return AnalysisResult(
            findings=findings,
            summary=summary.strip() if isinstance(summary, str) else "",
            suggestions=_string_list(payload.get("suggestions")),
            architectural_insights=_string_list(payload.get("architecturalInsights")),
            complete=not _lenient_flag(payload.get("hasMore")),
        )

    def parse_fix_proposal(self, text: str, original_text: str) -> FixProposal:
        """
        解析一次 fix 回复。

        缺 `fixedCode`（或为空字符串）-> 原文；缺 `confidence` -> 0。
        也就是“零置信度的 no-op 提案”，fix engine 会拒绝它。
        """
        payload = self.load_object(text)
        if payload is None:
            return FixProposal(
                original_text=original_text,
                patched_text=original_text,
                explanation="Failed to generate fix",
                confidence=0,
            )

        fixed_code = payload.get("fixedCode")
        explanation = payload.get("explanation")
        return FixProposal(
            original_text=original_text,
            patched_text=fixed_code if isinstance(fixed_code, str) and fixed_code else original_text,
            explanation=explanation if isinstance(explanation, str) and explanation else "No explanation provided",
            confidence=_confidence(payload.get("confidence")),
        )

    def parse_architecture_review(self, text: str) -> ArchitectureReview:
        """解析架构评审回复；失败返回空评审（overall_quality=None）。"""
        payload = self.load_object(text)
        if payload is None:
            return ArchitectureReview()

        quality = payload.get("overallQuality")
        return ArchitectureReview(
            overall_quality=_confidence(quality) if quality is not None else None,
            insights=_string_list(payload.get("insights")),
            recommendations=_string_list(payload.get("recommendations")),
            security_concerns=_string_list(payload.get("securityConcerns")),
        )

    def _to_finding(self, raw: object, path: str, index: int) -> Finding | None:
        """单条 issue 归一化；缺 message 或 severity 不认识 -> 丢弃（不编造）。"""
        if not isinstance(raw, dict):
            self._on_diagnostic(f"Skipping issue #{index} in {path}: not an object")
            return None
        try:
            issue = RawIssue.model_validate(raw)
        except ValidationError as exc:
            self._on_diagnostic(f"Skipping issue #{index} in {path}: {exc}")
            return None

        severity = (issue.severity or "").strip().lower()
        if severity not in SEVERITY_RANK:
            self._on_diagnostic(f"Skipping issue #{index} in {path}: unknown severity {issue.severity!r}")
            return None
        if not issue.message:
            self._on_diagnostic(f"Skipping issue #{index} in {path}: missing message")
            return None

        line = issue.line if issue.line is not None and issue.line >= 1 else 1
        column = issue.column if issue.column is not None and issue.column >= 1 else None
        return Finding(
            kind=kind_for_severity(severity),  # type: ignore[arg-type]
            severity=severity,  # type: ignore[arg-type]
            category=issue.category or "General",
            message=issue.message,
            file=path,
            line=line,
            column=column,
            suggested_fix=issue.suggestedFix,
            auto_fixable=issue.autoFixable,
        )


def _string_list(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str) and item]


def _lenient_flag(value: object) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value is True


def _confidence(value: object) -> int:
    """数字（或数字字符串）-> [0, 100] 的整数；其它一律 0。"""
    if isinstance(value, bool):
        return 0
    if isinstance(value, str):
        try:
            value = float(value.strip().rstrip("%"))
        except ValueError:
            return 0
    if not isinstance(value, (int, float)) or math.isnan(value):
        return 0
    if math.isinf(value):
        return 100 if value > 0 else 0
    return max(0, min(100, int(value)))
