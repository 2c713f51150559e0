"""
Sequential Fix Engine（单文件、逐条 finding 串行修复）。

状态机（每条 finding，按调用方给的顺序）：
1) 用**当前工作文本**（包含本批次之前所有已接受的补丁）请求修复提案
2) `confidence > 70` -> 接受：工作文本替换为 `patched_text`，fixed += 1，记录明细
3) 否则拒绝：工作文本不变，failed += 1
4) 请求本身失败（网络/配额等）-> 视为拒绝，继续下一条；单条失败不能中断整批

注意：
- engine 不按 severity 过滤（调用方预先筛好 critical/high），只按置信度门槛
- engine 不做磁盘 I/O：补丁只在内存里串起来，最后一次性把文本交给调用方写回；
  进程中途被打断时磁盘上的文件保持原样
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from devops_agent.llm.client import CompletionFn
from devops_agent.review.models import Finding
from devops_agent.review.models import FixBatchOutcome
from devops_agent.review.models import FixDetail
from devops_agent.review.models import FixProposal
from devops_agent.review.parser import ResilientResponseParser
from devops_agent.review.prompts import build_fix_prompt

logger = logging.getLogger(__name__)

CONFIDENCE_THRESHOLD = 70
SEVERITIES_ELIGIBLE_FOR_AI_FIX = ("critical", "high")


def select_fixable(findings: Sequence[Finding]) -> list[Finding]:
    """调用方使用的预过滤：只有 critical/high 才交给 AI 修复。"""
    return [f for f in findings if f.severity in SEVERITIES_ELIGIBLE_FOR_AI_FIX]


class SequentialFixEngine:
    """按置信度门槛逐条接受/拒绝 AI 修复提案。"""

    def __init__(
        self,
        complete: CompletionFn,
        parser: ResilientResponseParser | None = None,
        confidence_threshold: int = CONFIDENCE_THRESHOLD,
    ) -> None:
        self._complete = complete
        self._parser = parser or ResilientResponseParser()
        self._confidence_threshold = confidence_threshold

    async def propose_fix(self, text: str, finding: Finding, context: str | None = None) -> FixProposal:
        """单次修复请求；请求失败的异常原样抛给调用方。"""
        prompt = build_fix_prompt(content=text, finding=finding, context=context)
        reply = await self._complete(prompt)
        return self._parser.parse_fix_proposal(text=reply, original_text=text)

    async def apply_fixes(self, text: str, path: str, findings: Sequence[Finding]) -> FixBatchOutcome:
        working_text = text
        fixed = 0
        failed = 0
        details: list[FixDetail] = []

        for finding in findings:
            logger.info(f"Fixing {path}:{finding.line}: {finding.message}")
            try:
                proposal = await self.propose_fix(text=working_text, finding=finding)
            except Exception as exc:
                logger.error(f"Fix request failed for {path}:{finding.line}: {exc}")
                failed += 1
                continue

            if proposal.confidence <= self._confidence_threshold:
                logger.warning(
                    f"Skipped fix for {path}:{finding.line} (confidence too low: {proposal.confidence}%)"
                )
                failed += 1
                continue

            working_text = proposal.patched_text
            fixed += 1
            details.append(
                FixDetail(
                    file=path,
                    line=finding.line,
                    finding=finding.message,
                    confidence=proposal.confidence,
                    explanation=proposal.explanation,
                )
            )
            logger.info(f"Fixed {path}:{finding.line} with {proposal.confidence}% confidence")

        return FixBatchOutcome(text=working_text, fixed=fixed, failed=failed, details=details)
