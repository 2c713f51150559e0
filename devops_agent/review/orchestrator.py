"""
Review Orchestrator（核心流程编排）。

关键思想：
- **流程由工程代码控制**：发现文件 -> 本地扫描 -> AI 分页分析 -> 合并 -> 报告
- **LLM 只负责“思考/生成结构化输出”**：分页、容错解析、置信度门槛都在工程侧

模式：
- fast：只跑本地规则
- thorough：只跑 AI 分析
- hybrid：两者都跑，本地扫描器作为 merge 的 primary

失败策略：单个文件读失败/分析失败只影响这个文件，不中断整次运行。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from devops_agent.config import ReviewConfig
from devops_agent.config import ReviewMode
from devops_agent.infra.rate_limit import pace
from devops_agent.llm.client import CompletionFn
from devops_agent.review.analyzer import ChunkedAnalyzer
from devops_agent.review.analyzer import review_architecture
from devops_agent.review.files import DEFAULT_EXTENSIONS
from devops_agent.review.files import find_files
from devops_agent.review.files import read_file
from devops_agent.review.files import write_file
from devops_agent.review.fixer import SequentialFixEngine
from devops_agent.review.fixer import select_fixable
from devops_agent.review.merger import merge_findings
from devops_agent.review.merger import sort_findings
from devops_agent.review.models import AIInsights
from devops_agent.review.models import ArchitectureReview
from devops_agent.review.models import FileInsight
from devops_agent.review.models import Finding
from devops_agent.review.models import FixRunOutcome
from devops_agent.review.models import ReviewReport
from devops_agent.review.parser import ResilientResponseParser
from devops_agent.review.prompts import build_explain_prompt
from devops_agent.review.scanner import apply_local_fixes
from devops_agent.review.scanner import scan_text
from devops_agent.review.synthesis import build_report

logger = logging.getLogger(__name__)

MAX_ARCHITECTURE_FILES = 10


@dataclass(frozen=True)
class ReviewAgent:
    """Orchestrator 运行时依赖集合。`complete` 为 None 表示没有配置推理服务。"""

    config: ReviewConfig
    complete: CompletionFn | None = None
    parser: ResilientResponseParser = field(default_factory=ResilientResponseParser)
    extensions: frozenset[str] = frozenset(DEFAULT_EXTENSIONS)


def build_review_agent(config: ReviewConfig, complete: CompletionFn | None) -> ReviewAgent:
    """创建 agent（便于未来注入 cache/queue 等依赖）。"""
    return ReviewAgent(config=config, complete=complete)


async def run_review(agent: ReviewAgent, target_path: str, mode: ReviewMode | None = None) -> ReviewReport:
    """
    跑一次完整 review，返回报告。

    - target_path：目录或单个文件
    - mode：不传则使用配置里的 mode
    """
    mode = mode or agent.config.mode
    logger.info(f"Starting {mode} code review of {target_path}")

    files = await find_files(target_path, set(agent.extensions), agent.config.max_file_bytes)
    logger.info(f"Found {len(files)} file(s) to analyze")

    findings: list[Finding] = []
    insights = AIInsights()

    if mode in ("fast", "hybrid"):
        findings = await _run_static_analysis(files=files)

    if mode in ("thorough", "hybrid"):
        if agent.complete is None:
            logger.warning("AI analysis requested but no LLM is configured, skipping AI analysis")
        else:
            ai_findings = await _run_ai_analysis(agent=agent, files=files, insights=insights)
            findings = merge_findings(primary=findings, secondary=ai_findings)

    if agent.config.architecture_review and agent.complete is not None and files:
        insights.architectural_review = await _run_architecture_review(agent=agent, files=files[:MAX_ARCHITECTURE_FILES])

    has_insights = insights.architectural_review is not None or bool(insights.file_insights)
    return build_report(findings=findings, files_analyzed=len(files), ai_insights=insights if has_insights else None)


async def review_text(agent: ReviewAgent, text: str, path: str, mode: ReviewMode | None = None) -> list[Finding]:
    """对一段已经拿到的文本做 review（不读磁盘），返回合并后的 findings。"""
    mode = mode or agent.config.mode
    local = scan_text(text=text, path=path) if mode in ("fast", "hybrid") else []
    if mode == "fast" or agent.complete is None:
        return local
    analyzer = ChunkedAnalyzer(complete=agent.complete, parser=agent.parser)
    result = await analyzer.analyze(text=text, path=path)
    return merge_findings(primary=local, secondary=result.findings)


async def run_ai_fixes(agent: ReviewAgent, target_path: str, dry_run: bool = False) -> FixRunOutcome:
    """
    AI 修复：逐文件 分析 -> 只挑 critical/high -> SequentialFixEngine -> 文本变了才写回一次。

    - dry_run：只统计会尝试修复的数量，不请求修复、不写文件
    """
    outcome = FixRunOutcome(dry_run=dry_run)
    if agent.complete is None:
        logger.error("AI fixes require a configured LLM")
        return outcome

    files = await find_files(target_path, set(agent.extensions), agent.config.max_file_bytes)
    analyzer = ChunkedAnalyzer(complete=agent.complete, parser=agent.parser)
    engine = SequentialFixEngine(complete=agent.complete, parser=agent.parser)

    for index, path in enumerate(files):
        try:
            content = await read_file(path)
        except (OSError, UnicodeDecodeError) as exc:
            logger.error(f"Error reading {path}: {exc}")
            outcome.failed += 1
            continue

        if index > 0:
            await pace(agent.config.request_delay_seconds)
        result = await analyzer.analyze(text=content, path=path)
        fixable = select_fixable(result.findings)
        if not fixable:
            continue
        outcome.eligible += len(fixable)
        if dry_run:
            continue

        logger.info(f"Processing {path} ({len(fixable)} fixable finding(s))")
        batch = await engine.apply_fixes(text=content, path=path, findings=fixable)
        if batch.text != content:
            try:
                await write_file(path, batch.text)
            except OSError as exc:
                logger.error(f"Error writing {path}: {exc}")
                outcome.failed += batch.fixed + batch.failed
                continue
            outcome.files_changed.append(path)

        outcome.fixed += batch.fixed
        outcome.failed += batch.failed
        outcome.details.extend(batch.details)

    return outcome


async def run_local_fixes(agent: ReviewAgent, target_path: str) -> FixRunOutcome:
    """应用本地规则的自动修复（不需要推理服务）。"""
    outcome = FixRunOutcome()
    files = await find_files(target_path, set(agent.extensions), agent.config.max_file_bytes)
    for path in files:
        try:
            content = await read_file(path)
            fixed_text, applied = apply_local_fixes(text=content, findings=scan_text(text=content, path=path))
            if applied:
                await write_file(path, fixed_text)
                outcome.files_changed.append(path)
                outcome.fixed += applied
                logger.info(f"Fixed {applied} issue(s) in {path}")
        except (OSError, UnicodeDecodeError) as exc:
            logger.error(f"Error fixing {path}: {exc}")
            outcome.failed += 1
    return outcome


async def explain_file(agent: ReviewAgent, path: str) -> str:
    """让推理服务解释一个文件（自由文本）。"""
    if agent.complete is None:
        raise ValueError("AI explanation requires a configured LLM")
    content = await read_file(path)
    return await agent.complete(build_explain_prompt(content=content, path=path))


async def _run_static_analysis(files: list[str]) -> list[Finding]:
    findings: list[Finding] = []
    for path in files:
        try:
            content = await read_file(path)
        except (OSError, UnicodeDecodeError) as exc:
            logger.error(f"Error analyzing {path}: {exc}")
            continue
        file_findings = scan_text(text=content, path=path)
        if file_findings:
            logger.info(f"{path}: {len(file_findings)} issue(s)")
        findings.extend(file_findings)
    return sort_findings(findings)


async def _run_ai_analysis(
    agent: ReviewAgent,
    files: list[str],
    insights: AIInsights,
) -> list[Finding]:
    """逐文件串行调用 ChunkedAnalyzer；超过文件预算就停止，文件之间节流。"""
    if agent.complete is None:
        return []
    analyzer = ChunkedAnalyzer(complete=agent.complete, parser=agent.parser)
    findings: list[Finding] = []
    requested = False

    for index, path in enumerate(files):
        # 预算按文件位置计算，因体积被跳过的文件同样占用预算
        if index >= agent.config.max_ai_files:
            logger.info(
                f"AI analysis limited to {agent.config.max_ai_files} file(s); "
                "use static analysis for complete coverage"
            )
            break

        try:
            content = await read_file(path)
        except (OSError, UnicodeDecodeError) as exc:
            logger.error(f"AI analysis error for {path}: {exc}")
            continue
        if len(content) > agent.config.max_file_chars:
            logger.info(f"Skipping {path} (too large for AI analysis)")
            continue

        if requested:
            await pace(agent.config.request_delay_seconds)
        requested = True
        logger.info(f"AI analyzing {path}")
        result = await analyzer.analyze(text=content, path=path)
        findings.extend(result.findings)
        if result.architectural_insights:
            insights.file_insights.append(FileInsight(file=path, insights=result.architectural_insights))
        logger.info(f"Found {len(result.findings)} AI-detected issue(s) in {path}")

    return findings


async def _run_architecture_review(agent: ReviewAgent, files: list[str]) -> ArchitectureReview | None:
    if agent.complete is None:
        return None
    contents: list[tuple[str, str]] = []
    for path in files:
        try:
            contents.append((path, await read_file(path)))
        except (OSError, UnicodeDecodeError) as exc:
            logger.error(f"Error reading {path} for architecture review: {exc}")
    review = await review_architecture(complete=agent.complete, files=contents, parser=agent.parser)
    logger.info(f"Architecture quality score: {review.overall_quality}")
    return review
