"""
Chunked Analysis（单文件的分页请求/累积循环）。

协议：
- chunk 0：首次请求，服务端最多返回 `page_size` 条 + `hasMore`
- chunk N：续传请求，显式告诉服务端已经交付了多少条（`already_delivered`），
  而不是用 `chunk_index * page_size` 推算（page size 变了也不会错位）
- 循环在 `complete` 或达到 `max_chunks`（默认 10）时停止；达到上限不是错误

注意：
- 唯一的挂起点是 `complete(prompt)`；循环严格串行
- 返回值的 `complete` 永远是 True：表示“这是编排器的最终答案”，不代表服务端确认完整
- 请求失败：丢弃这一次的贡献并停止循环，返回已累积的部分结果（不抛异常）
"""

from __future__ import annotations

import logging

from devops_agent.llm.client import CompletionFn
from devops_agent.review.models import AnalysisResult
from devops_agent.review.models import ArchitectureReview
from devops_agent.review.models import Finding
from devops_agent.review.parser import ResilientResponseParser
from devops_agent.review.prompts import build_analysis_prompt
from devops_agent.review.prompts import build_architecture_prompt

logger = logging.getLogger(__name__)

PAGE_SIZE = 25
MAX_CHUNKS = 10
DEFAULT_SUMMARY = "AI analysis completed"


class ChunkedAnalyzer:
    """驱动一个文件的多次服务调用，直到服务端声明完整或达到上限。"""

    def __init__(
        self,
        complete: CompletionFn,
        parser: ResilientResponseParser | None = None,
        page_size: int = PAGE_SIZE,
        max_chunks: int = MAX_CHUNKS,
    ) -> None:
        """
        - complete: `prompt -> 回复文本` 的异步能力（通常是 `OpenAICompatLLMClient.request_completion`）
        - parser: 回复解析器（默认 `ResilientResponseParser()`）
        - page_size: 每个 chunk 最多多少条
        - max_chunks: 硬上限，防止服务端一直说 hasMore
        """
        if page_size <= 0:
            raise ValueError("page_size must be > 0")
        if max_chunks <= 0:
            raise ValueError("max_chunks must be > 0")
        self._complete = complete
        self._parser = parser or ResilientResponseParser()
        self._page_size = page_size
        self._max_chunks = max_chunks

    async def analyze(
        self,
        text: str,
        path: str,
        project_type: str | None = None,
        framework: str | None = None,
    ) -> AnalysisResult:
        findings: list[Finding] = []
        suggestions: list[str] = []
        insights: list[str] = []
        summary = ""
        complete = False
        chunk_index = 0

        while not complete and chunk_index < self._max_chunks:
            prompt = build_analysis_prompt(
                content=text,
                path=path,
                chunk_index=chunk_index,
                already_delivered=len(findings),
                page_size=self._page_size,
                project_type=project_type,
                framework=framework,
            )
            try:
                reply = await self._complete(prompt)
            except Exception as exc:
                logger.error(f"Analysis request failed for {path} (chunk {chunk_index + 1}): {exc}")
                break

            chunk = self._parser.parse_analysis_chunk(text=reply, path=path)
            findings.extend(chunk.findings)
            suggestions.extend(chunk.suggestions)
            insights.extend(chunk.architectural_insights)
            # 服务端只在最后一个 chunk 给 summary，后来的非空 summary 覆盖之前的
            if chunk.summary:
                summary = chunk.summary
            complete = chunk.complete
            chunk_index += 1

            if not complete:
                logger.info(f"Received chunk {chunk_index} for {path} ({len(findings)} finding(s) so far)")

        if not complete and chunk_index >= self._max_chunks:
            logger.warning(f"Chunk limit ({self._max_chunks}) reached for {path}, returning partial result")

        return AnalysisResult(
            findings=findings,
            summary=summary or DEFAULT_SUMMARY,
            suggestions=suggestions,
            architectural_insights=insights,
            complete=True,
        )


async def review_architecture(
    complete: CompletionFn,
    files: list[tuple[str, str]],
    parser: ResilientResponseParser | None = None,
    project_type: str | None = None,
) -> ArchitectureReview:
    """
    跨文件架构评审（单次请求，不分页）。

    失败策略与 analyze 一致：请求失败 -> 记录日志，返回空评审。
    """
    parser = parser or ResilientResponseParser()
    prompt = build_architecture_prompt(files=files, project_type=project_type)
    try:
        reply = await complete(prompt)
    except Exception as exc:
        logger.error(f"Architecture review request failed: {exc}")
        return ArchitectureReview()
    return parser.parse_architecture_review(text=reply)
