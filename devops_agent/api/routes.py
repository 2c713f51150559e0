"""
HTTP 接入层。

职责：
- 解析请求 -> Pydantic schema（类型安全）
- 调用业务编排（真正的 review/fix 流程在 `review/orchestrator.py` 里）
- 路径不存在直接 404（不要让 pipeline 去猜）
"""

from __future__ import annotations

import os

from fastapi import APIRouter
from fastapi import HTTPException
from pydantic import BaseModel

from devops_agent.config import ReviewMode
from devops_agent.review.models import Finding
from devops_agent.review.models import FixRunOutcome
from devops_agent.review.models import ReviewReport
from devops_agent.review.orchestrator import ReviewAgent
from devops_agent.review.orchestrator import explain_file
from devops_agent.review.orchestrator import review_text
from devops_agent.review.orchestrator import run_ai_fixes
from devops_agent.review.orchestrator import run_local_fixes
from devops_agent.review.orchestrator import run_review


class ReviewRequest(BaseModel):
    target_path: str
    mode: ReviewMode | None = None


class ReviewTextRequest(BaseModel):
    path: str
    content: str
    mode: ReviewMode | None = None


class FixRequest(BaseModel):
    target_path: str
    dry_run: bool = False


class LocalFixRequest(BaseModel):
    target_path: str


class ExplainRequest(BaseModel):
    path: str


class ExplainResponse(BaseModel):
    path: str
    explanation: str


def _require_path(path: str) -> None:
    if not os.path.exists(path):
        raise HTTPException(status_code=404, detail=f"Path not found: {path}")


def build_review_router(agent: ReviewAgent) -> APIRouter:
    """创建 review/fix/explain 路由；`/fix/local` 只用本地规则，不需要推理服务。"""
    router = APIRouter()

    @router.post("/review")
    async def review(req: ReviewRequest) -> ReviewReport:
        _require_path(req.target_path)
        return await run_review(agent=agent, target_path=req.target_path, mode=req.mode)

    @router.post("/review/file")
    async def review_file(req: ReviewTextRequest) -> list[Finding]:
        return await review_text(agent=agent, text=req.content, path=req.path, mode=req.mode)

    @router.post("/fix")
    async def fix(req: FixRequest) -> FixRunOutcome:
        _require_path(req.target_path)
        if agent.complete is None:
            raise HTTPException(status_code=503, detail="AI fixes require a configured LLM")
        return await run_ai_fixes(agent=agent, target_path=req.target_path, dry_run=req.dry_run)

    @router.post("/fix/local")
    async def fix_local(req: LocalFixRequest) -> FixRunOutcome:
        _require_path(req.target_path)
        return await run_local_fixes(agent=agent, target_path=req.target_path)

    @router.post("/explain")
    async def explain(req: ExplainRequest) -> ExplainResponse:
        if not os.path.isfile(req.path):
            raise HTTPException(status_code=404, detail=f"File not found: {req.path}")
        if agent.complete is None:
            raise HTTPException(status_code=503, detail="AI explanation requires a configured LLM")
        explanation = await explain_file(agent=agent, path=req.path)
        return ExplainResponse(path=req.path, explanation=explanation)

    return router
