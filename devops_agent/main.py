"""
FastAPI 服务入口。

这里做三件事：
- 加载配置（严格校验环境变量）
- 组装外部依赖（HTTP Client / LLM Client / ReviewAgent）
- 装配路由（health + review/fix/explain）

注意：
- 业务流程不写在这里（由 `review/orchestrator.py` 负责）
- `httpx.AsyncClient` 会被复用（避免每个请求新建连接）

启动：
  uvicorn devops_agent.main:app
"""

from __future__ import annotations

import logging
import os

import httpx
from fastapi import FastAPI

from devops_agent.api.routes import build_review_router
from devops_agent.config import load_config_from_env
from devops_agent.llm.client import OpenAICompatLLMClient
from devops_agent.review.orchestrator import build_review_agent


def build_app() -> FastAPI:
    """创建并返回 FastAPI app（便于测试/复用）。"""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    # 1) 配置：缺失会直接抛错，启动失败（这是期望行为）
    config = load_config_from_env(os.environ)

    # 2) 可复用的 HTTP client：LLM 调用使用（单次生成可能很慢，超时放宽）
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(120.0))

    # 3) LLM client：OpenAI-compatible
    llm_client = OpenAICompatLLMClient(
        api_key=config.llm.api_key,
        base_url=str(config.llm.base_url).rstrip("/"),
        http_client=http_client,
        model=config.llm.model,
        max_tokens=config.llm.max_tokens,
        temperature=config.llm.temperature,
    )

    # 4) 组装 agent：review 核心只拿到 `prompt -> text` 这一个能力
    agent = build_review_agent(config=config.review, complete=llm_client.request_completion)

    app = FastAPI(title="DevOps Review Agent", version="0.1.0")

    @app.get("/health")
    async def health() -> dict[str, str]:
        """健康检查：用于 k8s / LB 探活。"""
        return {"status": "ok"}

    app.include_router(build_review_router(agent=agent))
    return app


# Uvicorn 默认会从模块级变量 `app` 读取 ASGI 应用
app = build_app()
