"""
LLM Client（基于 OpenAI SDK，对接 OpenAI-compatible 网关，例如 LiteLLM Proxy）。

目标：
- **尽量薄**：只做协议适配与错误处理
- **统一接口**：review 核心只依赖 `CompletionFn`（prompt -> 回复文本），不关心具体服务
- **不在这里解析 JSON**：服务端的 JSON 经常不规范，交给 `review/parser.py` 容错处理
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence

import httpx
from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel

logger = logging.getLogger(__name__)

# review 核心消费的唯一外部能力：发一个 prompt，拿回一段自由文本
CompletionFn = Callable[[str], Awaitable[str]]


class ChatMessage(BaseModel):
    """OpenAI chat message 的最小结构。"""

    role: str
    content: str


def _normalize_base_url(base_url: str) -> str:
    normalized = base_url.rstrip("/")
    if normalized.endswith("/v1"):
        return normalized
    return f"{normalized}/v1"


class OpenAICompatLLMClient:
    """
    通过 OpenAI-compatible API 调用 LLM。

    出错直接抛异常（OpenAIError / httpx.HTTPError / RuntimeError），
    由编排器 / fix engine 决定是丢弃这一次请求还是继续。
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        http_client: httpx.AsyncClient,
        model: str,
        max_tokens: int = 8192,
        temperature: float = 0.1,
    ) -> None:
        """
        - api_key: LLM API key
        - base_url: OpenAI-compatible base URL（缺 `/v1` 会自动补上）
        - http_client: 复用 httpx.AsyncClient 连接池
        - model: 模型名（由网关路由）
        - max_tokens / temperature: 每次请求的生成参数
        """
        self._base_url = _normalize_base_url(base_url=base_url)
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._client = AsyncOpenAI(api_key=api_key, base_url=self._base_url, http_client=http_client)

    async def complete_text(self, messages: Sequence[ChatMessage]) -> str:
        """调用 chat completion 并返回纯文本 content。"""
        try:
            logger.info(f"LLM request: model={self._model}, messages={len(messages)} msg(s)")
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[m.model_dump() for m in messages],
                max_tokens=self._max_tokens,
                temperature=self._temperature,
            )
        except OpenAIError as exc:
            logger.error(f"LLM API error: {exc}")
            raise
        except httpx.HTTPError as exc:
            logger.error(f"LLM HTTP error: {exc}")
            raise

        content = response.choices[0].message.content
        if content is None:
            logger.error("LLM returned None content")
            raise RuntimeError("LLM returned None content")

        logger.info(f"LLM response: {len(content)} chars")
        return str(content)

    async def request_completion(self, prompt: str) -> str:
        """`CompletionFn` 的实现：单条 user message。"""
        return await self.complete_text(messages=[ChatMessage(role="user", content=prompt)])
