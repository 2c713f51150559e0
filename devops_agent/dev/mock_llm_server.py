"""
本地 Mock OpenAI-compatible LLM server。

用途：
- 在没有真实 LLM 网关的情况下，本地跑通闭环（分页分析 / 修复 / 架构评审）
- 首个 analysis chunk 故意返回被截断的 JSON，用来验证 parser 的括号配平

启动：
  python -m devops_agent.dev.mock_llm_server
  LLM_BASE_URL=http://127.0.0.1:9001 LLM_API_KEY=x LLM_MODEL=mock uvicorn devops_agent.main:app
"""

from __future__ import annotations

import json
import re
from collections.abc import Sequence

import uvicorn
from fastapi import FastAPI
from pydantic import BaseModel, Field

from devops_agent.llm.client import ChatMessage

# 锚定在代码块之后的“待修复问题：”
_ORIGINAL_CODE = re.compile(r"原始代码：\n```\n(.*?)\n```\n\n待修复问题：", re.DOTALL)


class ChatCompletionRequest(BaseModel):
    model: str
    messages: list[ChatMessage] = Field(default_factory=list)


def _extract_path_from_prompt(prompt: str) -> str:
    for line in prompt.splitlines():
        stripped = line.strip()
        if stripped.startswith("path: "):
            return stripped.removeprefix("path: ").strip()
    raise ValueError("Cannot find `path: ...` in analysis prompt")


def _build_first_chunk(path: str) -> str:
    """第一页：hasMore=true，并且在第二条 issue 之前被“截断”。"""
    issue = {
        "line": 1,
        "severity": "high",
        "category": "Error Handling",
        "message": f"[MOCK] {path}: 建议补充更严格的错误处理与边界校验。",
        "suggestedFix": "为外部输入增加校验，并记录异常。",
        "autoFixable": False,
    }
    return 'Here is the first batch:\n```json\n{"hasMore": true, "issues": [' + json.dumps(issue, ensure_ascii=False) + ",\n"


def _build_last_chunk(path: str) -> str:
    payload = {
        "issues": [
            {
                "line": 2,
                "severity": "low",
                "category": "Code Quality",
                "message": f"[MOCK] {path}: 建议为关键逻辑添加单元测试。",
                "autoFixable": False,
            }
        ],
        "hasMore": False,
        "summary": "[MOCK] 整体结构清晰，错误处理需要加强。",
        "suggestions": ["[MOCK] 增加测试覆盖"],
        "architecturalInsights": ["[MOCK] 模块职责划分合理"],
    }
    return "```json\n" + json.dumps(payload, ensure_ascii=False) + "\n```"


def _build_fix_reply(prompt: str) -> str:
    """原样返回原始代码（高置信度的 no-op），保证本地跑 fix 不会改坏文件。"""
    match = _ORIGINAL_CODE.search(prompt)
    code = match.group(1) if match else ""
    payload = {"fixedCode": code, "explanation": "[MOCK] 未做改动", "confidence": 90}
    return json.dumps(payload, ensure_ascii=False)


def _build_architecture_reply() -> str:
    payload = {
        "overallQuality": 75,
        "insights": ["[MOCK] 分层清晰"],
        "recommendations": ["[MOCK] 抽出公共错误处理"],
        "securityConcerns": [],
    }
    return json.dumps(payload, ensure_ascii=False)


def decide_mock_response(messages: Sequence[ChatMessage]) -> str:
    user_texts = [m.content for m in messages if m.role == "user"]
    if not user_texts:
        raise ValueError("Mock server expects at least one user message")
    prompt = "\n".join(user_texts)

    if '"fixedCode"' in prompt:
        return _build_fix_reply(prompt=prompt)
    if '"overallQuality"' in prompt:
        return _build_architecture_reply()
    if '"hasMore"' in prompt:
        path = _extract_path_from_prompt(prompt=prompt)
        if "续传请求" in prompt:
            return _build_last_chunk(path=path)
        return _build_first_chunk(path=path)

    # 兜底：解释类请求，返回自然语言
    return "[MOCK] 这段代码实现了一个简单的模块，没有发现明显问题。"


app = FastAPI(title="Mock OpenAI-compatible LLM", version="0.1.0")


@app.post("/v1/chat/completions")
async def chat_completions(req: ChatCompletionRequest) -> dict[str, object]:
    content = decide_mock_response(messages=req.messages)
    return {"choices": [{"message": {"content": content}}]}


def main() -> None:
    uvicorn.run(app, host="127.0.0.1", port=9001)


if __name__ == "__main__":
    main()
