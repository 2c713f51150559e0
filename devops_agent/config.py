"""
应用配置加载。

设计目标：
- **严格**：缺少必要环境变量就直接报错（避免“看起来跑了其实没配置好”）
- **类型安全**：使用 Pydantic 校验 URL/数值/枚举，减少运行时踩坑
- **可测试**：核心加载函数接收 `environ` 显式输入，便于单元测试

必填：`LLM_BASE_URL` / `LLM_API_KEY` / `LLM_MODEL`
可选：`LLM_MAX_TOKENS` / `LLM_TEMPERATURE` 以及 `REVIEW_*`（见 `_REVIEW_ENV_KEYS`）
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, Field, HttpUrl

ReviewMode = Literal["fast", "thorough", "hybrid"]


class LLMConfig(BaseModel):
    """OpenAI-compatible 推理服务配置。"""

    base_url: HttpUrl
    api_key: str
    model: str
    max_tokens: int = Field(default=8192, gt=0)
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)


class ReviewConfig(BaseModel):
    """review pipeline 的调度参数（全部有默认值）。"""

    mode: ReviewMode = "hybrid"
    max_ai_files: int = Field(default=20, gt=0)
    max_file_chars: int = Field(default=50_000, gt=0)
    max_file_bytes: int = Field(default=1_000_000, gt=0)
    request_delay_seconds: float = Field(default=1.0, ge=0.0)
    architecture_review: bool = False


class AppConfig(BaseModel):
    llm: LLMConfig
    review: ReviewConfig = Field(default_factory=ReviewConfig)


# env 名 -> ReviewConfig 字段名
_REVIEW_ENV_KEYS: dict[str, str] = {
    "REVIEW_MODE": "mode",
    "REVIEW_MAX_AI_FILES": "max_ai_files",
    "REVIEW_MAX_FILE_CHARS": "max_file_chars",
    "REVIEW_MAX_FILE_BYTES": "max_file_bytes",
    "REVIEW_REQUEST_DELAY_SECONDS": "request_delay_seconds",
    "REVIEW_ARCHITECTURE": "architecture_review",
}


def load_config_from_env(environ: Mapping[str, str]) -> AppConfig:
    """
    从环境变量加载并校验配置。

    - **输入**：`environ`（例如 `os.environ`）
    - **输出**：`AppConfig`
    - **失败**：必填项缺失/为空抛 `ValueError`；类型不合法抛 Pydantic `ValidationError`
    """

    required_keys: tuple[str, ...] = ("LLM_BASE_URL", "LLM_API_KEY", "LLM_MODEL")
    missing: list[str] = [key for key in required_keys if key not in environ or not environ[key]]
    if missing:
        raise ValueError(f"Missing required env vars: {', '.join(missing)}")

    llm_fields: dict[str, str] = {
        "base_url": environ["LLM_BASE_URL"],
        "api_key": environ["LLM_API_KEY"],
        "model": environ["LLM_MODEL"],
    }
    if environ.get("LLM_MAX_TOKENS"):
        llm_fields["max_tokens"] = environ["LLM_MAX_TOKENS"]
    if environ.get("LLM_TEMPERATURE"):
        llm_fields["temperature"] = environ["LLM_TEMPERATURE"]

    # 只传出现过的可选项，其余走默认值；字符串交给 Pydantic 做类型转换
    review_fields = {field: environ[key] for key, field in _REVIEW_ENV_KEYS.items() if environ.get(key)}

    return AppConfig(
        llm=LLMConfig.model_validate(llm_fields),
        review=ReviewConfig.model_validate(review_fields),
    )
