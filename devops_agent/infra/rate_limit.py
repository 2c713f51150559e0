from __future__ import annotations

"""
节流（最小版本）。

每个文件的 AI 分析可能是多次请求，文件之间插入固定延迟，避免触发推理服务的限流。
节流是调用方循环的调度细节，review 核心组件本身不知道其它文件的存在。
"""

import anyio


async def pace(delay_seconds: float) -> None:
    """两次服务调用之间的节流等待；0 表示不等待。"""
    if delay_seconds < 0:
        raise ValueError("delay_seconds must be >= 0")
    if delay_seconds:
        await anyio.sleep(delay_seconds)
