"""
Prompt 构造（纯函数，无 I/O）。

约定：
- 所有 prompt 都要求服务端输出 JSON（字段名与 parser 对齐，camelCase）
- 分页协议：首个 chunk 要求最多返回 `page_size` 条并给出 `hasMore`；
  后续 chunk 显式告诉服务端“已经交付了多少条”，由调用方传入 `already_delivered`
"""

from __future__ import annotations

from collections.abc import Sequence

from devops_agent.review.models import Finding

ANALYSIS_JSON_SCHEMA = (
    "{\n"
    '  "issues": [\n'
    "    {\n"
    '      "line": number,\n'
    '      "severity": "critical|high|medium|low",\n'
    '      "category": "string",\n'
    '      "message": "string",\n'
    '      "suggestedFix": "string",\n'
    '      "autoFixable": boolean\n'
    "    }\n"
    "  ],\n"
    '  "hasMore": boolean,\n'
    '  "summary": "整体评价（只在最后一个 chunk 给出）",\n'
    '  "suggestions": ["整体改进建议（只在最后一个 chunk 给出）"],\n'
    '  "architecturalInsights": ["更高层面的观察（只在最后一个 chunk 给出）"]\n'
    "}"
)

FIX_JSON_SCHEMA = (
    "{\n"
    '  "fixedCode": "修复后的完整代码",\n'
    '  "explanation": "改了什么、为什么",\n'
    '  "confidence": number (0-100)\n'
    "}"
)

ARCHITECTURE_JSON_SCHEMA = (
    "{\n"
    '  "overallQuality": number (0-100),\n'
    '  "insights": ["..."],\n'
    '  "recommendations": ["..."],\n'
    '  "securityConcerns": ["..."]\n'
    "}"
)

MAX_ARCHITECTURE_FILE_CHARS = 2000


def _chunking_instruction(chunk_index: int, already_delivered: int, page_size: int) -> str:
    """分页说明：chunk 0 是首次请求，之后是续传请求。"""
    if chunk_index == 0:
        return (
            "**分页输出要求：**\n"
            f"如果发现的问题超过 {page_size} 条，只返回前 {page_size} 条，并设置 \"hasMore\": true。\n"
            f"如果不超过 {page_size} 条，全部返回，并设置 \"hasMore\": false。\n"
        )
    return (
        f"**续传请求（第 {chunk_index + 1} 个 chunk）：**\n"
        f"你之前已经返回了 {already_delivered} 条问题（第 1-{already_delivered} 条）。\n"
        f"现在请返回接下来最多 {page_size} 条问题"
        f"（第 {already_delivered + 1}-{already_delivered + page_size} 条），不要重复已返回的问题。\n"
        "如果之后还有问题，设置 \"hasMore\": true；如果这是最后一批，设置 \"hasMore\": false。\n"
    )


def build_analysis_prompt(
    content: str,
    path: str,
    chunk_index: int,
    already_delivered: int,
    page_size: int,
    project_type: str | None = None,
    framework: str | None = None,
) -> str:
    """单文件分析 prompt（带分页协议）。"""
    if chunk_index < 0:
        raise ValueError("chunk_index must be >= 0")
    if page_size <= 0:
        raise ValueError("page_size must be > 0")

    context_info = ""
    if project_type or framework:
        context_info = f"项目类型: {project_type or 'Unknown'}\n框架: {framework or 'Unknown'}\n\n"

    return (
        "你是资深代码审查工程师，请对下面的代码做一次完整审查。\n\n"
        f"{context_info}"
        f"path: {path}\n\n"
        f"```\n{content}\n```\n\n"
        "请找出所有问题，包括：\n"
        "1. 安全漏洞（注入、XSS、硬编码密钥等）\n"
        "2. 性能问题（低效算法、内存泄漏、多余操作）\n"
        "3. 代码质量（重复、复杂度、可维护性）\n"
        "4. 最佳实践违背（命名、结构、模式）\n"
        "5. 类型安全问题（如果是有类型的语言）\n"
        "6. 错误处理问题\n"
        "7. 可访问性问题（如果是 UI 代码）\n"
        "8. 测试缺口（难以测试的代码、遗漏的边界情况）\n\n"
        "每个问题需要给出：行号（可以是近似值）、severity、category、问题描述、具体修复建议、是否可自动修复。\n\n"
        f"{_chunking_instruction(chunk_index=chunk_index, already_delivered=already_delivered, page_size=page_size)}\n"
        "输出 JSON（不要输出其它内容）：\n"
        f"{ANALYSIS_JSON_SCHEMA}\n"
    )


def build_fix_prompt(content: str, finding: Finding, context: str | None = None) -> str:
    """针对单条 finding 的修复 prompt：要求返回完整文件内容 + 置信度。"""
    context_info = f"上下文: {context}\n\n" if context else ""
    return (
        "你是资深开发工程师，需要修复下面代码中的一个问题。\n\n"
        f"{context_info}"
        f"原始代码：\n```\n{content}\n```\n\n"
        "待修复问题：\n"
        f"- 第 {finding.line} 行: {finding.message}\n"
        f"- category: {finding.category}\n"
        f"- severity: {finding.severity}\n"
        f"- 建议思路: {finding.suggested_fix or '无'}\n\n"
        "请给出：\n"
        "1. 修复后的**完整**代码（不是只给改动的行）\n"
        "2. 改动说明\n"
        "3. 你对这个修复正确且安全的置信度（0-100）\n\n"
        "输出 JSON（不要输出其它内容）：\n"
        f"{FIX_JSON_SCHEMA}\n"
    )


def build_architecture_prompt(files: Sequence[tuple[str, str]], project_type: str | None = None) -> str:
    """跨文件架构评审 prompt；每个文件只截取前 2000 字符。"""
    files_list = "\n".join(
        f"path: {path}\n```\n{content[:MAX_ARCHITECTURE_FILE_CHARS]}\n```\n" for path, content in files
    )
    project_info = f"项目类型: {project_type}\n\n" if project_type else ""
    return (
        "你是资深软件架构师，正在评审一个代码库。\n\n"
        f"{project_info}"
        f"待评审文件：\n\n{files_list}\n"
        "请给出：\n"
        "1. 整体代码质量分数（0-100）\n"
        "2. 关键的架构观察与模式\n"
        "3. 改进建议\n"
        "4. 架构层面的安全隐患\n\n"
        "输出 JSON（不要输出其它内容）：\n"
        f"{ARCHITECTURE_JSON_SCHEMA}\n"
    )


def build_explain_prompt(content: str, path: str) -> str:
    """代码解释 prompt：自由文本输出，不要求 JSON。"""
    return (
        "请分析下面的代码，清晰地解释它做了什么、目的是什么，以及值得注意的模式或问题。\n\n"
        f"path: {path}\n\n"
        f"```\n{content}\n```\n\n"
        "回答要简洁但完整。"
    )
