"""
Review 领域模型（Pydantic）。

用途：
- 明确各组件输入/输出的数据结构（Finding / AnalysisResult / FixProposal ...）
- 全部是值对象：谁持有谁负责，不做跨组件共享的可变状态
- `RawIssue` 是服务端单条 issue 的宽松 schema，只在 parser 内部使用，
  随后再归一化成 `Finding`
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

Kind = Literal["error", "warning", "info"]
Severity = Literal["critical", "high", "medium", "low"]

# critical > high > medium > low，数值越小越靠前
SEVERITY_RANK: dict[str, int] = {"critical": 0, "high": 1, "medium": 2, "low": 3}


def severity_rank(severity: str) -> int:
    """未知 severity 排在最后（不会出现在校验过的 Finding 上，只是兜底）。"""
    return SEVERITY_RANK.get(severity, len(SEVERITY_RANK))


def kind_for_severity(severity: Severity) -> Kind:
    """归一化服务端输出时使用：critical/high 视为 error，其余为 warning。"""
    if severity in ("critical", "high"):
        return "error"
    return "warning"


class Finding(BaseModel):
    """一条缺陷（报告里叫 issue）。"""

    kind: Kind
    severity: Severity
    category: str
    message: str
    file: str
    line: int = Field(ge=1)
    column: int | None = None
    snippet: str | None = None
    suggested_fix: str | None = None
    auto_fixable: bool = False

    def dedup_key(self) -> tuple[str, int, str]:
        """合并去重用的 key：`(file, line, message)` 精确匹配。"""
        return (self.file, self.line, self.message)


class AnalysisResult(BaseModel):
    """
    一个文件的一次逻辑 review 结果（可能由多个 chunk 拼起来）。

    `complete` 在累积过程中为 False；编排器返回时一定是 True。
    """

    findings: list[Finding] = Field(default_factory=list)
    summary: str = ""
    suggestions: list[str] = Field(default_factory=list)
    architectural_insights: list[str] = Field(default_factory=list)
    complete: bool = False


class FixProposal(BaseModel):
    """针对一条 finding 的候选补丁：总是完整的文件内容（不建模 diff）。"""

    original_text: str
    patched_text: str
    explanation: str
    confidence: int = Field(ge=0, le=100)


class FixDetail(BaseModel):
    """被接受的 fix 的明细记录。"""

    file: str
    line: int
    finding: str
    confidence: int
    explanation: str


class FixBatchOutcome(BaseModel):
    """单文件一批 fix 的结果（不持久化）。`text` 由调用方决定是否写回。"""

    text: str
    fixed: int = 0
    failed: int = 0
    details: list[FixDetail] = Field(default_factory=list)


class FixRunOutcome(BaseModel):
    """多文件汇总后的 fix 结果（pipeline 层使用）。"""

    fixed: int = 0
    failed: int = 0
    eligible: int = 0
    files_changed: list[str] = Field(default_factory=list)
    details: list[FixDetail] = Field(default_factory=list)
    dry_run: bool = False


class ArchitectureReview(BaseModel):
    """跨文件的架构评审结果。"""

    overall_quality: int | None = None
    insights: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    security_concerns: list[str] = Field(default_factory=list)


class FileInsight(BaseModel):
    file: str
    insights: list[str]


class AIInsights(BaseModel):
    architectural_review: ArchitectureReview | None = None
    file_insights: list[FileInsight] = Field(default_factory=list)


class ReviewSummary(BaseModel):
    total_issues: int
    critical: int
    high: int
    medium: int
    low: int
    auto_fixable: int


class ReviewReport(BaseModel):
    """一次完整 review 的报告（渲染由 synthesis 负责）。"""

    summary: ReviewSummary
    findings: list[Finding] = Field(default_factory=list)
    files_analyzed: int
    timestamp: str
    ai_insights: AIInsights | None = None


# ---------------------------------------------------------------------------
# 服务端 JSON 的宽松 schema（camelCase 与 prompt 里约定的字段名一致）
# ---------------------------------------------------------------------------


class RawIssue(BaseModel):
    """单条 issue 的宽松 schema：line/column 解析不了就当作缺失。"""

    line: int | None = None
    column: int | None = None
    severity: str | None = None
    category: str | None = None
    message: str | None = None
    suggestedFix: str | None = None
    autoFixable: bool = False

    @field_validator("line", "column", mode="before")
    @classmethod
    def _lenient_int(cls, value: object) -> int | None:
        if isinstance(value, bool) or value is None:
            return None
        try:
            return int(value)  # type: ignore[arg-type]
        except (TypeError, ValueError, OverflowError):
            return None

    @field_validator("autoFixable", mode="before")
    @classmethod
    def _lenient_bool(cls, value: object) -> bool:
        return value is True or (isinstance(value, str) and value.strip().lower() in ("true", "yes"))
