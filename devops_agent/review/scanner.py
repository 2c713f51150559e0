"""
本地规则扫描器（非 AI，确定性，便宜）。

特点：
- 每条规则是一个纯函数：`(text, path) -> list[Finding]`
- 只做逐行正则匹配（JS/TS 为主）；命中即产出 finding，severity/kind 由规则自己给定
- 部分规则的问题可以本地自动修复（`auto_fixable`），与 AI fix engine 无关

在 hybrid 模式下，本扫描器的结果是合并时的 primary 来源。
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from devops_agent.review.merger import sort_findings
from devops_agent.review.models import Finding
from devops_agent.review.models import Kind
from devops_agent.review.models import Severity

RuleCheck = Callable[[str, str], list[Finding]]


@dataclass(frozen=True)
class Rule:
    id: str
    name: str
    category: str
    severity: Severity
    check: RuleCheck


def _is_line_comment(line: str) -> bool:
    return line.strip().startswith("//")


def _line_rule(
    pattern: re.Pattern[str],
    kind: Kind,
    severity: Severity,
    category: str,
    message: str,
    suggested_fix: str,
    auto_fixable: bool = False,
    skip_comments: bool = True,
    extensions: tuple[str, ...] = (),
) -> RuleCheck:
    """构造“逐行匹配一个正则”的 check 函数。"""

    def check(text: str, path: str) -> list[Finding]:
        if extensions and not path.endswith(extensions):
            return []
        findings: list[Finding] = []
        for index, line in enumerate(text.split("\n")):
            if skip_comments and _is_line_comment(line):
                continue
            if not pattern.search(line):
                continue
            findings.append(
                Finding(
                    kind=kind,
                    severity=severity,
                    category=category,
                    message=message,
                    file=path,
                    line=index + 1,
                    snippet=line.strip(),
                    suggested_fix=suggested_fix,
                    auto_fixable=auto_fixable,
                )
            )
        return findings

    return check


def _check_empty_catch(text: str, path: str) -> list[Finding]:
    """`catch (...) {` 之后（跳过空行）紧跟 `}` 视为空 catch。"""
    lines = text.split("\n")
    findings: list[Finding] = []
    for index, line in enumerate(lines):
        if not re.search(r"catch\s*\([^)]*\)\s*\{", line):
            continue
        next_index = index + 1
        while next_index < len(lines) and lines[next_index].strip() == "":
            next_index += 1
        if next_index < len(lines) and lines[next_index].strip() == "}":
            findings.append(
                Finding(
                    kind="error",
                    severity="high",
                    category="Error Handling",
                    message="Empty catch block - errors are silently ignored",
                    file=path,
                    line=index + 1,
                    snippet=line.strip(),
                    suggested_fix="Add error logging or proper error handling",
                )
            )
    return findings


_CREDENTIAL_PATTERN = re.compile(r"(password|api[_-]?key|secret|token)\s*[:=]\s*['\"]", re.IGNORECASE)

DEFAULT_RULES: tuple[Rule, ...] = (
    Rule(
        id="no-eval",
        name="Avoid eval() usage",
        category="Security",
        severity="critical",
        check=_line_rule(
            pattern=re.compile(r"\beval\s*\("),
            kind="error",
            severity="critical",
            category="Security",
            message="Usage of eval() is dangerous and should be avoided",
            suggested_fix="Consider using safer alternatives like JSON.parse() or Function constructor",
            skip_comments=False,
        ),
    ),
    Rule(
        id="no-console-log",
        name="Remove console.log statements",
        category="Code Quality",
        severity="low",
        check=_line_rule(
            pattern=re.compile(r"console\.log\s*\("),
            kind="warning",
            severity="low",
            category="Code Quality",
            message="console.log should be removed in production code",
            suggested_fix="Remove or replace with proper logging framework",
            auto_fixable=True,
        ),
    ),
    Rule(
        id="no-var",
        name="Use let/const instead of var",
        category="Best Practices",
        severity="medium",
        check=_line_rule(
            pattern=re.compile(r"\bvar\s+\w+"),
            kind="warning",
            severity="medium",
            category="Best Practices",
            message="Use let or const instead of var",
            suggested_fix="Replace var with const (or let if reassigned)",
            auto_fixable=True,
        ),
    ),
    Rule(
        id="no-any-type",
        name="Avoid using any type in TypeScript",
        category="Type Safety",
        severity="medium",
        check=_line_rule(
            pattern=re.compile(r":\s*any\b"),
            kind="warning",
            severity="medium",
            category="Type Safety",
            message='Avoid using "any" type - use specific types instead',
            suggested_fix="Define a proper interface or use unknown with type guards",
            extensions=(".ts", ".tsx"),
        ),
    ),
    Rule(
        id="no-empty-catch",
        name="Empty catch blocks",
        category="Error Handling",
        severity="high",
        check=_check_empty_catch,
    ),
    Rule(
        id="no-hardcoded-credentials",
        name="Detect hardcoded credentials",
        category="Security",
        severity="critical",
        check=_line_rule(
            pattern=_CREDENTIAL_PATTERN,
            kind="error",
            severity="critical",
            category="Security",
            message="Possible hardcoded credential detected",
            suggested_fix="Use environment variables or secure secret management",
        ),
    ),
    Rule(
        id="no-todo-comments",
        name="Unresolved TODO comments",
        category="Code Quality",
        severity="low",
        check=_line_rule(
            pattern=re.compile(r"(//|/\*)\s*TODO", re.IGNORECASE),
            kind="info",
            severity="low",
            category="Code Quality",
            message="Unresolved TODO comment found",
            suggested_fix="Address the TODO or create a tracking issue",
            skip_comments=False,
        ),
    ),
    Rule(
        id="no-debugger",
        name="Remove debugger statements",
        category="Code Quality",
        severity="high",
        check=_line_rule(
            pattern=re.compile(r"\bdebugger\b"),
            kind="error",
            severity="high",
            category="Code Quality",
            message="debugger statement should be removed",
            suggested_fix="Remove the debugger statement",
            auto_fixable=True,
        ),
    ),
)


def scan_text(text: str, path: str, rules: Sequence[Rule] = DEFAULT_RULES) -> list[Finding]:
    """跑所有规则，结果按 severity、行号排序。"""
    findings: list[Finding] = []
    for rule in rules:
        findings.extend(rule.check(text, path))
    return sort_findings(findings)


def apply_local_fixes(text: str, findings: Sequence[Finding]) -> tuple[str, int]:
    """
    应用本地规则的自动修复，返回 `(新文本, 实际修复条数)`。

    - 只处理 `auto_fixable` 的 finding
    - 从下往上按行号处理，删除行不会影响上面 finding 的行号
    """
    lines = text.split("\n")
    applied = 0
    fixable = sorted((f for f in findings if f.auto_fixable), key=lambda f: f.line, reverse=True)
    removed: set[int] = set()

    for finding in fixable:
        index = finding.line - 1
        if index < 0 or index >= len(lines) or index in removed:
            continue
        line = lines[index]
        if finding.category == "Code Quality" and re.search(r"console\.log|\bdebugger\b", line):
            del lines[index]
            removed.add(index)
            applied += 1
        elif finding.category == "Best Practices" and re.search(r"\bvar\s+\w+", line):
            lines[index] = re.sub(r"\bvar\b", "const", line, count=1)
            applied += 1

    return "\n".join(lines), applied
