"""
Finding 合并与去重（纯函数，确定性）。

规则：
- 去重 key：`(file, line, message)` 精确匹配（不看 severity/category）
- `primary` 全部保留；`secondary` 中 key 未出现过的才保留（primary 优先，secondary 内部先到先得）
- 输出按 severity（critical < high < medium < low）稳定排序，再按行号升序

注意：
- 因为“primary 优先”是非对称的，`merge(merge(A, B), C)` 与 `merge(A, merge(B, C))` 不保证相等。
  整个 pipeline 必须固定同一个 primary 来源（本地扫描器）。
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from devops_agent.review.models import Finding
from devops_agent.review.models import severity_rank


def sort_findings(findings: Iterable[Finding]) -> list[Finding]:
    """按 (severity rank, line) 稳定排序；相同 key 保持原相对顺序。"""
    return sorted(findings, key=lambda f: (severity_rank(f.severity), f.line))


def merge_findings(primary: Sequence[Finding], secondary: Sequence[Finding]) -> list[Finding]:
    merged: list[Finding] = list(primary)
    seen: set[tuple[str, int, str]] = {f.dedup_key() for f in primary}

    for finding in secondary:
        key = finding.dedup_key()
        if key in seen:
            continue
        merged.append(finding)
        seen.add(key)

    return sort_findings(merged)
