from __future__ import annotations

"""
文件发现与读写（pipeline 的外部协作者）。

- `scan_repo_files`：同步遍历目录（调用方用 `anyio.to_thread` 包一层）
- `read_file` / `write_file`：异步 UTF-8 读写；失败直接抛给 pipeline
"""

import os

import anyio

DEFAULT_EXTENSIONS = {".ts", ".tsx", ".js", ".jsx"}
EXCLUDED_DIRS = {".git", "node_modules", ".venv", "dist", "build", "__pycache__"}
EXCLUDED_SUFFIXES = (".min.js",)


def scan_repo_files(repo_dir: str, allowed_extensions: set[str], max_bytes: int) -> list[str]:
    if max_bytes <= 0:
        raise ValueError("max_bytes must be > 0")
    if os.path.isfile(repo_dir):
        return [os.path.abspath(repo_dir)]
    files: list[str] = []
    for root, dirs, filenames in os.walk(repo_dir):
        dirs[:] = [d for d in dirs if d not in EXCLUDED_DIRS]
        for name in filenames:
            if name.endswith(EXCLUDED_SUFFIXES):
                continue
            path = os.path.abspath(os.path.join(root, name))
            ext = os.path.splitext(name)[1].lower()
            if ext not in allowed_extensions:
                continue
            try:
                size = os.path.getsize(path)
            except OSError:
                continue
            if size > max_bytes:
                continue
            files.append(path)
    return sorted(set(files))


async def find_files(repo_dir: str, allowed_extensions: set[str], max_bytes: int) -> list[str]:
    return await anyio.to_thread.run_sync(scan_repo_files, repo_dir, allowed_extensions, max_bytes)


async def read_file(path: str) -> str:
    return await anyio.Path(path).read_text(encoding="utf-8")


async def write_file(path: str, text: str) -> None:
    await anyio.Path(path).write_text(text, encoding="utf-8")
