from __future__ import annotations

import json
from pathlib import Path

from fastapi import FastAPI
from fastapi.testclient import TestClient

from devops_agent.api.routes import build_review_router
from devops_agent.config import ReviewConfig
from devops_agent.review.orchestrator import ReviewAgent


async def _service(prompt: str) -> str:
    return json.dumps({"issues": [{"line": 3, "severity": "high", "category": "AI", "message": "race"}]})


def _client(with_llm: bool = True) -> TestClient:
    agent = ReviewAgent(config=ReviewConfig(request_delay_seconds=0), complete=_service if with_llm else None)
    app = FastAPI()
    app.include_router(build_review_router(agent=agent))
    return TestClient(app)


def test_review_file_returns_merged_findings() -> None:
    response = _client().post("/review/file", json={"path": "a.js", "content": "eval(x);"})
    assert response.status_code == 200
    body = response.json()
    assert [(f["line"], f["severity"]) for f in body] == [(1, "critical"), (3, "high")]


def test_review_missing_path_is_404() -> None:
    response = _client().post("/review", json={"target_path": "/definitely/not/here"})
    assert response.status_code == 404


def test_review_directory(tmp_path: Path) -> None:
    (tmp_path / "a.js").write_text("debugger;\n", encoding="utf-8")
    response = _client().post("/review", json={"target_path": str(tmp_path), "mode": "fast"})
    assert response.status_code == 200
    assert response.json()["summary"]["high"] == 1


def test_fix_without_llm_is_503(tmp_path: Path) -> None:
    response = _client(with_llm=False).post("/fix", json={"target_path": str(tmp_path)})
    assert response.status_code == 503


def test_fix_local_rewrites_without_llm(tmp_path: Path) -> None:
    target = tmp_path / "a.js"
    target.write_text("var a = 1;\ndebugger;\n", encoding="utf-8")

    response = _client(with_llm=False).post("/fix/local", json={"target_path": str(tmp_path)})

    assert response.status_code == 200
    assert response.json()["fixed"] == 2
    assert target.read_text(encoding="utf-8") == "const a = 1;\n"


def test_fix_local_missing_path_is_404() -> None:
    response = _client().post("/fix/local", json={"target_path": "/definitely/not/here"})
    assert response.status_code == 404
