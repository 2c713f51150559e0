from __future__ import annotations

from devops_agent.llm.client import _normalize_base_url


def test_normalize_base_url_appends_v1() -> None:
    assert _normalize_base_url(base_url="https://llm.example.com/") == "https://llm.example.com/v1"


def test_normalize_base_url_keeps_existing_v1() -> None:
    assert _normalize_base_url(base_url="http://127.0.0.1:9001/v1") == "http://127.0.0.1:9001/v1"
