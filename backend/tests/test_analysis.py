from __future__ import annotations

import asyncio
import json
import types

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from draftwise.api.dependencies import get_analysis_service, get_current_user, get_session_factory
from draftwise.api.error_handlers import draftwise_exception_handler
from draftwise.api.routes.analysis import router as analysis_router
from draftwise.core.exceptions import AnalysisFailed, DraftwiseError
from draftwise.models.tables import Content
from draftwise.services.analysis_service import AnalysisService, build_prompt, parse_analysis

GOOD_ANALYSIS = {
    "seo": {"score": 72, "suggestions": ["Add a meta description"], "keywords": ["saas", "editor"]},
    "readability": {"score": 81, "suggestions": [], "gradeLevel": 8},
    "engagement": {"score": 64, "suggestions": ["Open with a question"], "tone": "informative"},
}


class FakeCompletions:
    def __init__(self, content=None, error: Exception | None = None):
        self.content = content
        self.error = error
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = types.SimpleNamespace(content=self.content)
        return types.SimpleNamespace(choices=[types.SimpleNamespace(message=message)])


def _service(content=None, error=None) -> tuple[AnalysisService, FakeCompletions]:
    completions = FakeCompletions(content, error)
    client = types.SimpleNamespace(chat=types.SimpleNamespace(completions=completions))
    return AnalysisService(None, client=client), completions


@pytest.fixture
def owner(make_profile):
    return make_profile("owner")


@pytest.fixture
def content_id(session_factory, owner):
    async def _insert():
        async with session_factory() as session:
            item = Content(user_id=owner.id, title="Draft")
            session.add(item)
            await session.commit()
            return item.id

    return asyncio.run(_insert())


def _client(session_factory, user, service) -> TestClient:
    app = FastAPI()
    app.include_router(analysis_router)
    app.add_exception_handler(DraftwiseError, draftwise_exception_handler)
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_analysis_service] = lambda: service
    return TestClient(app)


TEXT = "A long enough piece of text about collaborative writing tools."


def test_analysis_is_persisted(session_factory, owner, content_id):
    service, completions = _service(json.dumps(GOOD_ANALYSIS))
    client = _client(session_factory, owner, service)

    resp = client.post("/api/content/analyze", json={"id": content_id, "text": TEXT})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["analysis"]["readability"]["gradeLevel"] == "8"
    assert completions.calls[0]["response_format"] == {"type": "json_object"}
    assert completions.calls[0]["temperature"] == 0.5

    async def _load():
        async with session_factory() as session:
            return await session.get(Content, content_id)

    item = asyncio.run(_load())
    assert item.seo_analysis["score"] == 72
    assert item.seo_analysis["keywords"] == ["saas", "editor"]
    assert item.engagement_analysis["tone"] == "informative"
    assert item.updated_at >= item.created_at


def test_foreign_content_is_404(session_factory, make_profile, content_id):
    stranger = make_profile("stranger")
    service, completions = _service(json.dumps(GOOD_ANALYSIS))
    resp = _client(session_factory, stranger, service).post("/api/content/analyze", json={"id": content_id, "text": TEXT})
    assert resp.status_code == 404
    assert completions.calls == []


def test_unconfigured_service_is_503(session_factory, owner, content_id):
    resp = _client(session_factory, owner, AnalysisService(None)).post(
        "/api/content/analyze", json={"id": content_id, "text": TEXT}
    )
    assert resp.status_code == 503
    assert resp.json()["error"] == "AnalysisUnavailable"


def test_malformed_model_output_is_500(session_factory, owner, content_id):
    service, _ = _service('{"seo": {"score": 500}}')
    resp = _client(session_factory, owner, service).post("/api/content/analyze", json={"id": content_id, "text": TEXT})
    assert resp.status_code == 500
    assert resp.json()["details"] == "Failed to parse analysis results from AI."


def test_short_text_is_rejected(session_factory, owner, content_id):
    service, _ = _service(json.dumps(GOOD_ANALYSIS))
    resp = _client(session_factory, owner, service).post("/api/content/analyze", json={"id": content_id, "text": "short"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_model_error_becomes_analysis_failed():
    import httpx
    from openai import APIConnectionError

    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    service, _ = _service(error=APIConnectionError(request=request))
    with pytest.raises(AnalysisFailed):
        await service.analyze(TEXT)


def test_parse_analysis_rejects_empty_and_invalid():
    with pytest.raises(AnalysisFailed):
        parse_analysis(None)
    with pytest.raises(AnalysisFailed):
        parse_analysis("not json")
    assert parse_analysis(json.dumps(GOOD_ANALYSIS)).seo.keywords == ["saas", "editor"]


def test_prompt_embeds_text():
    prompt = build_prompt("hello world")
    assert "--- START TEXT ---\nhello world\n--- END TEXT ---" in prompt
