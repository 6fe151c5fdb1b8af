import asyncio
import json

import pytest

from agents.gateway_bindings import bind_extractors
from agents.skill_extractor import extract_skills
from agents.topic_extractor import extract_topics
from agents.types import TopicList
from config.registry import SKILL_KEY, TOPIC_KEY, unbind_model
from config.routes import AppConfig, LlmRoute
from llm_gateway import LlmGatewayError, chat


class FakeResponse:
    def __init__(self, content, status_code=200):
        self.status_code = status_code
        self._content = content

    def json(self):
        return {"choices": [{"message": {"content": self._content}}]}

    @property
    def text(self):
        return self._content


class FakeClient:
    def __init__(self, replies):
        self.replies = list(replies)
        self.requests = []

    async def post(self, url, *, json, headers, timeout):
        self.requests.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        reply = self.replies.pop(0)
        if isinstance(reply, FakeResponse):
            return reply
        return FakeResponse(reply)


def _route(**overrides):
    data = {
        "name": "extractor",
        "base_url": "http://llm.local",
        "endpoint": "/v1/chat/completions",
        "model": "test-model",
        "timeout_s": 5.0,
        "max_retries": 1,
    }
    data.update(overrides)
    return LlmRoute(**data)


def test_chat_validates_and_strips_fences():
    client = FakeClient(['```json\n{"topics": ["Kafka"]}\n```'])
    result = asyncio.run(chat([{"role": "user", "content": "hi"}], TopicList, cfg=_route(), client=client))
    assert result.topics == ["Kafka"]
    request = client.requests[0]
    assert request["url"] == "http://llm.local/v1/chat/completions"
    assert request["json"]["messages"][0]["role"] == "system"


def test_chat_accepts_bare_topic_array():
    client = FakeClient(['["Kafka", "Redis"]'])
    result = asyncio.run(chat([{"role": "user", "content": "hi"}], TopicList, cfg=_route(), client=client))
    assert result.topics == ["Kafka", "Redis"]


def test_chat_retries_with_hint_after_invalid_output():
    client = FakeClient(['{"topics": 5}', '{"topics": ["Helm"]}'])
    result = asyncio.run(chat([{"role": "user", "content": "hi"}], TopicList, cfg=_route(), client=client))
    assert result.topics == ["Helm"]
    retry_messages = client.requests[1]["json"]["messages"]
    assert retry_messages[-1]["content"].startswith("The previous reply failed validation.")


def test_chat_gives_up_after_retries():
    client = FakeClient(["not json", "still not json"])
    with pytest.raises(LlmGatewayError):
        asyncio.run(chat([{"role": "user", "content": "hi"}], TopicList, cfg=_route(), client=client))


def test_chat_raises_on_error_status():
    client = FakeClient([FakeResponse("", status_code=503)])
    with pytest.raises(LlmGatewayError):
        asyncio.run(chat([{"role": "user", "content": "hi"}], TopicList, cfg=_route(), client=client))


def test_chat_sends_api_key_header(monkeypatch):
    monkeypatch.setenv("TEST_LLM_KEY", "secret")
    client = FakeClient(['{"topics": []}'])
    asyncio.run(
        chat([{"role": "user", "content": "hi"}], TopicList, cfg=_route(api_key_env="TEST_LLM_KEY"), client=client)
    )
    assert client.requests[0]["headers"]["Authorization"] == "Bearer secret"


def test_bind_extractors_routes_through_gateway():
    cfg = AppConfig(
        llm_routes={"fast": _route(name="fast")},
        registry={TOPIC_KEY: "fast", SKILL_KEY: "fast"},
    )
    client = FakeClient(
        [
            json.dumps({"topics": ["Kubernetes", "kubernetes"]}),
            json.dumps({"skills": [{"name": "Kubernetes", "evidence": "k8s", "confidence": 0.8}]}),
        ]
    )
    bind_extractors(cfg, client=client)
    try:
        topics = asyncio.run(extract_topics("I run Kubernetes"))
        skills = asyncio.run(extract_skills("I run Kubernetes"))
    finally:
        unbind_model(TOPIC_KEY)
        unbind_model(SKILL_KEY)
    assert topics == ["Kubernetes"]
    assert skills[0].name == "Kubernetes"
    system_prompt = client.requests[0]["json"]["messages"][1]["content"]
    assert "topics" in system_prompt


def test_bind_extractors_requires_registry_entries():
    cfg = AppConfig(llm_routes={"fast": _route(name="fast")}, registry={TOPIC_KEY: "fast"})
    with pytest.raises(KeyError):
        bind_extractors(cfg)
