import json

import httpx
import pytest

from retail_nlq.handlers.error_handler import GenerationError
from retail_nlq.llm.factory import build_llm
from retail_nlq.llm.gemini_client import GeminiChat, _flatten
from retail_nlq.llm.openrouter_client import OpenRouterChat
from retail_nlq.utils.config_loader import EngineConfig

MESSAGES = [
    {"role": "system", "content": "schema"},
    {"role": "system", "content": ""},
    {"role": "user", "content": "本月營收？"},
]


def openrouter(handler, api_key="sk-test"):
    return OpenRouterChat(model="google/gemini-2.0-flash-001", api_key=api_key, transport=httpx.MockTransport(handler))


def test_openrouter_missing_key_makes_no_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    with pytest.raises(GenerationError, match="LLM_API_KEY not configured"):
        openrouter(handler, api_key=None).complete(MESSAGES)
    assert calls == []


def test_openrouter_success_drops_empty_messages():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(200, json={"choices": [{"message": {"content": "  SELECT 1  "}}]})

    out = openrouter(handler).complete(MESSAGES, max_output_tokens=2000)

    assert out == "SELECT 1"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["max_tokens"] == 2000
    assert [m["content"] for m in seen["body"]["messages"]] == ["schema", "本月營收？"]


def test_openrouter_error_status_carries_status_and_body():
    def handler(request):
        return httpx.Response(500, text="upstream down")

    with pytest.raises(GenerationError) as exc:
        openrouter(handler).complete(MESSAGES)
    assert "500" in str(exc.value)
    assert "upstream down" in str(exc.value)


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"choices": []}),
        httpx.Response(200, json={"data": 1}),
    ],
)
def test_openrouter_malformed_response(response):
    with pytest.raises(GenerationError, match="malformed"):
        openrouter(lambda request: response).complete(MESSAGES)


def test_openrouter_empty_content():
    def handler(request):
        return httpx.Response(200, json={"choices": [{"message": {"content": ""}}]})

    with pytest.raises(GenerationError, match="empty"):
        openrouter(handler).complete(MESSAGES)


def test_openrouter_transport_error_is_wrapped():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(GenerationError, match="request failed"):
        openrouter(handler).complete(MESSAGES)


def test_gemini_missing_key():
    with pytest.raises(GenerationError, match="GEMINI_API_KEY"):
        GeminiChat(model="gemini-2.5-flash").complete(MESSAGES)


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModel:
    def __init__(self, result):
        self.result = result
        self.prompts = []

    def generate_content(self, prompt, generation_config=None, request_options=None):
        self.prompts.append((prompt, generation_config, request_options))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


def gemini_with(result):
    chat = GeminiChat(model="gemini-2.5-flash", api_key="g-test", timeout_s=12)
    chat._model = FakeModel(result)
    return chat


def test_gemini_success():
    chat = gemini_with(FakeResponse(" SELECT 1 "))
    assert chat.complete(MESSAGES, max_output_tokens=50) == "SELECT 1"
    prompt, gen_cfg, opts = chat._model.prompts[0]
    assert prompt == "schema\n\nUser: 本月營收？"
    assert gen_cfg["max_output_tokens"] == 50
    assert opts == {"timeout": 12}


def test_gemini_api_failure_is_wrapped():
    with pytest.raises(GenerationError, match="Gemini API error"):
        gemini_with(RuntimeError("quota")).complete(MESSAGES)


def test_gemini_empty_text():
    with pytest.raises(GenerationError, match="empty"):
        gemini_with(FakeResponse("")).complete(MESSAGES)


def test_flatten_labels_turns():
    msgs = [
        {"role": "system", "content": "rules"},
        {"role": "user", "content": "q1"},
        {"role": "assistant", "content": "a1"},
    ]
    assert _flatten(msgs) == "rules\n\nUser: q1\nAssistant: a1"


def test_factory_picks_provider():
    assert isinstance(build_llm(EngineConfig(provider="openrouter", model="m")), OpenRouterChat)
    assert isinstance(build_llm(EngineConfig()), GeminiChat)
