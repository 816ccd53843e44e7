import pytest

from foliorelay.domain.errors import InvalidResponse
from foliorelay.domain.models.ai import CompletionRequest
from foliorelay.domain.models.transport import TransportResponse
from foliorelay.infrastructure.ai.chat_completions import OpenAIProvider, OpenRouterProvider


@pytest.fixture
def completion_body():
    return {
        "model": "gpt-3.5-turbo-0125",
        "choices": [{"message": {"role": "assistant", "content": "Mocked AI response"}}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30},
    }


def test_provider_without_key_is_not_configured():
    """A missing key only marks the provider unconfigured; it does not raise."""
    provider = OpenAIProvider(api_key=None)
    assert provider.configured is False
    assert provider.model == OpenAIProvider.DEFAULT_MODEL


def test_openai_request_shape():
    provider = OpenAIProvider(api_key="test_key", model="gpt-4o-mini", timeout_s=12)
    request = provider.build_request(CompletionRequest(prompt="Explain Python", system_prompt="Be helpful.", max_tokens=50))

    assert request.method == "POST"
    assert request.url == "https://api.openai.com/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer test_key"
    assert request.timeout_s == 12
    assert request.json_body["model"] == "gpt-4o-mini"
    assert request.json_body["max_tokens"] == 50
    assert request.json_body["messages"] == [
        {"role": "system", "content": "Be helpful."},
        {"role": "user", "content": "Explain Python"},
    ]


def test_openrouter_adds_attribution_headers():
    provider = OpenRouterProvider(api_key="or_key", referer="https://example.org", title="demo")
    request = provider.build_request(CompletionRequest(prompt="hi"))

    assert request.url.startswith("https://openrouter.ai/")
    assert request.headers["HTTP-Referer"] == "https://example.org"
    assert request.headers["X-Title"] == "demo"
    assert request.headers["Authorization"] == "Bearer or_key"
    assert request.json_body["model"] == OpenRouterProvider.DEFAULT_MODEL


def test_parse_response_with_usage(completion_body):
    provider = OpenAIProvider(api_key="test_key")
    result = provider.parse_response(TransportResponse(200, body=completion_body))

    assert result.content == "Mocked AI response"
    assert result.provider == "openai"
    assert result.model_name == "gpt-3.5-turbo-0125"
    assert result.token_usage == {"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30}


def test_parse_response_without_usage():
    provider = OpenRouterProvider(api_key="k")
    result = provider.parse_response(TransportResponse(200, body={"choices": [{"message": {"content": "ok"}}]}))

    assert result.content == "ok"
    assert result.token_usage is None
    assert result.model_name == OpenRouterProvider.DEFAULT_MODEL


@pytest.mark.parametrize("body", [
    {},
    {"choices": []},
    {"choices": [{"message": {}}]},
    {"choices": [{"message": {"content": None}}]},
    "<html>gateway</html>",
])
def test_unexpected_body_raises_invalid_response(body):
    provider = OpenAIProvider(api_key="k")
    with pytest.raises(InvalidResponse):
        provider.parse_response(TransportResponse(200, body=body))


@pytest.mark.parametrize("content", ["", "   "])
def test_empty_answer_text_is_invalid(content):
    provider = OpenRouterProvider(api_key="k")
    body = {"choices": [{"message": {"content": content}}]}
    with pytest.raises(InvalidResponse, match="no answer text"):
        provider.parse_response(TransportResponse(200, body=body))
