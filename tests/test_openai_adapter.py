import json
from decimal import Decimal

import httpx
import pytest

from tutorgen.adapters.llm import (
    LLMAuthenticationError,
    LLMConfig,
    LLMInvalidRequestError,
    LLMMessage,
    LLMRateLimitError,
    LLMServerError,
    LLMTimeoutError,
    OpenAIAdapter,
)

MESSAGES = [LLMMessage(role="system", content="be brief"), LLMMessage(role="user", content="hi")]


def completion(content, prompt_tokens=10, completion_tokens=5):
    return {
        "choices": [{"message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
        "usage": {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": prompt_tokens + completion_tokens,
        },
    }


def adapter_with(handler):
    return OpenAIAdapter(
        api_key="sk-test",
        api_base="https://llm.example.org/v1",
        transport=httpx.MockTransport(handler),
    )


async def test_chat_completion_maps_response():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=completion('{"ok": true}', 1000, 2000))

    response = await adapter_with(handler).execute_chat(MESSAGES, LLMConfig(model="gpt-5-mini", temperature=0.6))

    assert response.content == '{"ok": true}'
    assert response.usage.total_tokens == 3000
    assert response.estimated_cost_usd == Decimal("0.00425")
    assert response.finish_reason == "stop"

    request = seen[0]
    body = json.loads(request.content)
    assert request.url.path == "/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-test"
    assert body["model"] == "gpt-5-mini"
    assert body["temperature"] == 0.6
    assert body["response_format"] == {"type": "json_object"}
    assert [m["role"] for m in body["messages"]] == ["system", "user"]


@pytest.mark.parametrize(
    "status,error",
    [
        (401, LLMAuthenticationError),
        (429, LLMRateLimitError),
        (400, LLMInvalidRequestError),
        (503, LLMServerError),
    ],
)
async def test_http_errors_map_to_adapter_errors(status, error):
    adapter = adapter_with(lambda request: httpx.Response(status, json={"error": {"message": "nope"}}))
    with pytest.raises(error) as exc:
        await adapter.execute_chat(MESSAGES, LLMConfig(model="gpt-5-mini"))
    assert exc.value.details["status_code"] == status


async def test_transport_timeout_maps_to_timeout_error():
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(LLMTimeoutError):
        await adapter_with(handler).execute_chat(MESSAGES, LLMConfig(model="gpt-5-mini", timeout=1))


async def test_json_mode_rejection_retries_without_response_format():
    bodies = []

    def handler(request):
        body = json.loads(request.content)
        bodies.append(body)
        if "response_format" in body:
            return httpx.Response(400, json={"error": {"message": "response_format is not supported"}})
        return httpx.Response(200, json=completion("{}"))

    response = await adapter_with(handler).execute_chat(MESSAGES, LLMConfig(model="gpt-5-mini"))

    assert response.content == "{}"
    assert len(bodies) == 2
    assert "response_format" not in bodies[1]


async def test_malformed_payload_is_a_server_error():
    adapter = adapter_with(lambda request: httpx.Response(200, json={"choices": []}))
    with pytest.raises(LLMServerError):
        await adapter.execute_chat(MESSAGES, LLMConfig(model="gpt-5-mini"))


async def test_non_json_body_is_a_server_error():
    adapter = adapter_with(lambda request: httpx.Response(200, text="<html>gateway</html>"))
    with pytest.raises(LLMServerError) as exc:
        await adapter.execute_chat(MESSAGES, LLMConfig(model="gpt-5-mini"))
    assert exc.value.details["response"] == "<html>gateway</html>"



async def test_embeddings_are_returned_in_input_order():
    def handler(request):
        body = json.loads(request.content)
        assert body["input"] == ["a", "b"]
        return httpx.Response(200, json={"data": [
            {"index": 1, "embedding": [0.0, 1.0]},
            {"index": 0, "embedding": [1.0, 0.0]},
        ]})

    vectors = await adapter_with(handler).embed(["a", "b"])
    assert vectors == [[1.0, 0.0], [0.0, 1.0]]


async def test_embedding_count_mismatch_is_an_error():
    adapter = adapter_with(lambda request: httpx.Response(200, json={"data": [{"index": 0, "embedding": [1.0]}]}))
    with pytest.raises(LLMServerError):
        await adapter.embed(["a", "b"])


async def test_empty_embedding_batch_skips_the_request():
    def handler(request):
        raise AssertionError("no request expected")

    assert await adapter_with(handler).embed([]) == []
