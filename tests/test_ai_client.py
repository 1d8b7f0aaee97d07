"""Unit tests for AIServiceClient (retry and response handling)."""
import httpx
import pytest

from app.services.ai_client import AIServiceClient


def _client(handler, max_retries: int = 0) -> AIServiceClient:
    return AIServiceClient(
        base_url="http://ai.test/",
        api_key="",
        max_retries=max_retries,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_success_parses_json():
    client = _client(lambda request: httpx.Response(200, json={"summary": "ok"}))
    result = await client.call("/summarize", {"text": "t"})
    assert result.ok
    assert result.data == {"summary": "ok"}
    assert result.loggable_response() == {"summary": "ok"}


@pytest.mark.asyncio
async def test_no_authorization_header_without_key():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={})

    await _client(handler).call("/summarize", {"text": "t"})
    assert "Authorization" not in seen[0].headers
    assert str(seen[0].url) == "http://ai.test/summarize"


@pytest.mark.asyncio
async def test_non_json_success_is_an_error():
    client = _client(lambda request: httpx.Response(200, content=b"<html>"))
    result = await client.call("/summarize", {"text": "t"})
    assert not result.ok
    assert result.status_code == 200
    assert result.loggable_response() == "<html>"


@pytest.mark.asyncio
async def test_error_body_keeps_structured_message():
    client = _client(lambda request: httpx.Response(400, json={"error": "bad input"}))
    result = await client.call("/code-review", {"code": ""})
    assert not result.ok
    assert result.status_code == 400
    assert result.error_message == "bad input"


@pytest.mark.asyncio
async def test_connect_errors_are_retried(monkeypatch):
    calls = []

    async def _no_sleep(_):
        return None

    monkeypatch.setattr("app.services.ai_client.asyncio.sleep", _no_sleep)

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            raise httpx.ConnectError("refused")
        return httpx.Response(200, json={"review": "ok"})

    result = await _client(handler, max_retries=2).call("/code-review", {"code": "x"})
    assert result.ok
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_retries_exhausted_returns_status_zero(monkeypatch):
    async def _no_sleep(_):
        return None

    monkeypatch.setattr("app.services.ai_client.asyncio.sleep", _no_sleep)

    def handler(request):
        raise httpx.ConnectError("refused")

    result = await _client(handler, max_retries=1).call("/code-review", {"code": "x"})
    assert result.status_code == 0
    assert not result.ok
    assert "refused" in result.error


@pytest.mark.asyncio
async def test_timeout_is_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ReadTimeout("slow")

    result = await _client(handler, max_retries=3).call("/summarize", {"text": "t"})
    assert result.status_code == 0
    assert len(calls) == 1
