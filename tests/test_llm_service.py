"""
Tests for the Ollama client with the HTTP layer monkeypatched.

Run:
  pytest -q tests/test_llm_service.py
"""
import asyncio
import json

import pytest
import requests

from core.exceptions import BackendError, InvalidArgumentError
from services import llm_service
from services.llm_service import OllamaLLMService


class _FakeResponse:
    def __init__(self, payload=None, lines=None, status_code=200):
        self._payload = payload
        self._lines = lines or []
        self.status_code = status_code
        self.text = json.dumps(payload) if payload is not None else ""
        self.closed = False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(response=self)

    def json(self):
        return self._payload

    def iter_lines(self, decode_unicode=False):
        return iter(self._lines)

    def close(self):
        self.closed = True


def _patch_post(monkeypatch, response=None, error=None):
    calls = []

    def fake_post(url, json=None, timeout=None, stream=False):
        calls.append({"url": url, "json": json, "stream": stream})
        if error is not None:
            raise error
        return response

    monkeypatch.setattr(llm_service.requests, "post", fake_post)
    return calls


def test_complete_returns_response_text(monkeypatch):
    calls = _patch_post(monkeypatch, _FakeResponse({"response": "hello", "done": True}))
    llm = OllamaLLMService(base_url="http://llm:11434/", model="m", temperature=0.2)

    assert asyncio.run(llm.complete("hi")) == "hello"
    assert calls[0]["url"] == "http://llm:11434/api/generate"
    assert calls[0]["json"] == {"model": "m", "prompt": "hi", "stream": False, "options": {"temperature": 0.2}}


@pytest.mark.parametrize("error", [
    requests.exceptions.Timeout(),
    requests.exceptions.ConnectionError(),
])
def test_transport_errors_become_backend_errors(monkeypatch, error):
    _patch_post(monkeypatch, error=error)

    with pytest.raises(BackendError):
        asyncio.run(OllamaLLMService().complete("hi"))


def test_http_error_and_error_payload(monkeypatch):
    _patch_post(monkeypatch, _FakeResponse({"error": "bad"}, status_code=500))
    with pytest.raises(BackendError):
        asyncio.run(OllamaLLMService().complete("hi"))

    _patch_post(monkeypatch, _FakeResponse({"error": "model not found"}))
    with pytest.raises(BackendError):
        asyncio.run(OllamaLLMService().complete("hi"))


def test_empty_prompt_is_rejected():
    with pytest.raises(InvalidArgumentError):
        asyncio.run(OllamaLLMService().complete("  "))


def test_stream_yields_fragments_until_done(monkeypatch):
    lines = [
        json.dumps({"response": "The ", "done": False}),
        "",
        json.dumps({"response": "answer", "done": False}),
        json.dumps({"response": "", "done": True}),
        json.dumps({"response": "ignored", "done": False}),
    ]
    response = _FakeResponse(lines=lines)
    calls = _patch_post(monkeypatch, response)

    async def run():
        return [fragment async for fragment in OllamaLLMService().stream("hi")]

    assert asyncio.run(run()) == ["The ", "answer"]
    assert calls[0]["stream"] is True
    assert calls[0]["json"]["stream"] is True
    assert response.closed


def test_stream_error_event_raises(monkeypatch):
    response = _FakeResponse(lines=[json.dumps({"response": "a"}), json.dumps({"error": "oom"})])
    _patch_post(monkeypatch, response)

    async def run():
        return [fragment async for fragment in OllamaLLMService().stream("hi")]

    with pytest.raises(BackendError):
        asyncio.run(run())
    assert response.closed
