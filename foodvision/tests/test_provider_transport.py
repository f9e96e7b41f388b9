from __future__ import annotations

import sys
from pathlib import Path

import httpx
import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from foodvision import provider_transport  # noqa: E402
from foodvision.provider_transport import (  # noqa: E402
    HttpResponse,
    VisionProviderError,
    extract_error_detail,
    post_json,
    read_json_reply,
)


def test_post_json_sends_payload_with_default_headers(monkeypatch: pytest.MonkeyPatch):
    captured = {}

    def _fake_post(url, *, headers, params, json, timeout):
        captured.update(url=url, headers=headers, params=params, json=json, timeout=timeout)
        return httpx.Response(200, text='{"ok": true}')

    monkeypatch.setattr(provider_transport.httpx, "post", _fake_post)

    response = post_json(
        url="https://api.example.test/v1/chat",
        headers={"Authorization": "Bearer abc"},
        request_payload={"hello": "world"},
        timeout_seconds=5.0,
        params={"key": "AIzaSyTESTKEY1234567890"},
    )

    assert response.ok is True
    assert response.json() == {"ok": True}
    assert captured["timeout"] == 5.0
    assert captured["url"] == "https://api.example.test/v1/chat"
    assert captured["params"] == {"key": "AIzaSyTESTKEY1234567890"}
    assert captured["json"] == {"hello": "world"}
    assert captured["headers"]["Authorization"] == "Bearer abc"
    assert captured["headers"]["Content-Type"] == "application/json"
    assert captured["headers"]["User-Agent"] == "FoodVision/1.0"


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (httpx.ReadTimeout("read timed out"), "timed out after 5s"),
        (httpx.ConnectError("connection refused"), "HTTP request failed"),
    ],
)
def test_post_json_wraps_transport_errors(monkeypatch: pytest.MonkeyPatch, error, expected):
    def _fake_post(url, **kwargs):
        raise error

    monkeypatch.setattr(provider_transport.httpx, "post", _fake_post)

    with pytest.raises(VisionProviderError, match=expected):
        post_json(url="https://api.example.test", headers={}, request_payload={}, timeout_seconds=5.0)


def test_read_json_reply_raises_for_error_status():
    response = HttpResponse(status_code=429, text='{"error": {"message": "quota exceeded"}}')

    with pytest.raises(VisionProviderError, match=r"Gemini request failed \(429\): quota exceeded"):
        read_json_reply(response, label="Gemini")


def test_extract_error_detail_prefers_structured_messages():
    assert extract_error_detail(HttpResponse(status_code=400, text='{"detail": "bad image"}')) == "bad image"
    assert extract_error_detail(HttpResponse(status_code=400, text='{"error": "nope"}')) == "nope"
    assert extract_error_detail(HttpResponse(status_code=502, text="x" * 500)) == "x" * 300
    assert extract_error_detail(HttpResponse(status_code=502, text="")) == "Unknown provider error"
