from __future__ import annotations

import json
import random
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from foodvision.analysis_service import FoodAnalysisService  # noqa: E402
from foodvision.main import create_app  # noqa: E402
from foodvision.mock_analysis import MockAnalysisProvider  # noqa: E402
from foodvision.provider_registry import build_default_registry  # noqa: E402
from foodvision.provider_transport import HttpResponse  # noqa: E402
from foodvision.settings import Settings  # noqa: E402

GEMINI_KEY = "AIzaSyTESTKEY1234567890"
IMAGE_DATA = "data:image/jpeg;base64,Zm9v"


def _client(tmp_path: Path, *, post=None, raise_server_exceptions: bool = True, **overrides) -> TestClient:
    settings = Settings(static_dir=tmp_path / "missing-web", **overrides)
    service = FoodAnalysisService(
        registry=build_default_registry(settings),
        mock_provider=MockAnalysisProvider(rng=random.Random(5)),
        timeout_seconds=settings.request_timeout_seconds,
        default_provider=settings.default_provider,
        post=post or _unexpected_post,
    )
    app = create_app(settings, analysis_service=service)
    return TestClient(app, raise_server_exceptions=raise_server_exceptions)


def _unexpected_post(**kwargs):
    raise AssertionError("provider should not be called")


def _assert_valid_result(payload: dict) -> None:
    assert isinstance(payload["foodDetected"], bool)
    for key in ("pros", "cons", "recommendations"):
        assert isinstance(payload[key], list)
    if payload["rating"] is not None:
        assert isinstance(payload["rating"], int) and 1 <= payload["rating"] <= 5
    if payload["healthScore"] is not None:
        assert isinstance(payload["healthScore"], int) and 0 <= payload["healthScore"] <= 100


def test_analyze_without_configured_key_returns_mock_result(tmp_path: Path):
    client = _client(tmp_path)

    response = client.post("/api/analyze", json={"imageData": IMAGE_DATA, "provider": "gemini"})

    assert response.status_code == 200
    payload = response.json()
    _assert_valid_result(payload)
    assert payload["demoMode"] is True
    assert payload["fallbackReason"] == "unconfigured"
    assert payload["provider"] == "gemini"


def test_analyze_missing_image_data_is_rejected(tmp_path: Path):
    client = _client(tmp_path)

    response = client.post("/api/analyze", json={"provider": "gemini"})

    assert response.status_code == 400
    assert response.json() == {
        "error": "Missing image data",
        "message": "Image data is required for analysis",
    }


def test_analyze_blank_image_data_is_rejected(tmp_path: Path):
    client = _client(tmp_path)

    response = client.post("/api/analyze", json={"imageData": "   "})

    assert response.status_code == 400
    assert response.json()["error"] == "Missing image data"


def test_analyze_non_json_body_is_rejected(tmp_path: Path):
    client = _client(tmp_path)

    response = client.post("/api/analyze", content=b"not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert set(response.json()) == {"error", "message"}


def test_analyze_unknown_provider_is_rejected(tmp_path: Path):
    client = _client(tmp_path)

    response = client.post("/api/analyze", json={"imageData": IMAGE_DATA, "provider": "openai"})

    assert response.status_code == 400
    assert response.json()["error"] == "Unsupported provider"


def test_analyze_strict_mode_rejects_unconfigured_provider(tmp_path: Path):
    client = _client(tmp_path, demo_fallback=False)

    response = client.post("/api/analyze", json={"imageData": IMAGE_DATA, "provider": "gemini"})

    assert response.status_code == 400
    assert response.json()["error"] == "Gemini API key not configured"


def test_analyze_calls_provider_and_uses_default_provider(tmp_path: Path):
    calls = []

    def _post(*, url, headers, request_payload, timeout_seconds, params=None):
        calls.append(url)
        text = '{"foodDetected": true, "foodName": "Nasi Lemak", "rating": 4, "score": 45}'
        return HttpResponse(
            status_code=200,
            text=json.dumps({"candidates": [{"content": {"parts": [{"text": text}]}}]}),
        )

    client = _client(tmp_path, post=_post, gemini_api_key=GEMINI_KEY)

    response = client.post("/api/analyze", json={"imageData": IMAGE_DATA})

    assert response.status_code == 200
    payload = response.json()
    _assert_valid_result(payload)
    assert payload["foodName"] == "Nasi Lemak"
    assert payload["ratingName"] == "Improvement Needed"
    assert payload["demoMode"] is False
    assert len(calls) == 1


def test_analyze_unexpected_error_returns_500_envelope(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    client = _client(tmp_path, raise_server_exceptions=False)

    def _explode(provider_id, image_data):
        raise RuntimeError("kaboom")

    monkeypatch.setattr(client.app.state.analysis_service, "analyze", _explode)

    response = client.post("/api/analyze", json={"imageData": IMAGE_DATA})

    assert response.status_code == 500
    assert response.json() == {"error": "Analysis failed", "message": "kaboom"}


def test_config_endpoint_exposes_environment_keys(tmp_path: Path):
    client = _client(tmp_path, gemini_api_key=GEMINI_KEY, default_provider="perplexity")

    response = client.get("/api/config")

    assert response.status_code == 200
    assert response.json() == {
        "geminiApiKey": GEMINI_KEY,
        "perplexityApiKey": None,
        "defaultProvider": "perplexity",
    }


def test_providers_endpoint(tmp_path: Path):
    client = _client(tmp_path, gemini_api_key=GEMINI_KEY)

    payload = client.get("/api/providers").json()

    assert payload["default_provider"] == "gemini"
    assert {entry["id"]: entry["configured"] for entry in payload["providers"]} == {
        "gemini": True,
        "perplexity": False,
    }


def test_connectivity_probe_requires_key(tmp_path: Path):
    client = _client(tmp_path)

    response = client.get("/api/test-perplexity")

    assert response.status_code == 400
    assert response.json()["error"] == "API key not configured"


def test_connectivity_probe_failure_returns_500(tmp_path: Path):
    def _post(**kwargs):
        return HttpResponse(status_code=403, text='{"error": {"message": "forbidden"}}')

    client = _client(tmp_path, post=_post, gemini_api_key=GEMINI_KEY)

    response = client.get("/api/test-gemini")

    assert response.status_code == 500
    assert response.json() == {"error": "API test failed", "message": "API test failed: 403 - forbidden"}


def test_connectivity_probe_success(tmp_path: Path):
    def _post(**kwargs):
        return HttpResponse(status_code=200, text="{}")

    client = _client(tmp_path, post=_post, gemini_api_key=GEMINI_KEY)

    response = client.get("/api/test-gemini")

    assert response.status_code == 200
    assert response.json()["success"] is True


def test_unknown_route_returns_json_404_with_security_headers(tmp_path: Path):
    client = _client(tmp_path)

    response = client.get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.json() == {"error": "Not found", "message": "Route /api/does-not-exist not found"}
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"


def test_static_directory_is_served_when_present(tmp_path: Path):
    web_dir = tmp_path / "web"
    web_dir.mkdir()
    (web_dir / "index.html").write_text("<h1>FoodVision</h1>", encoding="utf-8")
    settings = Settings(static_dir=web_dir)
    client = TestClient(create_app(settings))

    assert "FoodVision" in client.get("/").text
    assert client.get("/health").json() == {"status": "ok"}
