from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)

USER_AGENT = "FoodVision/1.0"


class VisionProviderError(RuntimeError):
    pass


@dataclass
class HttpResponse:
    status_code: int
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        return json.loads(self.text)


def post_json(
    *,
    url: str,
    headers: dict[str, str],
    request_payload: dict[str, Any],
    timeout_seconds: float,
    params: dict[str, str] | None = None,
) -> HttpResponse:
    normalized_headers = dict(headers)
    normalized_headers.setdefault("Accept", "application/json")
    normalized_headers.setdefault("Content-Type", "application/json")
    normalized_headers.setdefault("User-Agent", USER_AGENT)

    try:
        response = httpx.post(
            url,
            headers=normalized_headers,
            params=params,
            json=request_payload,
            timeout=timeout_seconds,
        )
    except httpx.TimeoutException as exc:
        raise VisionProviderError(f"HTTP request timed out after {timeout_seconds:g}s: {exc}") from exc
    except httpx.HTTPError as exc:
        raise VisionProviderError(f"HTTP request failed: {exc}") from exc

    logger.debug("Provider %s responded with HTTP %s", httpx.URL(url).host, response.status_code)
    return HttpResponse(status_code=int(response.status_code), text=response.text)


def read_json_reply(response: HttpResponse, *, label: str) -> Any:
    """Return the decoded JSON body of a successful provider reply."""
    if not response.ok:
        detail = extract_error_detail(response)
        raise VisionProviderError(f"{label} request failed ({response.status_code}): {detail}")
    try:
        return response.json()
    except ValueError as exc:
        raise VisionProviderError(f"{label} response was not valid JSON: {exc}") from exc


def extract_error_detail(response: HttpResponse) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message:
                return message
        if isinstance(error, str) and error:
            return error
        detail = payload.get("detail")
        if isinstance(detail, str) and detail:
            return detail
    body = response.text.strip()
    return body[:300] if body else "Unknown provider error"
