"""Turn free-form model replies into canonical ``AnalysisResult`` values.

Models are asked for JSON but usually wrap it in prose or code fences. The
scanner below makes one left-to-right pass with a stack of open braces and
skips string literals inside them, so braces inside JSON strings do not end a
span early. Each balanced span is then decoded in place; an undecodable span
leaves the spans nested inside it as candidates. Unbalanced or undecodable
fragments are skipped; when nothing decodes the reply is reported as "unable
to analyze" instead of raising.
"""

from __future__ import annotations

import json
import logging
import math
from typing import TYPE_CHECKING, Any, Iterator

from .analysis_models import (
    MAX_HEALTH_SCORE,
    MAX_RATING,
    MIN_HEALTH_SCORE,
    MIN_RATING,
    NO_FOOD_MESSAGE,
    UNABLE_TO_ANALYZE_MESSAGE,
    UNABLE_TO_DETERMINE_MESSAGE,
    AnalysisResult,
)
from .provider_transport import VisionProviderError

if TYPE_CHECKING:
    from .provider_registry import ProviderDescriptor

logger = logging.getLogger(__name__)

# Model text past this length is not scanned.
MAX_MODEL_TEXT_CHARS = 20_000

_DECODER = json.JSONDecoder()


def iter_json_objects(text: str) -> Iterator[str]:
    """Yield every outermost balanced ``{...}`` span of ``text`` in order.

    A brace that never closes is skipped, so stray prose braces do not hide a
    later object.
    """
    covered_until = -1
    for start, end in _balanced_spans(text):
        if start <= covered_until:
            continue
        covered_until = end
        yield text[start : end + 1]


def _balanced_spans(text: str) -> list[tuple[int, int]]:
    """Return ``(start, end)`` for every balanced span, nested ones included, sorted by start."""
    spans: list[tuple[int, int]] = []
    open_braces: list[int] = []
    in_string = False
    escaped = False

    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == "{":
            open_braces.append(index)
        elif not open_braces:
            # Quotes in prose outside any brace are not string delimiters.
            continue
        elif char == '"':
            in_string = True
        elif char == "}":
            spans.append((open_braces.pop(), index))

    spans.sort()
    return spans


def extract_json_object(text: str) -> str | None:
    for candidate in iter_json_objects(text):
        return candidate
    return None


def parse_analysis_text(text: Any) -> AnalysisResult:
    if not isinstance(text, str) or not text.strip():
        return AnalysisResult.not_detected(UNABLE_TO_ANALYZE_MESSAGE)

    if len(text) > MAX_MODEL_TEXT_CHARS:
        logger.warning("Model output is %s characters; scanning the first %s", len(text), MAX_MODEL_TEXT_CHARS)
        text = text[:MAX_MODEL_TEXT_CHARS]

    payload = _select_payload(text)
    if payload is None:
        logger.info("No JSON object found in model output; treating as no food")
        return AnalysisResult.not_detected(UNABLE_TO_ANALYZE_MESSAGE)

    food_detected = payload.get("foodDetected")
    if food_detected is False:
        logger.info("Model reported no food in image")
        return AnalysisResult.not_detected(_clean_str(payload.get("message")) or NO_FOOD_MESSAGE)
    if food_detected is not True:
        logger.info("Model output missing a boolean foodDetected field; treating as undetermined")
        return AnalysisResult.not_detected(UNABLE_TO_DETERMINE_MESSAGE)

    result = AnalysisResult(
        food_detected=True,
        food_name=_clean_str(payload.get("foodName")),
        rating=_coerce_rating(payload.get("rating")),
        health_score=_coerce_health_score(
            payload.get("score") if payload.get("score") is not None else payload.get("healthScore")
        ),
        analysis=_clean_str(payload.get("analysis")),
        pros=_coerce_str_list(payload.get("pros")),
        cons=_coerce_str_list(payload.get("cons")),
        recommendations=_coerce_str_list(payload.get("recommendations")),
        product_details=_coerce_str_mapping(payload.get("productDetails")),
    )
    logger.info("Model detected food: %s", result.food_name or "(unnamed)")
    return result


def parse_provider_reply(descriptor: "ProviderDescriptor", raw_reply: Any) -> AnalysisResult:
    text = descriptor.extract_text(raw_reply)
    logger.debug("Raw %s output: %s", descriptor.label, text)
    return parse_analysis_text(text)


def extract_chat_completion_text(payload: Any) -> str:
    if not isinstance(payload, dict):
        raise VisionProviderError("Invalid chat completion payload.")
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        raise VisionProviderError("Chat completion response does not contain choices.")
    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    if not isinstance(message, dict):
        raise VisionProviderError("Chat completion response missing message payload.")

    content = message.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        chunks = [
            item["text"]
            for item in content
            if isinstance(item, dict) and item.get("type") == "text" and isinstance(item.get("text"), str)
        ]
        if chunks:
            return "\n".join(chunks)
    raise VisionProviderError("Chat completion response did not include text content.")


def extract_generate_content_text(payload: Any) -> str:
    if not isinstance(payload, dict):
        raise VisionProviderError("Invalid generate-content payload.")
    candidates = payload.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        raise VisionProviderError("Generate-content response does not contain candidates.")
    content = candidates[0].get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        raise VisionProviderError("Generate-content response missing content parts.")
    text = parts[0].get("text")
    if not isinstance(text, str):
        raise VisionProviderError("Generate-content response did not include text content.")
    return text


def _select_payload(text: str) -> dict[str, Any] | None:
    first_object: dict[str, Any] | None = None
    for payload in _iter_decoded_objects(text):
        if "foodDetected" in payload:
            return payload
        if first_object is None:
            first_object = payload
    return first_object


def _iter_decoded_objects(text: str) -> Iterator[dict[str, Any]]:
    covered_until = -1
    for start, end in _balanced_spans(text):
        if start <= covered_until:
            continue
        try:
            payload, _ = _DECODER.raw_decode(text, start)
        except (ValueError, RecursionError):
            # Spans nested in an undecodable one stay candidates.
            continue
        if isinstance(payload, dict):
            covered_until = end
            yield payload


def _clean_str(raw_value: Any) -> str:
    if not isinstance(raw_value, str):
        return ""
    return raw_value.strip()


def _parse_int_str(raw_value: Any) -> int | None:
    if not isinstance(raw_value, str):
        return None
    try:
        return int(raw_value.strip())
    except ValueError:
        return None


def _coerce_rating(raw_value: Any) -> int | None:
    if isinstance(raw_value, bool) or not isinstance(raw_value, int):
        return None
    if not MIN_RATING <= raw_value <= MAX_RATING:
        return None
    return raw_value


def _coerce_health_score(raw_value: Any) -> int | None:
    if isinstance(raw_value, bool):
        return None
    if isinstance(raw_value, (int, float)):
        if not math.isfinite(raw_value):
            return None
        score = int(round(raw_value))
    else:
        score = _parse_int_str(raw_value)
        if score is None:
            return None
    return max(MIN_HEALTH_SCORE, min(MAX_HEALTH_SCORE, score))


def _coerce_str_list(raw_value: Any) -> list[str]:
    if isinstance(raw_value, str):
        raw_value = [raw_value]
    if not isinstance(raw_value, list):
        return []
    items: list[str] = []
    for item in raw_value:
        if isinstance(item, str) and item.strip():
            items.append(item.strip())
    return items


def _coerce_str_mapping(raw_value: Any) -> dict[str, str]:
    if not isinstance(raw_value, dict):
        return {}
    details: dict[str, str] = {}
    for key, value in raw_value.items():
        if isinstance(key, str) and isinstance(value, (str, int, float)) and not isinstance(value, bool):
            details[key] = str(value)
    return details
