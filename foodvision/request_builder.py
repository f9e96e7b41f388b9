from __future__ import annotations

from typing import Any

IMAGE_MIME_TYPE = "image/jpeg"
CHAT_MAX_TOKENS = 1000
PROBE_MAX_TOKENS = 10
PROBE_PROMPT = "Hello, this is a test message."

ANALYSIS_PROMPT = (
    "YOU ARE A STRICT FOOD DETECTOR. YOUR MISSION: ONLY ANALYZE ACTUAL FOOD.\n"
    "\n"
    "CRITICAL RULES:\n"
    "1. FOOD = visible prepared dishes, meals, fruits, vegetables, baked goods, cooked items\n"
    "2. NOT FOOD = people, hands, faces, phones, utensils, empty plates, cups, bottles, "
    "packaging, raw ingredients alone, tables, backgrounds\n"
    "\n"
    "DETECTION PROCESS:\n"
    "STEP 1: Scan the image carefully\n"
    'STEP 2: Ask yourself: "Can I see actual prepared FOOD that someone would eat?"\n'
    "STEP 3: If you see ONLY non-food items (people, objects, empty dishes), respond with NO FOOD\n"
    "STEP 4: If you see actual FOOD, identify it precisely and rate it\n"
    "\n"
    'RESPOND WITH "NO FOOD" IF YOU SEE:\n'
    "- People holding phones/objects\n"
    "- Empty plates or utensils\n"
    "- Just hands or faces\n"
    "- Bottles, cups, or containers\n"
    "- Non-food objects\n"
    "- Unclear or blurry images\n"
    "\n"
    "ONLY ANALYZE IF YOU SEE:\n"
    "- Actual prepared food dishes\n"
    "- Meals ready to eat\n"
    "- Clear food items\n"
    "\n"
    "RESPONSE FORMAT (JSON only, exactly one of the two shapes):\n"
    "\n"
    "If NO FOOD detected:\n"
    "{\n"
    '  "foodDetected": false,\n'
    '  "message": "No food detected. Please take a photo showing actual food items like '
    'prepared dishes, meals, or food ready to eat."\n'
    "}\n"
    "\n"
    "If FOOD detected:\n"
    "{\n"
    '  "foodDetected": true,\n'
    '  "foodName": "Specific name of the food dish",\n'
    '  "rating": 1-5,\n'
    '  "score": 0-100,\n'
    '  "analysis": "Brief analysis of the actual food visible",\n'
    '  "pros": ["What looks good about the food"],\n'
    '  "cons": ["Areas for improvement"],\n'
    '  "recommendations": ["Suggestions for the food"]\n'
    "}\n"
    "\n"
    "RATING SCALE (1-5):\n"
    "1 = Premium (exceptional quality and presentation)\n"
    "2 = High Standard (very good with minor improvements)\n"
    "3 = Standard (acceptable with room for improvement)\n"
    "4 = Improvement Needed (below average)\n"
    "5 = Poor (unacceptable quality)\n"
    "\n"
    "BE STRICT: Only analyze if you see clear, identifiable FOOD items!"
)


def strip_data_uri_prefix(image_data: str) -> str:
    """Return the base64 payload of a ``data:<mime>;base64,<payload>`` URI.

    Input without a data-URI prefix is returned unchanged.
    """
    if image_data.startswith("data:") and "," in image_data:
        return image_data.split(",", 1)[1]
    return image_data


def build_chat_completion_body(
    *,
    prompt: str,
    image_data: str,
    model: str,
    max_tokens: int = CHAT_MAX_TOKENS,
) -> dict[str, Any]:
    return {
        "model": model,
        "messages": [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": image_data}},
                ],
            }
        ],
        "max_tokens": max_tokens,
    }


def build_generate_content_body(*, prompt: str, image_data: str) -> dict[str, Any]:
    return {
        "contents": [
            {
                "parts": [
                    {"text": prompt},
                    {
                        "inline_data": {
                            "mime_type": IMAGE_MIME_TYPE,
                            "data": strip_data_uri_prefix(image_data),
                        }
                    },
                ]
            }
        ]
    }


def build_chat_probe_body(*, model: str) -> dict[str, Any]:
    return {
        "model": model,
        "messages": [{"role": "user", "content": PROBE_PROMPT}],
        "max_tokens": PROBE_MAX_TOKENS,
    }


def build_generate_content_probe_body() -> dict[str, Any]:
    return {"contents": [{"parts": [{"text": PROBE_PROMPT}]}]}
