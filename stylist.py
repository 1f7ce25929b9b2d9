"""
AI stylist backed by the Gemini generateContent REST API.

Two operations are exposed to the API layer: outfit suggestions drawn from a
shopper's browsing history, and an outfit image that is either a model shot or
a virtual try-on of the shopper's own photo.
"""

import json
import logging
import os
import re
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
TEXT_MODEL = os.getenv("GEMINI_TEXT_MODEL", "gemini-1.5-flash-latest")
IMAGE_MODEL = os.getenv("GEMINI_IMAGE_MODEL", "gemini-2.0-flash-preview-image-generation")
MAX_SUGGESTIONS = 3

DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)

SUGGESTIONS_PROMPT = """You are a personal stylist for Acoof, specializing in creating personalized outfit suggestions.

Based on the user's browsing history, generate 3 creative and detailed outfit suggestions that complement their viewed items and align with current fashion trends. Describe each outfit clearly.

Browsing History: {history}"""

TRY_ON_PROMPT = """Task: Perform a virtual try-on.
You will receive a photo of a person and a description of an outfit. Generate a new, photorealistic image of that exact same person wearing the new outfit.

1. Preserve the person's identity. Do not change their face, body shape or pose.
2. Replace their original clothing with the outfit described below so that the fit looks natural.
3. Use a simple, neutral studio background.
4. The image must be high-quality and photorealistic, suitable for a fashion lookbook.

Outfit Description: {description}"""

MODEL_SHOT_PROMPT = """Generate a photorealistic image of a male fashion model wearing the described outfit.
The model should be in a modern, urban setting. The image should be full-body.
The final image must be high-quality and suitable for a fashion lookbook.

Outfit Description: {description}"""


class StylistError(Exception):
    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def parse_data_uri(uri: str) -> Dict[str, str]:
    match = DATA_URI_RE.match(uri.strip())
    if not match:
        raise StylistError("Photo must be a base64 data URI such as 'data:image/jpeg;base64,...'.", status_code=400)
    return {"mime_type": match.group("mime"), "data": match.group("data")}


def _generate(model: str, parts: List[Dict[str, Any]], generation_config: Dict[str, Any]) -> List[Dict[str, Any]]:
    api_key = os.getenv("GEMINI_API_KEY")
    if not api_key:
        raise StylistError("The AI stylist is not configured on the server. Set GEMINI_API_KEY.", status_code=503)
    try:
        r = requests.post(
            GEMINI_API_URL.format(model=model),
            params={"key": api_key},
            json={"contents": [{"role": "user", "parts": parts}], "generationConfig": generation_config},
            timeout=120,
        )
    except requests.RequestException as e:
        logger.error("Gemini request to %s failed: %s", model, e)
        raise StylistError("Could not reach the AI stylist. Please try again.") from e
    if r.status_code >= 300:
        logger.error("Gemini %s returned %s: %s", model, r.status_code, r.text)
        raise StylistError("The AI stylist could not complete the request.")
    try:
        candidates = r.json().get("candidates") or []
    except (ValueError, AttributeError) as e:
        logger.error("Gemini %s returned an unreadable body: %s", model, r.text[:200])
        raise StylistError("The AI stylist returned an unreadable answer.") from e
    if not candidates:
        return []
    return (candidates[0].get("content") or {}).get("parts") or []


def suggest_outfit_descriptions(browsing_history: str) -> List[str]:
    parts = _generate(
        TEXT_MODEL,
        [{"text": SUGGESTIONS_PROMPT.format(history=browsing_history)}],
        {
            "responseMimeType": "application/json",
            "responseSchema": {
                "type": "OBJECT",
                "properties": {"suggestions": {"type": "ARRAY", "items": {"type": "STRING"}}},
                "required": ["suggestions"],
            },
        },
    )
    text = "".join(p.get("text", "") for p in parts)
    if not text:
        return []
    try:
        suggestions = json.loads(text).get("suggestions") or []
    except (ValueError, AttributeError):
        logger.error("Unparseable stylist response: %s", text[:200])
        raise StylistError("The AI stylist returned an unreadable answer.")
    return [s for s in suggestions if isinstance(s, str) and s.strip()][:MAX_SUGGESTIONS]


def generate_outfit_image(description: str, photo_data_uri: Optional[str] = None) -> str:
    """Return a data URI of the outfit worn by a model, or by the person in the photo."""
    if photo_data_uri:
        photo = parse_data_uri(photo_data_uri)
        parts = [{"inlineData": {"mimeType": photo["mime_type"], "data": photo["data"]}}, {"text": TRY_ON_PROMPT.format(description=description)}]
    else:
        parts = [{"text": MODEL_SHOT_PROMPT.format(description=description)}]

    result = _generate(IMAGE_MODEL, parts, {"responseModalities": ["TEXT", "IMAGE"]})
    for part in result:
        inline = part.get("inlineData") or part.get("inline_data")
        if inline and inline.get("data"):
            mime = inline.get("mimeType") or inline.get("mime_type") or "image/png"
            return f"data:{mime};base64,{inline['data']}"
    raise StylistError("Image generation failed to return a valid image.")


def generate_outfit_suggestions(browsing_history: str, photo_data_uri: Optional[str] = None) -> List[Dict[str, str]]:
    descriptions = suggest_outfit_descriptions(browsing_history)
    return [
        {"description": d, "image_url": generate_outfit_image(d, photo_data_uri)}
        for d in descriptions
    ]
