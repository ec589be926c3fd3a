"""
Gemini API client for asset generation.

Handles authentication, API calls, retries, and response parsing for Google Gemini:
image generation, prompt suggestions and color palette suggestions.
"""

import base64
import json
import os
import re
from typing import Callable, List, Optional

import requests

from ..config import (
    CONFIG_PATH,
    GEMINI_IMAGE_URL,
    GEMINI_TEXT_URL,
    MAX_API_RETRIES,
    PALETTE_SIZE,
    REQUEST_TIMEOUT_SECONDS,
    RETRYABLE_STATUS_CODES,
    SUGGESTION_COUNT,
    load_config_file,
    save_config_file,
)
from ..core.models import PaletteColor
from ..logging_utils import log_api_call, log_debug, log_warning
from .exceptions import GeminiAPIError, GeminiSafetyError, MissingAPIKeyError
from .prompt_builders import build_palette_prompt, build_suggestions_prompt

SAFETY_FINISH_REASONS = ("SAFETY", "IMAGE_SAFETY", "IMAGE_OTHER")


# =============================================================================
# Configuration Management
# =============================================================================

def get_api_key() -> str:
    """
    Return Gemini API key from environment variable or config file.

    Checks GEMINI_API_KEY environment variable first, then the config file.

    Raises:
        MissingAPIKeyError: If no key is configured anywhere.
    """
    env_key = os.environ.get("GEMINI_API_KEY")
    if env_key:
        return env_key

    config = load_config_file()
    if config.get("api_key"):
        return config["api_key"]

    raise MissingAPIKeyError(
        f"No Gemini API key found. Set GEMINI_API_KEY or add api_key to {CONFIG_PATH}."
    )


def store_api_key(api_key: str) -> None:
    """Persist an API key in the config file, keeping other settings."""
    config = load_config_file()
    config["api_key"] = api_key.strip()
    save_config_file(config)


# =============================================================================
# Response Parsing
# =============================================================================

def _extract_inline_image_from_response(data: dict) -> Optional[bytes]:
    """
    Extract the first inline image bytes from a Gemini JSON response.

    Handles both 'inlineData' and 'inline_data' field naming.

    Returns:
        Decoded image bytes, or None if no image found.
    """
    for candidate in data.get("candidates", []):
        content = candidate.get("content", {})
        for part in content.get("parts", []):
            blob = part.get("inlineData") or part.get("inline_data")
            if blob and "data" in blob:
                return base64.b64decode(blob["data"])
    return None


def _extract_text_from_response(data: dict) -> Optional[str]:
    candidates = data.get("candidates", [])
    if candidates:
        parts = candidates[0].get("content", {}).get("parts", [])
        if parts:
            return parts[0].get("text", "").strip()
    return None


def _raise_if_safety_blocked(data: dict, context: str) -> None:
    for candidate in data.get("candidates", []):
        finish_reason = candidate.get("finishReason")
        if finish_reason in SAFETY_FINISH_REASONS:
            log_api_call(context, False, f"Safety blocked: {finish_reason}")
            raise GeminiSafetyError(
                f"Content blocked by safety filters ({context}): {finish_reason}",
                candidate.get("safetyRatings", []),
            )


_BULLET_PREFIX = re.compile(r'^["\-\*\d\.\)]+\s*')
_TRAILING_QUOTES = re.compile(r'["]+,?$')


def parse_suggestions(text: str, count: int = SUGGESTION_COUNT) -> List[str]:
    """
    Turn a model answer into a list of suggestions.

    Prefers a JSON array anywhere in the text; otherwise splits lines and
    strips list bullets, numbering and quotes. Lines shorter than 6 characters
    are dropped.
    """
    if not text:
        return []

    match = re.search(r"\[.*\]", text, re.DOTALL)
    if match:
        try:
            parsed = json.loads(match.group(0))
            if isinstance(parsed, list):
                items = [str(item).strip() for item in parsed]
                return [item for item in items if item][:count]
        except ValueError:
            log_debug("Suggestions answer contained a malformed JSON array, falling back to lines")

    suggestions: List[str] = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("[") or line.startswith("]"):
            continue
        line = _TRAILING_QUOTES.sub("", _BULLET_PREFIX.sub("", line)).strip()
        if len(line) > 5:
            suggestions.append(line)
    return suggestions[:count]


def parse_palette(text: str) -> List[PaletteColor]:
    """Parse a JSON array of {hex, rgb, cmyk, name} objects; junk yields []."""
    if not text:
        return []
    match = re.search(r"\[.*\]", text, re.DOTALL)
    if not match:
        return []
    try:
        parsed = json.loads(match.group(0))
    except ValueError:
        return []
    if not isinstance(parsed, list):
        return []

    palette = []
    for entry in parsed:
        if isinstance(entry, dict):
            color = PaletteColor.from_dict(entry)
        elif isinstance(entry, str) and entry.strip():
            color = PaletteColor(name=entry.strip())
        else:
            continue
        if color.display_value():
            palette.append(color)
    return palette


# =============================================================================
# Gemini API Calls
# =============================================================================

def _post_with_retries(url: str, api_key: str, payload: dict, context: str,
                       accept: Optional[Callable[[dict], bool]] = None) -> dict:
    """
    POST to Gemini with retry logic for transient failures.

    Retries HTTP 429/5xx, transport errors and, when `accept` is given,
    bodies it rejects. All of them share one budget of MAX_API_RETRIES
    attempts; a body still rejected on the last attempt is returned as is.

    Returns:
        Parsed JSON body.

    Raises:
        GeminiAPIError: On a non-retryable HTTP error or after all retries fail.
    """
    headers = {"Content-Type": "application/json", "x-goog-api-key": api_key}
    last_error = None

    for attempt in range(1, MAX_API_RETRIES + 1):
        try:
            response = requests.post(
                url,
                headers=headers,
                data=json.dumps(payload),
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            last_error = str(e)
            if attempt < MAX_API_RETRIES:
                log_warning(f"Gemini call failed ({context}) attempt {attempt}: {e}")
                continue
            log_api_call(context, False, f"Failed after {MAX_API_RETRIES} attempts: {last_error}")
            raise GeminiAPIError(
                f"Gemini call failed after {MAX_API_RETRIES} attempts ({context}): {last_error}"
            ) from e

        if not response.ok:
            last_error = f"Gemini API error {response.status_code}: {response.text[:200]}"
            if response.status_code in RETRYABLE_STATUS_CODES and attempt < MAX_API_RETRIES:
                log_warning(f"Gemini API error {response.status_code} ({context}) attempt {attempt}, retrying...")
                continue
            log_api_call(context, False, f"HTTP {response.status_code}: {response.text[:200]}")
            raise GeminiAPIError(last_error)

        try:
            data = response.json()
        except ValueError as e:
            log_api_call(context, False, "Response was not JSON")
            raise GeminiAPIError(f"Gemini returned a non-JSON response ({context})") from e

        if accept is None or accept(data) or attempt == MAX_API_RETRIES:
            return data
        log_warning(f"Gemini response unusable ({context}) attempt {attempt}, retrying...")

    raise GeminiAPIError(last_error or f"Gemini call failed ({context})")


def call_gemini_image(api_key: str, prompt: str) -> Optional[bytes]:
    """
    Generate an image from a text prompt.

    A response without image data is retried like a transient error, within
    the same MAX_API_RETRIES budget; if the last attempt still has none,
    None is returned rather than raising.

    Args:
        api_key: Google Gemini API key.
        prompt: Fully composed prompt.

    Returns:
        Raw image bytes, or None if the model never returned an image.

    Raises:
        GeminiSafetyError: If the prompt was blocked (not retried).
        GeminiAPIError: On HTTP/transport failure after retries.
    """
    context = "image_generation"
    payload = {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {"responseModalities": ["IMAGE"]},
    }
    log_debug(f"Gemini API call starting: {context}")

    def has_image(data: dict) -> bool:
        _raise_if_safety_blocked(data, context)
        if _extract_inline_image_from_response(data) is None:
            log_debug(f"Gemini response without image data: {json.dumps(data)[:500]}")
            return False
        return True

    data = _post_with_retries(GEMINI_IMAGE_URL, api_key, payload, context, accept=has_image)
    raw_bytes = _extract_inline_image_from_response(data)
    if raw_bytes is None:
        log_api_call(context, False, "No image data in response")
        return None

    log_api_call(context, True, f"Image received ({len(raw_bytes)} bytes)")
    return raw_bytes


def call_gemini_text(api_key: str, prompt: str, temperature: float = 1.0) -> str:
    """
    Call Gemini text API and return the response text.

    Args:
        api_key: Google Gemini API key.
        prompt: Text prompt to send.
        temperature: Sampling temperature (0.0-2.0, default 1.0).

    Raises:
        GeminiAPIError: If API call fails or the answer has no text.
    """
    payload = {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {"temperature": temperature},
    }
    data = _post_with_retries(GEMINI_TEXT_URL, api_key, payload, "text_generation")
    result = _extract_text_from_response(data)
    if not result:
        log_api_call("text_generation", False, "No text in response")
        raise GeminiAPIError("No text in Gemini response")
    log_api_call("text_generation", True, f"Got {len(result)} chars")
    return result


class GeminiImageService:
    """
    Image service backed by the Gemini REST API.

    Methods block on HTTP; the generation flow runs them in a worker thread.
    """

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key if api_key is not None else get_api_key()

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) and "placeholder" not in self.api_key

    def generate(self, prompt: str) -> Optional[bytes]:
        return call_gemini_image(self.api_key, prompt)

    def get_suggestions(self, category: str, style: Optional[str] = None,
                        theme: Optional[str] = None) -> List[str]:
        prompt = build_suggestions_prompt(category, style, theme, SUGGESTION_COUNT)
        text = call_gemini_text(self.api_key, prompt, temperature=0.8)
        return parse_suggestions(text, SUGGESTION_COUNT)

    def generate_palette(self, context: str) -> List[PaletteColor]:
        text = call_gemini_text(self.api_key, build_palette_prompt(context, PALETTE_SIZE), temperature=0.7)
        return parse_palette(text)
