"""
API module for image service interactions.

Handles all communication with external generation services including:
- Authentication and configuration
- Image generation, prompt suggestions and palettes
- Retry logic and error handling
- Prompt building
"""

from .gemini_client import (
    get_api_key,
    store_api_key,
    call_gemini_image,
    call_gemini_text,
    parse_suggestions,
    parse_palette,
    GeminiImageService,
)

from .mock_client import MockImageService, render_mock_image

from .prompt_builders import (
    build_color_clause,
    compose_prompt,
    build_suggestions_prompt,
    build_palette_prompt,
)

from .exceptions import (
    AssetCraftError,
    GeminiAPIError,
    GeminiSafetyError,
    MissingAPIKeyError,
    CreditServiceError,
    InvalidImageError,
    FlowError,
    InvalidTransitionError,
    UnknownAssetTypeError,
)

__all__ = [
    # Client functions
    "get_api_key",
    "store_api_key",
    "call_gemini_image",
    "call_gemini_text",
    "parse_suggestions",
    "parse_palette",
    "GeminiImageService",
    "MockImageService",
    "render_mock_image",
    # Prompt builders
    "build_color_clause",
    "compose_prompt",
    "build_suggestions_prompt",
    "build_palette_prompt",
    # Exceptions
    "AssetCraftError",
    "GeminiAPIError",
    "GeminiSafetyError",
    "MissingAPIKeyError",
    "CreditServiceError",
    "InvalidImageError",
    "FlowError",
    "InvalidTransitionError",
    "UnknownAssetTypeError",
]
