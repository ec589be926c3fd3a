"""Custom exceptions for AssetCraft services and the generation flow."""
from typing import Any, List, Optional


class AssetCraftError(RuntimeError):
    """Base exception for all AssetCraft errors."""
    pass


class GeminiAPIError(AssetCraftError):
    """Base exception for Gemini API errors."""
    pass


class GeminiSafetyError(GeminiAPIError):
    """
    Raised when Gemini blocks content due to safety filters.

    Attributes:
        safety_ratings: List of safety rating dicts from the API response.
    """
    def __init__(self, message: str, safety_ratings: Optional[List[dict]] = None):
        super().__init__(message)
        self.safety_ratings = safety_ratings or []


class MissingAPIKeyError(GeminiAPIError):
    """Raised when no Gemini API key is configured."""
    pass


class CreditServiceError(AssetCraftError):
    """Raised when a remote gemstone store cannot be reached or answers badly."""
    pass


class InvalidImageError(AssetCraftError):
    """
    Raised when image bytes are refused (bad signature, decode failure, placeholder).

    Attributes:
        validation: The ImageValidation that caused the refusal.
    """
    def __init__(self, message: str, validation: Optional[Any] = None):
        super().__init__(message)
        self.validation = validation


class FlowError(AssetCraftError):
    """Base exception for generation flow misuse."""
    pass


class InvalidTransitionError(FlowError):
    """Raised when an action is not allowed from the current step."""
    pass


class UnknownAssetTypeError(FlowError):
    """Raised for an asset type or subtype missing from the catalog."""
    pass
