"""
AssetCraft AI

AI-assisted generator for game and design assets (characters, icons, logos,
textures, ...), built around a step-by-step generation flow with a gemstone
balance charged per attempt.

Package Structure:
    core/       - Generation flow, data models, gemstone ledger
    api/        - Image service clients and prompt building
    processing/ - Generated image validation and saving
    catalog     - Asset types, subtypes, suggestions and palettes
    library     - Saved asset library
"""

__version__ = "1.0.0"

# Lazy imports for heavy dependencies
def __getattr__(name):
    if name == "GenerationFlow":
        from .core.flow import GenerationFlow
        return GenerationFlow
    if name == "GenerationSession":
        from .core.models import GenerationSession
        return GenerationSession
    if name == "AssetLibrary":
        from .library import AssetLibrary
        return AssetLibrary
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = [
    "__version__",
    "GenerationFlow",
    "GenerationSession",
    "AssetLibrary",
]
