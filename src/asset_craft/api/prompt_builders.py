"""
Prompt builders for generation requests.

All prompt text sent to the image and text models is assembled here:
the final image prompt plus the helper prompts for suggestions and palettes.
"""

from typing import List, Optional, Sequence

from ..config import PALETTE_SIZE, QUALITY_MODIFIERS, SUGGESTION_COUNT


def build_color_clause(colors: Sequence[str], color_count: Optional[int] = None) -> str:
    """
    Describe the requested colors.

    Named colors win over a bare count:
        ["Red"]          -> "using Red color"
        ["Red", "Blue"]  -> "using colors: Red, Blue"
        [], count=3      -> "using 3 colors"

    Args:
        colors: Color slots as entered (blank entries are ignored).
        color_count: Number of colors chosen, used only when no names are set.

    Returns:
        The clause, or an empty string when there is nothing to say.
    """
    named = [c.strip() for c in colors if c and c.strip()]
    if len(named) == 1:
        return f"using {named[0]} color"
    if named:
        return "using colors: " + ", ".join(named)
    if color_count:
        return f"using {color_count} colors"
    return ""


def compose_prompt(
    asset_type: str,
    asset_subtype: str,
    colors: Sequence[str],
    user_text: str,
    color_count: Optional[int] = None,
) -> str:
    """
    Build the final prompt sent to the image model.

    Parts, in order, joined with ", " (empty parts are dropped entirely):
      1. asset type
      2. "(<subtype> style)" when a subtype is set and differs from the type
      3. the user's text
      4. the color clause
      5. the fixed quality modifiers

    Args:
        asset_type: Selected asset type title (e.g. "Logo").
        asset_subtype: Selected subtype (e.g. "Logo only").
        colors: Color slots.
        user_text: Free-text description from the user.
        color_count: Chosen number of colors, if any.

    Returns:
        The composed prompt string.
    """
    parts: List[str] = []

    type_token = (asset_type or "").strip()
    if type_token:
        parts.append(type_token)

    subtype = (asset_subtype or "").strip()
    if subtype and subtype.lower() != type_token.lower():
        parts.append(f"({subtype} style)")

    text = (user_text or "").strip()
    if text:
        parts.append(text)

    color_clause = build_color_clause(colors, color_count)
    if color_clause:
        parts.append(color_clause)

    parts.append(QUALITY_MODIFIERS)
    return ", ".join(parts)


def build_suggestions_prompt(
    asset_type: str,
    style: Optional[str] = None,
    theme: Optional[str] = None,
    count: int = SUGGESTION_COUNT,
) -> str:
    """Ask the text model for creative prompt ideas as a JSON array of strings."""
    return f"""You are an AI assistant helping users generate creative prompts for AI image generation.

Generate {count} creative and detailed prompt suggestions for creating {asset_type} assets.

Additional context:
- Asset type: {asset_type}
- Style preference: {style or "any style"}
- Theme/color: {theme or "any theme"}

Requirements:
- Each suggestion should be a complete, detailed prompt suitable for AI image generation
- Include visual details like colors, lighting, composition, and artistic style
- Make each suggestion unique and creative
- Keep each suggestion between 10-30 words
- Focus on {asset_type} assets specifically

Please return exactly {count} suggestions as a JSON array of strings.

Example format:
["suggestion 1", "suggestion 2", "suggestion 3"]

Suggestions:"""


def build_palette_prompt(context: str, count: int = PALETTE_SIZE) -> str:
    """Ask the text model for a color palette as a JSON array of objects."""
    return f"""You are a brand and visual designer.

Suggest a harmonious palette of {count} colors for this design: "{context}".

Return ONLY a JSON array with exactly {count} objects. Each object has the keys
"hex" (e.g. "#1E3A8A"), "rgb" (e.g. "30, 58, 138"), "cmyk" (e.g. "78, 58, 0, 46")
and "name" (a short human color name).

Palette:"""
