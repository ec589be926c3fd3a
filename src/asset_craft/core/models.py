"""
Data models for the generation flow.

Contains the step enum, the per-flow session container, and the records
handed to the asset library once a generation succeeds.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class GenerationStep(Enum):
    """Wizard steps, in forward order."""
    ASSET_TYPE_SELECTION = "asset_type_selection"
    ASSET_SUBTYPE_SELECTION = "asset_subtype_selection"
    COLOR_INPUT = "color_input"
    PROMPT_INPUT = "prompt_input"
    GENERATING = "generating"
    PREVIEW = "preview"


@dataclass(frozen=True)
class PaletteColor:
    """One suggested palette entry. Any of the four notations may be missing."""
    hex: Optional[str] = None
    rgb: Optional[str] = None
    cmyk: Optional[str] = None
    name: Optional[str] = None

    def display_value(self) -> str:
        """Return the most human-friendly notation available."""
        for value in (self.name, self.hex, self.rgb, self.cmyk):
            if value and value.strip():
                return value.strip()
        return ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PaletteColor":
        def _str(key: str) -> Optional[str]:
            value = data.get(key)
            return str(value).strip() if value not in (None, "") else None

        return cls(hex=_str("hex"), rgb=_str("rgb"), cmyk=_str("cmyk"), name=_str("name"))


@dataclass
class GenerationSession:
    """
    Complete state container for one generation flow.

    Owned by a single GenerationFlow. Created when the flow starts, reset by
    "start over", and discarded when the flow is closed.
    """

    # === Navigation ===
    step: GenerationStep = GenerationStep.ASSET_TYPE_SELECTION

    # === Selections ===
    asset_type: str = ""
    asset_subtype: str = ""
    color_count: Optional[int] = None
    colors: List[str] = field(default_factory=list)  # len == color_count
    prompt: str = ""

    # === Result ===
    image_bytes: Optional[bytes] = None
    image_format: Optional[str] = None  # "png", "jpeg", "webp"
    is_placeholder: bool = False
    last_prompt: str = ""  # Composed prompt of the most recent attempt
    error: Optional[str] = None

    @property
    def colors_complete(self) -> bool:
        """True when every color slot holds a non-blank value."""
        if not self.color_count:
            return False
        return len(self.colors) == self.color_count and all(c.strip() for c in self.colors)

    @property
    def has_result(self) -> bool:
        return self.image_bytes is not None

    def clear_result(self) -> None:
        """Drop the generated image and any error."""
        self.image_bytes = None
        self.image_format = None
        self.is_placeholder = False
        self.error = None

    def clear_colors(self) -> None:
        self.color_count = None
        self.colors = []

    def clear_from_subtype(self) -> None:
        """Invalidate everything downstream of the subtype choice."""
        self.clear_colors()
        self.clear_result()

    def clear_from_asset_type(self) -> None:
        """Invalidate everything downstream of the asset type choice."""
        self.asset_subtype = ""
        self.clear_from_subtype()

    def reset(self) -> None:
        """Return to a freshly created session."""
        self.step = GenerationStep.ASSET_TYPE_SELECTION
        self.asset_type = ""
        self.prompt = ""
        self.last_prompt = ""
        self.clear_from_asset_type()

    def to_tags(self) -> List[str]:
        """Library tags derived from the selected type and subtype."""
        tags: List[str] = []
        for value in (self.asset_type, self.asset_subtype):
            tag = value.strip().lower()
            if tag and tag not in tags:
                tags.append(tag)
        return tags


@dataclass
class AssetRecord:
    """
    A generated asset persisted to the user's library.

    Field names follow the `assets` table layout (snake_case keys in to_dict).
    """
    user_id: str
    prompt: str
    id: str = ""
    image_path: str = ""
    created_at: Optional[datetime] = None
    status: str = "pending"  # "pending" until saved, then "saved"
    is_favorite: bool = False
    is_public: bool = False
    tags: List[str] = field(default_factory=list)
    asset_type: str = ""
    asset_subtype: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "prompt": self.prompt,
            "image_path": self.image_path,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "status": self.status,
            "is_favorite": self.is_favorite,
            "is_public": self.is_public,
            "tags": list(self.tags),
            "asset_type": self.asset_type,
            "asset_subtype": self.asset_subtype,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssetRecord":
        created = data.get("created_at")
        return cls(
            id=str(data.get("id", "")),
            user_id=str(data["user_id"]),
            prompt=str(data.get("prompt", "")),
            image_path=str(data.get("image_path", "")),
            created_at=datetime.fromisoformat(created) if created else None,
            status=str(data.get("status", "saved")),
            is_favorite=bool(data.get("is_favorite", False)),
            is_public=bool(data.get("is_public", False)),
            tags=list(data.get("tags") or []),
            asset_type=str(data.get("asset_type", "")),
            asset_subtype=str(data.get("asset_subtype", "")),
        )
