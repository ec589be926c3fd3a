#!/usr/bin/env python3
"""
catalog.py

Static tables for asset types, subtypes, prompt suggestions and curated
palettes. Each asset type is one descriptor record so that its subtypes,
icon and description can never drift apart.
"""

import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .api.exceptions import UnknownAssetTypeError
from .core.models import PaletteColor


@dataclass(frozen=True)
class SubtypeInfo:
    name: str
    description: str
    icon: str
    needs_color: bool = False
    example_prompts: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AssetTypeInfo:
    key: str
    title: str
    description: str
    icon: str
    subtypes: Tuple[SubtypeInfo, ...] = field(default_factory=tuple)

    @property
    def needs_color(self) -> bool:
        """True if any subtype of this type asks for explicit colors."""
        return any(s.needs_color for s in self.subtypes)

    def subtype(self, name: str) -> Optional[SubtypeInfo]:
        for s in self.subtypes:
            if s.name.lower() == name.strip().lower():
                return s
        return None


# ═══════════════════════════════════════════════════════════════════════════════
# ASSET TYPES
# ═══════════════════════════════════════════════════════════════════════════════
ASSET_TYPES: Tuple[AssetTypeInfo, ...] = (
    AssetTypeInfo(
        key="character",
        title="Character",
        description="Create NPCs, heroes, and creatures",
        icon="person",
        subtypes=(
            SubtypeInfo("Hero", "Playable protagonists", "shield", example_prompts=(
                "A brave knight in silver armor holding a glowing sword",
                "A young space explorer with a jetpack and visor",
            )),
            SubtypeInfo("NPC", "Villagers, merchants and guides", "groups", example_prompts=(
                "A friendly baker with a flour-dusted apron",
                "An old map merchant with a long grey beard",
            )),
            SubtypeInfo("Creature", "Monsters and animals", "pets", example_prompts=(
                "A small fire salamander with glowing scales",
                "A fluffy cloud sheep floating above a meadow",
            )),
            SubtypeInfo("Mascot", "Brand characters", "emoji_emotions", needs_color=True, example_prompts=(
                "A cheerful fox mascot waving hello",
                "A round robot mascot with a big friendly smile",
            )),
        ),
    ),
    AssetTypeInfo(
        key="environment",
        title="Environment",
        description="Build worlds and landscapes",
        icon="landscape",
        subtypes=(
            SubtypeInfo("Landscape", "Open outdoor scenes", "terrain", example_prompts=(
                "A serene mountain landscape at sunset",
                "A peaceful forest clearing with sunbeams",
            )),
            SubtypeInfo("Interior", "Rooms and buildings", "meeting_room", example_prompts=(
                "A cozy wizard library with floating candles",
                "A neon-lit ramen shop at midnight",
            )),
            SubtypeInfo("Cityscape", "Towns and skylines", "location_city", example_prompts=(
                "A bustling cyberpunk city at night",
                "A medieval harbor town at dawn",
            )),
        ),
    ),
    AssetTypeInfo(
        key="ui_element",
        title="UI Element",
        description="Design interface components",
        icon="widgets",
        subtypes=(
            SubtypeInfo("Button", "Clickable controls", "smart_button", needs_color=True, example_prompts=(
                "A sleek modern button with gradient",
                "A glossy play button with soft shadow",
            )),
            SubtypeInfo("Card", "Content panels", "dashboard", example_prompts=(
                "A glass-morphism card design",
                "A clean profile card with avatar slot",
            )),
            SubtypeInfo("Menu", "Navigation bars and menus", "menu", example_prompts=(
                "A futuristic navigation menu",
                "A minimal tab bar with five icons",
            )),
        ),
    ),
    AssetTypeInfo(
        key="icon",
        title="Icon",
        description="Craft symbols and indicators",
        icon="category",
        subtypes=(
            SubtypeInfo("Flat", "Solid shapes, no depth", "crop_square", needs_color=True, example_prompts=(
                "A simple flat icon with bold colors",
                "A flat shopping cart icon",
            )),
            SubtypeInfo("Line Art", "Outline strokes only", "gesture", example_prompts=(
                "A minimalist line art icon",
                "A thin-stroke settings gear icon",
            )),
            SubtypeInfo("3D", "Depth and lighting", "view_in_ar", example_prompts=(
                "A 3D-style icon with depth and lighting",
                "A glossy 3D treasure chest icon",
            )),
        ),
    ),
    AssetTypeInfo(
        key="texture",
        title="Texture",
        description="Generate materials and patterns",
        icon="texture",
        subtypes=(
            SubtypeInfo("Natural", "Wood, stone, foliage", "park", example_prompts=(
                "A realistic wood grain texture",
                "A rough stone wall texture",
            )),
            SubtypeInfo("Fabric", "Cloth and weaves", "checkroom", example_prompts=(
                "A soft fabric weave pattern",
                "A worn denim texture",
            )),
            SubtypeInfo("Pattern", "Repeating motifs", "grid_on", needs_color=True, example_prompts=(
                "An abstract geometric pattern",
                "A seamless polka dot pattern",
            )),
        ),
    ),
    AssetTypeInfo(
        key="logo",
        title="Logo",
        description="Design brand identities",
        icon="star",
        subtypes=(
            SubtypeInfo("Logo only", "Symbol without text", "star_outline", needs_color=True, example_prompts=(
                "A modern minimalist logo with clean lines",
                "A tech startup logo with geometric shapes",
            )),
            SubtypeInfo("Logo + Name", "Symbol with the brand name", "text_fields", needs_color=True, example_prompts=(
                "A professional corporate logo design",
                "A vintage-inspired logo with elegant typography",
            )),
            SubtypeInfo("Name only", "Wordmark", "title", needs_color=True, example_prompts=(
                "A bold wordmark with custom lettering",
                "A handwritten signature-style wordmark",
            )),
        ),
    ),
    AssetTypeInfo(
        key="background",
        title="Background",
        description="Backdrops for apps and games",
        icon="wallpaper",
        subtypes=(
            SubtypeInfo("Gradient", "Smooth color blends", "gradient", needs_color=True, example_prompts=(
                "A soft gradient background",
                "A vibrant sunset gradient background",
            )),
            SubtypeInfo("Scenic", "Painted scenery", "image", example_prompts=(
                "A starry night sky background",
                "A watercolor wash background",
            )),
        ),
    ),
    AssetTypeInfo(
        key="object",
        title="Object",
        description="Props, items and collectibles",
        icon="inventory_2",
        subtypes=(
            SubtypeInfo("Weapon", "Swords, bows, staffs", "gavel", example_prompts=(
                "A magical sword with glowing runes",
                "An ornate elven longbow",
            )),
            SubtypeInfo("Item", "Pickups and collectibles", "redeem", example_prompts=(
                "A vintage pocket watch",
                "A glowing health potion bottle",
            )),
            SubtypeInfo("Vehicle", "Ships, cars, mounts", "rocket_launch", example_prompts=(
                "A futuristic spaceship",
                "A steampunk airship with brass propellers",
            )),
        ),
    ),
)

_BY_KEY: Dict[str, AssetTypeInfo] = {t.key: t for t in ASSET_TYPES}
_BY_TITLE: Dict[str, AssetTypeInfo] = {t.title.lower(): t for t in ASSET_TYPES}


# Fallback suggestions by category (lowercase title), used when the
# suggestion service fails or returns nothing.
DEFAULT_SUGGESTIONS: Dict[str, List[str]] = {
    "logo": [
        "A modern minimalist logo with clean lines",
        "A vintage-inspired logo with elegant typography",
        "A tech startup logo with geometric shapes",
        "A creative agency logo with artistic elements",
        "A professional corporate logo design",
    ],
    "icon": [
        "A simple flat icon with bold colors",
        "A detailed icon with realistic shadows",
        "A minimalist line art icon",
        "A 3D-style icon with depth and lighting",
        "A colorful gradient icon design",
    ],
    "character": [
        "A friendly cartoon character with big eyes",
        "A heroic fantasy warrior with armor",
        "A cute animal mascot character",
        "A futuristic robot with glowing details",
        "A magical wizard with flowing robes",
    ],
    "environment": [
        "A peaceful forest clearing with sunbeams",
        "A bustling cyberpunk city at night",
        "A magical floating castle in clouds",
        "A serene mountain landscape at sunset",
        "An underwater coral reef scene",
    ],
    "ui element": [
        "A sleek modern button with gradient",
        "A glass-morphism card design",
        "A futuristic navigation menu",
        "A clean dashboard widget",
        "An animated loading spinner",
    ],
    "texture": [
        "A realistic wood grain texture",
        "A metallic brushed steel surface",
        "A soft fabric weave pattern",
        "A rough stone wall texture",
        "An abstract geometric pattern",
    ],
    "background": [
        "A soft gradient background",
        "A starry night sky background",
        "An abstract geometric pattern",
        "A watercolor wash background",
        "A subtle noise texture background",
    ],
    "object": [
        "A magical sword with glowing runes",
        "A vintage pocket watch",
        "A futuristic spaceship",
        "A cozy reading chair",
        "A steampunk mechanical device",
    ],
}

GENERIC_SUGGESTIONS: List[str] = [
    "A creative and unique design",
    "An artistic and beautiful creation",
    "A professional and polished asset",
    "An innovative and modern design",
    "A detailed and high-quality artwork",
]


def _p(hex_: str, rgb: str, cmyk: str, name: str) -> PaletteColor:
    return PaletteColor(hex=hex_, rgb=rgb, cmyk=cmyk, name=name)


# Ten curated three-color palettes, used when palette generation fails.
CURATED_PALETTES: Tuple[Tuple[PaletteColor, ...], ...] = (
    (_p("#1E3A8A", "30, 58, 138", "78, 58, 0, 46", "Navy Blue"),
     _p("#F59E0B", "245, 158, 11", "0, 36, 96, 4", "Amber"),
     _p("#F3F4F6", "243, 244, 246", "1, 1, 0, 4", "Cloud White")),
    (_p("#065F46", "6, 95, 70", "94, 0, 26, 63", "Forest Green"),
     _p("#D1FAE5", "209, 250, 229", "16, 0, 8, 2", "Mint"),
     _p("#78350F", "120, 53, 15", "0, 56, 88, 53", "Walnut")),
    (_p("#7C3AED", "124, 58, 237", "48, 76, 0, 7", "Violet"),
     _p("#EC4899", "236, 72, 153", "0, 69, 35, 7", "Hot Pink"),
     _p("#111827", "17, 24, 39", "56, 38, 0, 85", "Ink")),
    (_p("#DC2626", "220, 38, 38", "0, 83, 83, 14", "Crimson"),
     _p("#FDE68A", "253, 230, 138", "0, 9, 45, 1", "Butter"),
     _p("#1F2937", "31, 41, 55", "44, 25, 0, 78", "Charcoal")),
    (_p("#0EA5E9", "14, 165, 233", "94, 29, 0, 9", "Sky Blue"),
     _p("#F97316", "249, 115, 22", "0, 54, 91, 2", "Tangerine"),
     _p("#FFFFFF", "255, 255, 255", "0, 0, 0, 0", "White")),
    (_p("#A16207", "161, 98, 7", "0, 39, 96, 37", "Mustard"),
     _p("#FEF3C7", "254, 243, 199", "0, 4, 22, 0", "Cream"),
     _p("#3F6212", "63, 98, 18", "36, 0, 82, 62", "Olive")),
    (_p("#BE123C", "190, 18, 60", "0, 91, 68, 25", "Raspberry"),
     _p("#FCE7F3", "252, 231, 243", "0, 8, 4, 1", "Blush"),
     _p("#4C0519", "76, 5, 25", "0, 93, 67, 70", "Wine")),
    (_p("#0F766E", "15, 118, 110", "87, 0, 7, 54", "Teal"),
     _p("#FACC15", "250, 204, 21", "0, 18, 92, 2", "Sunflower"),
     _p("#F8FAFC", "248, 250, 252", "2, 1, 0, 1", "Snow")),
    (_p("#334155", "51, 65, 85", "40, 24, 0, 67", "Slate"),
     _p("#94A3B8", "148, 163, 184", "20, 11, 0, 28", "Steel"),
     _p("#E2E8F0", "226, 232, 240", "6, 3, 0, 6", "Mist")),
    (_p("#EA580C", "234, 88, 12", "0, 62, 95, 8", "Burnt Orange"),
     _p("#1E40AF", "30, 64, 175", "83, 63, 0, 31", "Royal Blue"),
     _p("#FFF7ED", "255, 247, 237", "0, 3, 7, 0", "Linen")),
)


# ═══════════════════════════════════════════════════════════════════════════════
# LOOKUPS
# ═══════════════════════════════════════════════════════════════════════════════

def list_asset_types() -> List[AssetTypeInfo]:
    return list(ASSET_TYPES)


def find_asset_type(name: str) -> Optional[AssetTypeInfo]:
    """Look up an asset type by key ("ui_element") or title ("UI Element")."""
    if not name:
        return None
    cleaned = name.strip().lower()
    return _BY_KEY.get(cleaned) or _BY_TITLE.get(cleaned)


def get_asset_type(name: str) -> AssetTypeInfo:
    """
    Look up an asset type, raising if it is not in the catalog.

    Raises:
        UnknownAssetTypeError: If the name matches no asset type.
    """
    info = find_asset_type(name)
    if info is None:
        raise UnknownAssetTypeError(f"Unknown asset type: {name!r}")
    return info


def get_subtypes(asset_type: str) -> List[str]:
    return [s.name for s in get_asset_type(asset_type).subtypes]


def get_subtype(asset_type: str, subtype: str) -> SubtypeInfo:
    info = get_asset_type(asset_type).subtype(subtype)
    if info is None:
        raise UnknownAssetTypeError(f"Unknown subtype {subtype!r} for asset type {asset_type!r}")
    return info


def needs_color(asset_type: str, subtype: Optional[str] = None) -> bool:
    """
    Whether explicit color input is required.

    With a subtype, answers for that (type, subtype) pair; without one,
    answers whether any subtype of the type needs colors.
    """
    if subtype:
        return get_subtype(asset_type, subtype).needs_color
    return get_asset_type(asset_type).needs_color


def get_description(asset_type: str) -> str:
    return get_asset_type(asset_type).description


def get_icon(asset_type: str) -> str:
    return get_asset_type(asset_type).icon


def default_suggestions(category: str) -> List[str]:
    """Curated suggestions for a category, or generic ones for anything unknown."""
    info = find_asset_type(category)
    key = info.title.lower() if info else (category or "").strip().lower()
    return list(DEFAULT_SUGGESTIONS.get(key, GENERIC_SUGGESTIONS))


def example_prompts(asset_type: str, subtype: str) -> List[str]:
    """Subtype examples, falling back to the category suggestions."""
    info = get_asset_type(asset_type).subtype(subtype)
    if info and info.example_prompts:
        return list(info.example_prompts)
    return default_suggestions(asset_type)


def shuffled_suggestions(category: str, rng: Optional[random.Random] = None) -> List[str]:
    """Curated suggestions for a category in uniformly random order."""
    rng = rng or random
    pool = default_suggestions(category)
    return rng.sample(pool, len(pool))


def random_palette(rng: Optional[random.Random] = None) -> List[PaletteColor]:
    """Pick one curated palette uniformly at random (returns a fresh list)."""
    rng = rng or random
    return list(rng.choice(CURATED_PALETTES))
