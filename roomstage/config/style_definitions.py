"""
Staging style definitions.

These tables are used by:
1. Prompt assembly for the renderer and edit providers
2. The deterministic fallback staging plan when the planner is unavailable
3. Style prompt resolution (detailed positive/negative prompts)

Every table is total over RoomStyle. Free-form or unknown style text maps to
RoomStyle.GENERIC, which carries neutral defaults.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


class RoomStyle(str, Enum):
    """Supported staging styles"""

    RUSTIC = "rustic"
    MODERN = "modern"
    MINIMALIST = "minimalist"
    SCANDINAVIAN = "scandinavian"
    INDUSTRIAL = "industrial"
    MID_CENTURY_MODERN = "mid-century-modern"
    BOHEMIAN = "bohemian"
    JAPANDI = "japandi"
    MEDITERRANEAN = "mediterranean"
    COASTAL = "coastal"
    FARMHOUSE = "farmhouse"
    TRANSITIONAL = "transitional"
    ART_DECO = "art-deco"
    WABI_SABI = "wabi-sabi"
    TROPICAL_MODERN = "tropical-modern"
    CONTEMPORARY = "contemporary"
    GENERIC = "generic"  # anything else the user typed

    @classmethod
    def from_value(cls, value: Optional[str]) -> "RoomStyle":
        """Map user style text onto a supported style (total)."""
        key = (value or "").strip().lower().replace("_", "-").replace(" ", "-")
        try:
            return cls(key)
        except ValueError:
            return cls.GENERIC


@dataclass(frozen=True)
class StyleProfile:
    """Furniture and palette defaults for one style"""

    # Five items used in prompts: sofa, coffee table, rug, floor lamp, side table
    furniture: List[str]
    # Four palette colors: [sofa, tables, rug, lamp]
    colors: List[str]


STYLE_PROFILES: Dict[RoomStyle, StyleProfile] = {
    RoomStyle.RUSTIC: StyleProfile(
        ["linen sofa", "reclaimed wood coffee table", "jute rug", "warm floor lamp", "wooden side table"],
        ["brown", "beige", "cream", "warm wood"],
    ),
    RoomStyle.MODERN: StyleProfile(
        ["sleek sectional sofa", "glass coffee table", "geometric rug", "modern floor lamp", "metal side table"],
        ["black", "white", "gray", "chrome"],
    ),
    RoomStyle.MINIMALIST: StyleProfile(
        ["simple low-profile sofa", "minimalist coffee table", "neutral rug", "clean floor lamp", "minimal decor"],
        ["white", "beige", "gray", "natural"],
    ),
    RoomStyle.SCANDINAVIAN: StyleProfile(
        ["light-colored sofa", "light wood coffee table", "wool rug", "simple floor lamp", "natural wood side table"],
        ["white", "light gray", "natural wood", "pastel"],
    ),
    RoomStyle.INDUSTRIAL: StyleProfile(
        ["leather sofa", "metal coffee table", "dark rug", "industrial floor lamp", "metal side table"],
        ["black", "brown", "gray", "metal"],
    ),
    RoomStyle.MID_CENTURY_MODERN: StyleProfile(
        [
            "retro sofa with tapered legs",
            "mid-century coffee table",
            "vintage rug",
            "atomic floor lamp",
            "teak side table",
        ],
        ["teal", "orange", "brown", "gold"],
    ),
    RoomStyle.BOHEMIAN: StyleProfile(
        ["colorful patterned sofa", "eclectic coffee table", "textured rug", "boho floor lamp", "decorative side table"],
        ["multicolor", "purple", "pink", "gold"],
    ),
    RoomStyle.JAPANDI: StyleProfile(
        ["low-profile sofa", "minimalist wood coffee table", "natural fiber rug", "simple floor lamp", "zen side table"],
        ["beige", "brown", "black", "natural"],
    ),
    RoomStyle.MEDITERRANEAN: StyleProfile(
        ["warm-toned sofa", "ornate coffee table", "terracotta rug", "Mediterranean floor lamp", "carved side table"],
        ["terracotta", "blue", "white", "gold"],
    ),
    RoomStyle.COASTAL: StyleProfile(
        ["light-colored sofa", "weathered wood coffee table", "nautical rug", "coastal floor lamp", "beachy side table"],
        ["blue", "white", "beige", "sand"],
    ),
    RoomStyle.FARMHOUSE: StyleProfile(
        ["comfortable sofa", "farmhouse coffee table", "rustic rug", "vintage floor lamp", "wooden side table"],
        ["brown", "cream", "white", "wood"],
    ),
    RoomStyle.TRANSITIONAL: StyleProfile(
        ["elegant sofa", "transitional coffee table", "classic rug", "elegant floor lamp", "refined side table"],
        ["navy", "beige", "gray", "gold"],
    ),
    RoomStyle.ART_DECO: StyleProfile(
        ["luxurious sofa", "geometric coffee table", "rich rug", "art deco floor lamp", "ornate side table"],
        ["black", "gold", "emerald", "ivory"],
    ),
    RoomStyle.WABI_SABI: StyleProfile(
        [
            "simple natural sofa",
            "imperfect wood coffee table",
            "natural rug",
            "simple floor lamp",
            "handcrafted side table",
        ],
        ["brown", "beige", "gray", "natural"],
    ),
    RoomStyle.TROPICAL_MODERN: StyleProfile(
        ["modern sofa", "tropical wood coffee table", "vibrant rug", "modern floor lamp", "tropical side table"],
        ["green", "white", "brown", "coral"],
    ),
    RoomStyle.CONTEMPORARY: StyleProfile(
        [
            "comfortable modern sofa",
            "contemporary coffee table",
            "stylish rug",
            "modern floor lamp",
            "functional side table",
        ],
        ["gray", "white", "black", "accent color"],
    ),
    RoomStyle.GENERIC: StyleProfile(
        ["sofa", "coffee table", "rug", "floor lamp", "side table"],
        ["neutral", "beige", "brown", "white"],
    ),
}


@dataclass(frozen=True)
class StylePrompt:
    """Detailed positive/negative prompt for a style"""

    positive: str
    negative: str


STYLE_PROMPTS: Dict[RoomStyle, StylePrompt] = {
    RoomStyle.MINIMALIST: StylePrompt(
        positive="""Redesign this room in a minimalist interior design style.

Design intent:
Minimalism emphasizes simplicity, clarity, and intentionality. Every element must serve a purpose. The space should feel calm, airy, and visually uncluttered, prioritizing quality over quantity.

Spatial layout:
Maintain an open, balanced, and breathable feel with generous negative space. Furniture placement should be sparse and deliberate. Avoid overcrowding, visual noise, and unnecessary objects.

Color palette:
Use a restrained neutral palette including white, off-white, soft cream, light grey, warm beige, and muted earth tones. Accents, if any, must be extremely subtle. Avoid bold colors, strong contrast, or busy patterns.

Materials and textures:
Use natural, refined materials with matte finishes such as light wood (oak, ash, birch), stone or concrete, linen, cotton, wool, and minimal brushed metal. Textures should add depth subtly without layering excessively.

Furniture:
Replace existing furniture with simple, clean-lined, low-profile modern pieces. Upholstery should be plain and neutral. Each furniture item must feel intentional and well-spaced. Avoid bulky, ornate, or decorative furniture.

Lighting:
Preserve natural light. Use soft, warm, integrated lighting such as recessed or linear fixtures. Lighting should be functional and understated, not decorative.

Decor:
Keep decor minimal and curated. Limit to one abstract artwork, one small indoor plant with a clean form, and a few simple ceramic objects. No clutter or collections.

Mandatory constraints:
- Keep the same room layout and architecture
- Do not change the camera angle
- Replace furniture only
- Photorealistic
- Realistic shadows and materials""",
        negative="""No warped geometry
No extra clutter
No decorative excess
No bold or saturated colors
No ornate or vintage furniture
No unrealistic lighting or reflections
No cartoon or stylized rendering
No text, logos, or watermarks""",
    ),
}


def get_style_profile(style: RoomStyle) -> StyleProfile:
    return STYLE_PROFILES[style]


def get_style_prompt(style: RoomStyle) -> Optional[StylePrompt]:
    """Detailed prompt for the style, or None when only the generic wording applies"""
    return STYLE_PROMPTS.get(style)
