"""
Prompt assembly for the renderer and edit providers
"""
from typing import Optional, Tuple

from roomstage.config.style_definitions import RoomStyle, get_style_profile, get_style_prompt
from roomstage.schemas.staging import StagingPlan

CONTINUITY_CONSTRAINTS = """Preserve architectural layout and room structure. Do not change camera angle.
Allow subtle lighting and surface adjustments to maintain seamless continuity.
No visible seams or cut lines. Consistent wall shading and continuous surfaces.
Consistent lighting direction and color temperature. Preserve global perspective and vanishing points."""

PLANNED_DEFAULT_POSITIVE = "Edit this exact room photo. Add furniture per plan. Must visibly change room."

EDIT_DEFAULT_POSITIVE = (
    "Add NEW furniture that is clearly visible. At minimum add: a sofa, a coffee table, and a rug. "
    "Do not return the original image unchanged."
)


def clean_user_prompt(user_prompt: Optional[str]) -> str:
    """Empty prompts and the literal 'none' are ignored"""
    text = (user_prompt or "").strip()
    return "" if text.lower() == "none" else text


def resolve_style_prompts(style: RoomStyle, user_prompt: Optional[str]) -> Tuple[str, str]:
    """
    Merge the detailed style prompt (if the style has one) with the user prompt.

    Returns:
        (positive, negative); either may be empty
    """
    style_prompt = get_style_prompt(style)
    parts = [style_prompt.positive if style_prompt else "", clean_user_prompt(user_prompt)]
    positive = "\n\n".join(part for part in parts if part)
    negative = style_prompt.negative if style_prompt else ""
    return positive, negative


def _with_negative(prompt: str, negative: str) -> str:
    return f"{prompt}\n\nNegative prompts:\n{negative}" if negative else prompt


def build_planned_prompt(positive: str, negative: str, plan: StagingPlan) -> str:
    """Pass-2 prompt when a staging plan is available"""
    prompt = (
        f"{positive or PLANNED_DEFAULT_POSITIVE}\n\n"
        f"{CONTINUITY_CONSTRAINTS}\n\n"
        f"Staging Plan:\n{plan.to_prompt_json()}"
    )
    return _with_negative(prompt, negative)


def build_unplanned_prompt(style_label: str, style: RoomStyle, positive: str, negative: str, more_furniture: bool) -> str:
    """Renderer prompt without a planner: the style's furniture list stands in for the plan"""
    if not positive:
        furniture = ", ".join(get_style_profile(style).furniture)
        if more_furniture:
            furniture += ", additional decor items"
        positive = (
            f"Edit this room photo in {style_label} style. Add NEW furniture that is clearly visible: "
            f"{furniture}. Must visibly change room."
        )
    return _with_negative(f"{positive}\n\n{CONTINUITY_CONSTRAINTS}", negative)


def build_coherence_prompt(style_label: str, negative: str) -> str:
    """Pass-1 prompt: lighting and material coherence only"""
    prompt = (
        f"Enhance this room photo for {style_label} style. {CONTINUITY_CONSTRAINTS}\n"
        "Improve lighting consistency, surface materials, and atmospheric coherence.\n"
        "Do not add or remove furniture. Maintain exact camera angle and room structure.\n"
        "Subtle adjustments only for realistic rendering."
    )
    return _with_negative(prompt, negative)


def build_edit_prompt(positive: str, negative: str) -> str:
    """Prompt for the image edit provider"""
    return _with_negative(f"{positive or EDIT_DEFAULT_POSITIVE}\n\n{CONTINUITY_CONSTRAINTS}", negative)
