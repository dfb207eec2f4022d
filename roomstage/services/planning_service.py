"""
Staging planner backed by Google Gemini.

The planner looks at the room photo and answers with a structured JSON plan
(which furniture to add, where, in which colours). The plan is advisory: any
failure is compensated with a deterministic per-style fallback plan.
"""
import asyncio
import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from google import genai
from google.genai import types
from pydantic import ValidationError

from roomstage.config.style_definitions import RoomStyle, get_style_profile
from roomstage.core.errors import PlanningError
from roomstage.core.request_context import get_logger
from roomstage.core.retry import retry_with_backoff
from roomstage.schemas.staging import PlanItem, StagingPlan

logger = get_logger(__name__)

MODEL_PREFIX = "models/"
GENERATE_CONTENT = "generateContent"

STANDARD_AVOID = [
    "do not block doors or windows",
    "preserve existing architecture",
    "keep walls and ceiling unchanged",
]
STANDARD_LIGHTING = "natural daylight with warm ambient lighting"


def to_short_model_name(name: str) -> str:
    """'models/gemini-2.5-flash' -> 'gemini-2.5-flash'"""
    if not name:
        return ""
    return name[len(MODEL_PREFIX) :] if name.startswith(MODEL_PREFIX) else name


def to_full_model_name(name: str) -> str:
    """'gemini-2.5-flash' -> 'models/gemini-2.5-flash'"""
    if not name:
        return ""
    return name if name.startswith(MODEL_PREFIX) else f"{MODEL_PREFIX}{name}"


@dataclass
class GeminiModel:
    """A model as reported by the models listing"""

    full_name: str
    short_name: str
    display_name: str
    supported_actions: List[str] = field(default_factory=list)

    def supports(self, action: str) -> bool:
        # Models that list no actions are assumed to support generateContent
        if not self.supported_actions:
            return action == GENERATE_CONTENT
        return action in self.supported_actions


@dataclass
class ModelValidation:
    valid: bool
    matched_model: Optional[str] = None
    available_models: List[str] = field(default_factory=list)


class GeminiTextClient:
    """Text generation collaborator for the planner"""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        timeout_seconds: float = 30.0,
        client: Optional[Any] = None,
    ):
        self.api_key = api_key
        self.model = to_short_model_name(model)
        self.timeout_seconds = timeout_seconds
        self._client = client

    @property
    def genai_client(self):
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def complete(self, prompt: str, image_bytes: Optional[bytes] = None, mime_type: str = "image/png") -> str:
        """Generate text for a prompt, optionally grounded on one image"""
        parts = []
        if image_bytes:
            parts.append(types.Part.from_bytes(data=image_bytes, mime_type=mime_type))
        parts.append(types.Part.from_text(text=prompt))
        contents = [types.Content(role="user", parts=parts)]

        def _run_generate():
            """Run the blocking generate_content call in a separate thread"""
            response = self.genai_client.models.generate_content(
                model=self.model,
                contents=contents,
                config=types.GenerateContentConfig(temperature=0.4),
            )
            return response.text or ""

        logger.info(f"Generating text with {self.model} (image={bool(image_bytes)}, prompt_length={len(prompt)})")
        loop = asyncio.get_event_loop()
        text = await asyncio.wait_for(loop.run_in_executor(None, _run_generate), timeout=self.timeout_seconds)
        logger.info(f"Text generation succeeded ({len(text)} chars)")
        return text

    async def list_models(self) -> List[GeminiModel]:
        """List available models; retried since listing is idempotent"""

        def _run_list():
            models = []
            for model in self.genai_client.models.list():
                name = getattr(model, "name", "") or ""
                short_name = to_short_model_name(name)
                if not short_name:
                    continue
                models.append(
                    GeminiModel(
                        full_name=to_full_model_name(name),
                        short_name=short_name,
                        display_name=getattr(model, "display_name", None) or short_name,
                        supported_actions=list(getattr(model, "supported_actions", None) or []),
                    )
                )
            return models

        async def _attempt():
            loop = asyncio.get_event_loop()
            return await asyncio.wait_for(loop.run_in_executor(None, _run_list), timeout=self.timeout_seconds)

        models = await retry_with_backoff(_attempt)
        logger.info(f"Listed {len(models)} models: {[m.short_name for m in models[:10]]}")
        return models

    async def validate_model(self, name: Optional[str] = None, action: str = GENERATE_CONTENT) -> ModelValidation:
        """
        Check that a model exists and supports an action.

        Matching is on short names, case-insensitive: exact first, then either
        name containing the other.
        """
        wanted = to_short_model_name(name or self.model).lower()
        try:
            models = await self.list_models()
        except Exception as e:
            logger.error(f"Model validation failed: {e}")
            return ModelValidation(valid=False)

        available = [m.short_name for m in models if m.supports(action)]
        match = next((m for m in models if m.short_name.lower() == wanted), None)
        if match is None:
            match = next(
                (m for m in models if wanted in m.short_name.lower() or m.short_name.lower() in wanted),
                None,
            )

        if match is None:
            logger.warning(f"Model not found: {wanted} (available: {available[:10]})")
            return ModelValidation(valid=False, available_models=available)

        if not match.supports(action):
            logger.warning(f"Model {match.short_name} does not support {action}")
            return ModelValidation(valid=False, matched_model=match.short_name, available_models=available)

        return ModelValidation(valid=True, matched_model=match.short_name, available_models=available)

    async def health_check(self) -> Dict[str, Any]:
        """Perform health check: configuration, listing, model validation, ping"""
        if not self.api_key:
            return {"status": "unhealthy", "error": "GEMINI_API_KEY not configured", "api_key_valid": False}

        try:
            models = await self.list_models()
        except Exception as e:
            return {"status": "unhealthy", "error": f"Failed to list models: {e}", "api_key_valid": True}

        validation = await self.validate_model()
        if not validation.valid:
            return {
                "status": "unhealthy",
                "error": f"Text model '{self.model}' not found or does not support {GENERATE_CONTENT}",
                "configured_model": self.model,
                "matched_model": validation.matched_model,
                "suggested_models": validation.available_models[:10],
                "total_available": len(models),
            }

        try:
            start_time = time.time()
            text = await self.complete("ping")
            response_time = time.time() - start_time
        except Exception as e:
            return {"status": "unhealthy", "error": f"Test call failed: {e}", "configured_model": self.model}

        return {
            "status": "healthy",
            "configured_model": self.model,
            "matched_model": validation.matched_model,
            "response_time": response_time,
            "response_length": len(text),
            "api_key_valid": True,
        }


def build_planning_prompt(style_label: str, user_prompt: str = "", more_furniture: bool = False) -> str:
    extra = f"Additional requirements: {user_prompt}" if user_prompt else ""
    more = "Include more furniture items and decor." if more_furniture else ""
    return f"""Analyze this room photo and create a detailed staging plan in JSON format.

Style: {style_label}
{extra}
{more}

Return ONLY valid JSON with this exact structure (no markdown, no code blocks):
{{
  "roomType": "living room" | "bedroom" | "dining room" | "kitchen" | "office" | "other",
  "style": "{style_label}",
  "addItems": [
    {{
      "item": "sofa",
      "placement": "on floor, center-left, facing window",
      "scale": "large",
      "material": "fabric",
      "color": "navy blue",
      "notes": "should be clearly visible"
    }},
    {{
      "item": "coffee table",
      "placement": "on floor, center, in front of sofa",
      "scale": "medium",
      "material": "wood",
      "color": "natural wood",
      "notes": "positioned for easy access"
    }},
    {{
      "item": "rug",
      "placement": "on floor, under sofa and coffee table",
      "scale": "large",
      "material": "wool",
      "color": "beige",
      "notes": "defines seating area"
    }}
  ],
  "avoid": {json.dumps(STANDARD_AVOID)},
  "lighting": "{STANDARD_LIGHTING}",
  "colorPalette": ["navy blue", "beige", "natural wood", "white"]
}}

Requirements:
- Must include at least: sofa, coffee table, rug
- Each item must have specific placement instructions
- Avoid array must include preservation constraints
- Return ONLY the JSON object, no other text."""


def strip_code_fences(text: str) -> str:
    """Remove an enclosing ```json ... ``` or ``` ... ``` block"""
    text = text.strip()
    for fence in ("```json", "```"):
        if text.startswith(fence):
            text = text[len(fence) :]
            if text.endswith("```"):
                text = text[:-3]
            return text.strip()
    return text


def parse_plan(text: str) -> StagingPlan:
    """Parse planner output into a StagingPlan, raising PlanningError when unusable"""
    try:
        return StagingPlan.model_validate(json.loads(strip_code_fences(text)))
    except (ValueError, ValidationError) as e:
        raise PlanningError(f"Invalid plan JSON: {e}") from e


def fallback_plan(style_label: str, more_furniture: bool = False) -> StagingPlan:
    """Deterministic plan used whenever the planner is unavailable or fails"""
    colors = get_style_profile(RoomStyle.from_value(style_label)).colors
    items = [
        PlanItem(item="sofa", placement="on floor, center-left", scale="large", material="fabric", color=colors[0]),
        PlanItem(
            item="coffee table",
            placement="on floor, center, in front of sofa",
            scale="medium",
            material="wood",
            color=colors[1],
        ),
        PlanItem(
            item="rug",
            placement="on floor, under sofa and coffee table",
            scale="large",
            material="wool",
            color=colors[2],
        ),
    ]
    if more_furniture:
        items.append(
            PlanItem(item="floor lamp", placement="on floor, behind sofa", scale="medium", material="metal", color=colors[3])
        )
        items.append(
            PlanItem(item="side table", placement="on floor, next to sofa", scale="small", material="wood", color=colors[1])
        )

    return StagingPlan(
        room_type="living room",
        style=style_label,
        add_items=items,
        avoid=list(STANDARD_AVOID),
        lighting=STANDARD_LIGHTING,
        color_palette=list(colors),
    )


class StagingPlanner:
    """Produces staging plans through a text-generation collaborator"""

    def __init__(self, text_client: GeminiTextClient):
        self.text_client = text_client

    async def plan(
        self,
        style_label: str,
        user_prompt: str = "",
        image_bytes: Optional[bytes] = None,
        more_furniture: bool = False,
    ) -> StagingPlan:
        """
        Ask the planner for a staging plan.

        Raises:
            PlanningError: on timeout, provider failure or unusable output
        """
        prompt = build_planning_prompt(style_label, user_prompt, more_furniture)
        try:
            text = await self.text_client.complete(prompt, image_bytes)
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError as e:
            raise PlanningError("Planner timed out") from e
        except Exception as e:
            raise PlanningError(f"Planner call failed: {type(e).__name__} - {e}") from e

        plan = parse_plan(text)
        logger.info(f"Planning succeeded: room_type={plan.room_type}, items={len(plan.add_items)}")
        return plan
