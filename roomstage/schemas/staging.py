"""
Pydantic schemas for room staging requests, responses and plans
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PlanItem(BaseModel):
    """One piece of furniture or decor the plan wants added"""

    item: str
    placement: str = ""
    scale: str = ""
    material: str = ""
    color: str = ""
    notes: Optional[str] = None


class StagingPlan(BaseModel):
    """Structured staging plan produced by the planner (or the fallback table)"""

    model_config = ConfigDict(populate_by_name=True)

    room_type: str = Field(..., alias="roomType", min_length=1)
    style: str = Field(..., min_length=1)
    add_items: List[PlanItem] = Field(..., alias="addItems", min_length=1)
    avoid: List[str] = Field(default_factory=list)
    lighting: str = ""
    color_palette: List[str] = Field(default_factory=list, alias="colorPalette")

    def to_prompt_json(self) -> str:
        """Serialize with the camelCase keys the providers were prompted with"""
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)


class StageRoomRequest(BaseModel):
    """Inbound staging request"""

    image_url: Optional[str] = Field(default=None, description="Room photo: http(s) URL, data URI or local public path")
    style: Optional[str] = Field(default=None, description="Style key, e.g. 'scandinavian'")
    prompt: Optional[str] = Field(default=None, description="Free-form user instructions")
    more_furniture: bool = False
    project_id: Optional[str] = None

    @field_validator("image_url", "style", "prompt")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if isinstance(v, str) else v


class StageRoomResponse(BaseModel):
    """Structured outcome; every request gets one, success or not"""

    success: bool
    request_id: str
    image_url: Optional[str] = None
    design_id: Optional[str] = None
    provider_used: Optional[str] = None
    fallback_used: bool = False
    planner_used: bool = False
    low_confidence: bool = False
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    retryable: bool = False
