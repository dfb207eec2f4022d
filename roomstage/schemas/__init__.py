"""
Pydantic schemas for room staging.
"""
from .staging import PlanItem, StageRoomRequest, StageRoomResponse, StagingPlan

__all__ = [
    "PlanItem",
    "StageRoomRequest",
    "StageRoomResponse",
    "StagingPlan",
]
