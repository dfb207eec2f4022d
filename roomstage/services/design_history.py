"""
Per-project history of generated designs (newest first, bounded)
"""
import asyncio
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Protocol

DESIGN_HISTORY_LIMIT = 12


@dataclass
class DesignRecord:
    id: str
    image_url: str
    style: str
    provider: str
    fallback_used: bool = False
    planner_used: bool = False
    user_prompt: str = ""
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def append_design(history: List[DesignRecord], record: DesignRecord, limit: int = DESIGN_HISTORY_LIMIT) -> List[DesignRecord]:
    """Return a new history with record first and at most limit entries"""
    return [record, *history][:limit]


class DesignHistoryStore(Protocol):
    async def append(self, project_id: str, record: DesignRecord) -> None:
        ...


class InMemoryDesignHistory:
    """Process-local history store"""

    def __init__(self, limit: int = DESIGN_HISTORY_LIMIT):
        self.limit = limit
        self._histories: Dict[str, List[DesignRecord]] = {}
        self._lock = asyncio.Lock()

    async def append(self, project_id: str, record: DesignRecord) -> None:
        async with self._lock:
            self._histories[project_id] = append_design(self._histories.get(project_id, []), record, self.limit)

    async def get(self, project_id: str) -> List[DesignRecord]:
        return list(self._histories.get(project_id, []))
