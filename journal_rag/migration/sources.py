"""Readers for historical user content."""

import asyncio
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config.logging import LoggerMixin
from ..core.exceptions import MigrationError


class ContentSource(ABC, LoggerMixin):
    """Read-only view of the document store holding users' journals and goals."""

    @abstractmethod
    async def get_all_user_ids(self) -> List[str]:
        """IDs of every user with journals or goals."""
        pass

    @abstractmethod
    async def get_journals(self, user_id: str) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_goals(self, user_id: str) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_milestones(self, user_id: str, goal_id: str) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_progress_updates(self, user_id: str, goal_id: str) -> List[Dict[str, Any]]:
        pass


class InMemoryContentSource(ContentSource):
    """Content held in a dict shaped like the JSON export.

    ``{"users": {user_id: {"journals": [...], "goals": [{..., "milestones": [...],
    "progress_updates": [...]}]}}}``
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None) -> None:
        self._users: Dict[str, Dict[str, Any]] = dict((data or {}).get("users", {}))

    async def _ensure_loaded(self) -> None:
        pass

    async def get_all_user_ids(self) -> List[str]:
        await self._ensure_loaded()
        return [
            user_id
            for user_id, content in self._users.items()
            if content.get("journals") or content.get("goals")
        ]

    async def get_journals(self, user_id: str) -> List[Dict[str, Any]]:
        await self._ensure_loaded()
        return list(self._users.get(user_id, {}).get("journals", []))

    async def get_goals(self, user_id: str) -> List[Dict[str, Any]]:
        await self._ensure_loaded()
        return list(self._users.get(user_id, {}).get("goals", []))

    def _goal(self, user_id: str, goal_id: str) -> Dict[str, Any]:
        for goal in self._users.get(user_id, {}).get("goals", []):
            if goal.get("id") == goal_id:
                return goal
        return {}

    async def get_milestones(self, user_id: str, goal_id: str) -> List[Dict[str, Any]]:
        await self._ensure_loaded()
        return list(self._goal(user_id, goal_id).get("milestones", []))

    async def get_progress_updates(self, user_id: str, goal_id: str) -> List[Dict[str, Any]]:
        await self._ensure_loaded()
        return list(self._goal(user_id, goal_id).get("progress_updates", []))


class JsonContentSource(InMemoryContentSource):
    """Content loaded from a JSON export file."""

    def __init__(self, path: Path) -> None:
        super().__init__()
        self.path = Path(path)
        self._loaded = False

    async def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        try:
            raw = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
            data = json.loads(raw)
        except (OSError, ValueError) as e:
            raise MigrationError(f"Failed to load content export {self.path}: {e}")

        self._users = dict(data.get("users", {}))
        self._loaded = True
        self.logger.info("Content export loaded", path=str(self.path), users=len(self._users))

