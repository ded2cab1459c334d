"""Text and metadata extraction for each kind of historical content."""

from datetime import datetime
from typing import Any, Dict, Optional

from ..models.migration import SourceItem
from ..models.rag import ContentType
from ..utils.date_utils import parse_timestamp


def _iso(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    try:
        return parse_timestamp(str(value)).isoformat()
    except ValueError:
        return str(value)


def _created_at(item: Dict[str, Any]) -> Optional[datetime]:
    value = item.get("created_at")
    if isinstance(value, datetime):
        return value
    if value:
        try:
            return parse_timestamp(str(value))
        except ValueError:
            return None
    return None


def extract_journal(item: Dict[str, Any]) -> SourceItem:
    return SourceItem(
        document_id=str(item["id"]),
        content_type=ContentType.JOURNAL,
        text=f"{item.get('title') or ''}\n\n{item.get('content') or ''}".strip(),
        metadata={
            "mood": item.get("mood"),
            "tags": list(item.get("tags") or []),
        },
        created_at=_created_at(item),
    )


def extract_goal(item: Dict[str, Any]) -> SourceItem:
    return SourceItem(
        document_id=str(item["id"]),
        content_type=ContentType.GOAL,
        text=f"{item.get('title') or ''}\n\n{item.get('description') or ''}".strip(),
        metadata={
            "category": item.get("category"),
            "status": item.get("status"),
            "target_date": _iso(item.get("target_date")),
        },
        created_at=_created_at(item),
    )


def extract_milestone(item: Dict[str, Any], goal_id: str) -> SourceItem:
    return SourceItem(
        document_id=str(item["id"]),
        content_type=ContentType.MILESTONE,
        text=(item.get("title") or "").strip(),
        metadata={
            "goal_id": item.get("goal_id") or goal_id,
            "due_date": _iso(item.get("due_date")),
            "completed": bool(item.get("completed", False)),
            "order": item.get("order") or 0,
        },
        created_at=_created_at(item),
    )


def extract_progress_update(item: Dict[str, Any], goal_id: str) -> SourceItem:
    return SourceItem(
        document_id=str(item["id"]),
        content_type=ContentType.PROGRESS_UPDATE,
        text=(item.get("content") or "").strip(),
        metadata={
            "goal_id": item.get("goal_id") or goal_id,
            "created_at": _iso(item.get("created_at")),
        },
        created_at=_created_at(item),
    )
