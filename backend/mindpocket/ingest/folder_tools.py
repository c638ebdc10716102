"""Folder tools exposed to the auto-folder model."""
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..models import Folder
from ..models.folders import DEFAULT_FOLDER_EMOJI, FOLDER_EMOJI_MAX_LENGTH

logger = logging.getLogger(__name__)

FOLDER_DESCRIPTION_MAX_LENGTH = 200

TOOL_SCHEMAS: List[Dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": "list_folders",
            "description": "List the user's existing folders.",
            "parameters": {"type": "object", "properties": {}},
        },
    },
    {
        "type": "function",
        "function": {
            "name": "create_folder",
            "description": "Create a folder when no existing folder fits. Returns the folder id.",
            "parameters": {
                "type": "object",
                "properties": {
                    "name": {"type": "string", "description": "Short folder name"},
                    "description": {"type": "string", "description": "One sentence about the folder"},
                    "emoji": {"type": "string", "description": "A single emoji"},
                },
                "required": ["name"],
            },
        },
    },
]


def _serialize(folder: Folder) -> Dict[str, Any]:
    return {
        "id": str(folder.id),
        "name": folder.name,
        "description": folder.description,
        "emoji": folder.emoji,
    }


def list_folders(session: Session, user_id: uuid.UUID) -> Dict[str, Any]:
    stmt = select(Folder).where(Folder.user_id == user_id).order_by(Folder.sort_order, Folder.created_at)
    folders = session.execute(stmt).scalars().all()
    return {"success": True, "data": {"folders": [_serialize(folder) for folder in folders]}}


def create_folder(
    session: Session,
    user_id: uuid.UUID,
    name: str,
    description: str | None = None,
    emoji: str | None = None,
) -> Dict[str, Any]:
    """Create a folder, reusing an existing one with the same name."""

    name = (name or "").strip()
    if not name:
        return {"success": False, "error": "Folder name is required"}

    existing = session.execute(
        select(Folder).where(Folder.user_id == user_id, func.lower(Folder.name) == name.lower())
    ).scalars().first()
    if existing is not None:
        return {"success": True, "data": {"folder": _serialize(existing), "created": False}}

    max_order = session.execute(
        select(func.max(Folder.sort_order)).where(Folder.user_id == user_id)
    ).scalar()
    emoji = (emoji or "").strip()
    if len(emoji) > FOLDER_EMOJI_MAX_LENGTH:
        emoji = ""
    folder = Folder(
        user_id=user_id,
        name=name,
        description=(description or "").strip()[:FOLDER_DESCRIPTION_MAX_LENGTH] or None,
        emoji=emoji or DEFAULT_FOLDER_EMOJI,
        sort_order=(max_order if max_order is not None else -1) + 1,
    )
    session.add(folder)
    session.flush()
    logger.info("Created folder %s (%s) for user %s", folder.id, folder.name, user_id)
    return {"success": True, "data": {"folder": _serialize(folder), "created": True}}


def run_tool(session: Session, user_id: uuid.UUID, name: str, arguments: Dict[str, Any] | None) -> Dict[str, Any]:
    arguments = arguments or {}
    if name == "list_folders":
        return list_folders(session, user_id)
    if name == "create_folder":
        return create_folder(
            session,
            user_id,
            str(arguments.get("name") or ""),
            arguments.get("description"),
            arguments.get("emoji"),
        )
    return {"success": False, "error": f"Unknown tool: {name}"}
