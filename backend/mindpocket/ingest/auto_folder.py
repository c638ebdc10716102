"""Assign new bookmarks to a folder with a small tool-calling loop.

The loop is bounded: the folder list is always enumerated first, then the
model gets at most ``AUTO_FOLDER_MAX_STEPS`` turns to decide, optionally
creating a folder, before a final ``FOLDER_ID:<id>`` or ``NONE`` line.
"""
from __future__ import annotations

import json
import logging
import re
import uuid
from typing import Any, Callable, Dict, List, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..ai.ollama_client import OllamaChatClient
from ..core.config import settings
from ..models import AIProvider, Folder
from .folder_tools import TOOL_SCHEMAS, list_folders, run_tool

logger = logging.getLogger(__name__)

FOLDER_ID_PATTERN = re.compile(r"^FOLDER_ID:\s*([A-Za-z0-9_-]+)\s*$", re.IGNORECASE)
NONE_PATTERN = re.compile(r"^NONE$", re.IGNORECASE)

SYSTEM_PROMPT = """你是导入分配助手。
你只能使用工具做文件夹决策：
1) 已有文件夹列表已经提供，需要时可再次调用 list_folders。
2) 如果有合适文件夹，不要创建新文件夹。
3) 只有确实没有合适文件夹时才调用 create_folder。
4) 最终只输出一行：
- FOLDER_ID:<id> 代表分配到该文件夹
- NONE 代表不分配
不要输出其它内容。"""


class ChatClient(Protocol):
    async def chat(
        self, messages: List[Dict[str, Any]], *, tools: Optional[List[Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        ...


ClientFactory = Callable[[AIProvider], ChatClient]


def _ollama_client(provider: AIProvider) -> ChatClient:
    return OllamaChatClient(base_url=provider.base_url, model=provider.model)


def get_default_provider(session: Session, user_id: uuid.UUID, kind: str = "chat") -> AIProvider | None:
    stmt = select(AIProvider).where(
        AIProvider.user_id == user_id,
        AIProvider.kind == kind,
        AIProvider.is_default.is_(True),
    )
    return session.execute(stmt).scalars().first()


def parse_decision(text: str, tool_results: List[tuple[str, Dict[str, Any]]]) -> str | None:
    """Read the folder id from the model's final answer.

    Falls back to the newest successful ``create_folder`` result when the
    answer is neither ``FOLDER_ID:<id>`` nor ``NONE``.
    """

    text = (text or "").strip()
    match = FOLDER_ID_PATTERN.match(text)
    if match:
        return match.group(1)
    if NONE_PATTERN.match(text):
        return None

    for name, result in reversed(tool_results):
        if name != "create_folder" or not result.get("success"):
            continue
        folder_id = ((result.get("data") or {}).get("folder") or {}).get("id")
        if folder_id:
            logger.info("Auto-folder fell back to created folder %s", folder_id)
            return folder_id

    logger.info("Unrecognized auto-folder output: %r", text)
    return None


def _tool_arguments(call: Dict[str, Any]) -> tuple[str, Dict[str, Any]]:
    function = call.get("function") or {}
    arguments = function.get("arguments") or {}
    if isinstance(arguments, str):
        arguments = json.loads(arguments) if arguments.strip() else {}
    return str(function.get("name") or ""), arguments


async def resolve_folder_for_ingest(
    session: Session,
    user_id: uuid.UUID,
    source_type: str,
    url: str | None = None,
    title: str | None = None,
    file_name: str | None = None,
    *,
    client_factory: ClientFactory | None = None,
    max_steps: int | None = None,
) -> str | None:
    """Pick or create a folder for a new bookmark; ``None`` on any failure."""

    try:
        provider = get_default_provider(session, user_id)
        if provider is None:
            logger.warning("Auto-folder skipped: no default chat provider for user %s", user_id)
            return None

        client = (client_factory or _ollama_client)(provider)
        steps = max_steps or settings.AUTO_FOLDER_MAX_STEPS

        folders = list_folders(session, user_id)
        tool_results: List[tuple[str, Dict[str, Any]]] = [("list_folders", folders)]
        messages: List[Dict[str, Any]] = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": (
                    "请为以下导入内容分配文件夹：\n"
                    f"sourceType: {source_type}\n"
                    f"url: {url or ''}\n"
                    f"title: {title or ''}\n"
                    f"fileName: {file_name or ''}"
                ),
            },
            {"role": "tool", "tool_name": "list_folders", "content": json.dumps(folders, ensure_ascii=False)},
        ]

        text = ""
        for _ in range(steps):
            reply = await client.chat(messages, tools=TOOL_SCHEMAS)
            messages.append(reply)
            calls = reply.get("tool_calls") or []
            if not calls:
                text = reply.get("content") or ""
                break
            for call in calls:
                name, arguments = _tool_arguments(call)
                result = run_tool(session, user_id, name, arguments)
                tool_results.append((name, result))
                messages.append(
                    {"role": "tool", "tool_name": name, "content": json.dumps(result, ensure_ascii=False)}
                )
        else:
            logger.info("Auto-folder hit the step limit (%s) for user %s", steps, user_id)

        folder_id = parse_decision(text, tool_results)
        logger.info("Auto-folder decision for user %s: %s", user_id, folder_id)
        return folder_id
    except Exception:
        logger.exception(
            "Auto-folder failed for user %s (source=%s url=%s file=%s)", user_id, source_type, url, file_name
        )
        session.rollback()
        return None


def owned_folder(session: Session, user_id: uuid.UUID, folder_id: str | None) -> Folder | None:
    """Return the folder only if it exists and belongs to ``user_id``."""

    if not folder_id:
        return None
    try:
        key = uuid.UUID(str(folder_id))
    except ValueError:
        return None
    folder = session.get(Folder, key)
    if folder is None or folder.user_id != user_id:
        return None
    return folder
