"""
Conversation export to a downloadable JSON file.
"""

from __future__ import annotations

import json
import re
from datetime import UTC, datetime
from pathlib import Path

from relaychat.history.models import Conversation

_NON_ALNUM = re.compile(r"[^a-z0-9]", re.IGNORECASE)


def slugify_title(title: str) -> str:
    """Every non-alphanumeric character becomes ``_``, then lowercase."""
    return _NON_ALNUM.sub("_", title).lower()


def export_filename(conversation: Conversation) -> str:
    return f"chat-{slugify_title(conversation.title)}.json"


def export_conversation(
    conversation: Conversation, exported_at: datetime | None = None
) -> tuple[str, str]:
    """
    Serialise a conversation as ``{title, messages, exportedAt}``.

    Returns:
        Tuple of (filename, json_document)
    """
    exported_at = exported_at or datetime.now(UTC)
    document = {
        "title": conversation.title,
        "messages": [
            turn.model_dump(mode="json", exclude={"rating"}, exclude_none=True)
            for turn in conversation.turns
        ],
        "exportedAt": exported_at.isoformat().replace("+00:00", "Z"),
    }
    return export_filename(conversation), json.dumps(
        document, indent=2, ensure_ascii=False
    )


def write_export(conversation: Conversation, directory: str | Path = ".") -> Path:
    """Write the export artifact into ``directory`` and return its path."""
    filename, document = export_conversation(conversation)
    path = Path(directory) / filename
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(document, encoding="utf-8")
    return path
