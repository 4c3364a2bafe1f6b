"""Read-only conversation snapshot handed to the activation engine.

Conventions:
- All types are immutable (frozen=True).
- `messages` is ordered oldest -> newest; "recent" always means the tail.
- Lorebook entries are (world_name, entry_uid) pairs with uid as a string.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from loguru import logger

from recallgate.policy.types import coerce_bool, coerce_int

GENERATION_TYPES = ("normal", "swipe", "continue", "regenerate", "impersonate")


@dataclass(frozen=True)
class Message:
    """One chat message as seen by the engine."""
    speaker: str
    role: str                       # "user" | "assistant" | "system"
    text: str
    turn_index: int = 0
    timestamp: datetime | None = None
    swipe_count: int = 0
    emotion: str | None = None      # classifier label, if the host has one

    @property
    def is_user(self) -> bool:
        return self.role == "user"

    @classmethod
    def from_dict(cls, data: dict[str, Any], index: int = 0) -> "Message":
        """Build a message from a host payload (camelCase or snake_case keys)."""
        ts = data.get("timestamp")
        if isinstance(ts, str):
            try:
                ts = datetime.fromisoformat(ts)
            except ValueError:
                ts = None
        elif not isinstance(ts, datetime):
            ts = None

        role = data.get("role")
        if role is None:
            role = "user" if coerce_bool(data.get("is_user", data.get("isUser"))) else "assistant"

        return cls(
            speaker=str(data.get("speaker", data.get("name", ""))),
            role=str(role),
            text=str(data.get("text", data.get("content", data.get("mes", "")))),
            turn_index=coerce_int(data.get("turn_index", data.get("turnIndex")), index, lo=0),
            timestamp=ts,
            swipe_count=coerce_int(data.get("swipe_count", data.get("swipeCount")), 0, lo=0),
            emotion=data.get("emotion"),
        )


@dataclass(frozen=True)
class ConversationSnapshot:
    """Everything the activation pass may read for a single turn."""
    messages: tuple[Message, ...] = ()
    is_group_chat: bool = False
    active_lorebook_entries: frozenset[tuple[str, str]] = frozenset()
    generation_type: str | None = None
    expression_emotion: str | None = None   # None: expressions signal unavailable
    total_message_count: int | None = None
    now: datetime = field(default_factory=datetime.now)

    @property
    def message_count(self) -> int:
        """Conversation length, which may exceed the messages carried here."""
        if self.total_message_count is not None:
            return self.total_message_count
        return len(self.messages)

    @property
    def last_message(self) -> Message | None:
        return self.messages[-1] if self.messages else None

    def recent(self, depth: int, role: str | None = None) -> tuple[Message, ...]:
        """Return the last `depth` messages, optionally restricted to a role."""
        window = self.messages[-max(1, depth):] if self.messages else ()
        if role is None:
            return window
        return tuple(m for m in window if m.role == role)

    @classmethod
    def build(
        cls,
        messages: Iterable[Message | dict[str, Any]],
        *,
        max_messages: int | None = None,
        lorebook: "LorebookSource | None" = None,
        **kwargs: Any,
    ) -> "ConversationSnapshot":
        """Materialize a snapshot once per turn from host data.

        Args:
            messages: Chat history, oldest first.
            max_messages: Keep only this many trailing messages; the full
                length is still reported through `message_count`.
            lorebook: Source for currently active world-info entries.
            **kwargs: Remaining snapshot fields.
        """
        items = [
            m if isinstance(m, Message) else Message.from_dict(m, index=i)
            for i, m in enumerate(messages)
        ]
        total = kwargs.pop("total_message_count", None)
        if total is None:
            total = len(items)
        if max_messages is not None and len(items) > max_messages:
            items = items[-max_messages:]

        entries = kwargs.pop("active_lorebook_entries", None)
        if entries is None and lorebook is not None:
            entries = lorebook.list_active_entries()
        entries = frozenset((str(w), str(u)) for w, u in (entries or ()))

        return cls(
            messages=tuple(items),
            active_lorebook_entries=entries,
            total_message_count=total,
            **kwargs,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any], max_messages: int | None = None) -> "ConversationSnapshot":
        """Build a snapshot from a JSON payload (camelCase keys)."""
        raw_messages = data.get("messages")
        if not isinstance(raw_messages, list):
            raw_messages = []
        raw_entries = data.get("activeLorebookEntries")
        if not isinstance(raw_entries, list):
            raw_entries = []

        kwargs: dict[str, Any] = {
            "is_group_chat": coerce_bool(data.get("isGroupChat")),
            "generation_type": data.get("generationType"),
            "expression_emotion": data.get("expressionEmotion"),
            "total_message_count": coerce_int(data.get("totalMessageCount"), None, lo=0),
            "active_lorebook_entries": [
                tuple(entry) for entry in raw_entries
                if isinstance(entry, (list, tuple)) and len(entry) == 2
            ],
        }

        now = data.get("now")
        if isinstance(now, str):
            try:
                kwargs["now"] = datetime.fromisoformat(now)
            except ValueError:
                logger.warning(f"Invalid snapshot time {now!r}, using the current time")

        return cls.build(
            [m for m in raw_messages if isinstance(m, (dict, Message))],
            max_messages=max_messages,
            **kwargs,
        )


class LorebookSource(ABC):
    """World-info collaborator: which entries are active this turn."""

    @abstractmethod
    def list_active_entries(self) -> set[tuple[str, str]]:
        """Return (world_name, entry_uid) pairs active for the current turn."""
