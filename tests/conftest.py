"""Shared fixtures for activation and scoring tests."""

import random
from datetime import datetime

import pytest

from recallgate.conversation.snapshot import ConversationSnapshot, Message
from recallgate.policy.store import PolicyStore

FIXED_NOW = datetime(2026, 2, 8, 14, 30)


def make_snapshot(*texts: str, now: datetime = FIXED_NOW, **kwargs) -> ConversationSnapshot:
    """Alternate user/assistant messages from plain strings, oldest first."""
    messages = [
        Message(
            speaker="Alice" if i % 2 == 0 else "Bot",
            role="user" if i % 2 == 0 else "assistant",
            text=text,
            turn_index=i,
        )
        for i, text in enumerate(texts)
    ]
    return ConversationSnapshot.build(messages, now=now, **kwargs)


@pytest.fixture
def snapshot_factory():
    return make_snapshot


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def rng():
    """Deterministic random source for randomChance rules."""
    return random.Random(1234)


@pytest.fixture
def store(tmp_path):
    """Policy store backed by a file in a temp directory."""
    return PolicyStore(tmp_path / "policies.json")
