"""Tests for building conversation snapshots from host data."""

from datetime import datetime

from recallgate.conversation.snapshot import ConversationSnapshot, LorebookSource, Message


class StaticLorebook(LorebookSource):
    def __init__(self, entries):
        self.entries = entries

    def list_active_entries(self):
        return self.entries


def test_message_from_host_payload():
    msg = Message.from_dict({"name": "Aria", "is_user": False, "mes": "hi", "swipeCount": "2"}, index=4)
    assert msg == Message(speaker="Aria", role="assistant", text="hi", turn_index=4, swipe_count=2)
    assert not msg.is_user


def test_recent_window_and_role_filter():
    snap = ConversationSnapshot.build(
        [{"name": "You", "is_user": True, "mes": str(i)} if i % 2 == 0 else {"name": "Bot", "mes": str(i)} for i in range(6)]
    )
    assert [m.text for m in snap.recent(3)] == ["3", "4", "5"]
    assert [m.text for m in snap.recent(3, role="user")] == ["4"]
    assert len(snap.recent(0)) == 1


def test_max_messages_keeps_tail_and_full_count():
    snap = ConversationSnapshot.build([{"mes": str(i)} for i in range(10)], max_messages=3)
    assert [m.text for m in snap.messages] == ["7", "8", "9"]
    assert snap.message_count == 10


def test_lorebook_source_used():
    snap = ConversationSnapshot.build([], lorebook=StaticLorebook({("World", 5)}))
    assert snap.active_lorebook_entries == frozenset({("World", "5")})


def test_from_dict_payload():
    snap = ConversationSnapshot.from_dict(
        {
            "messages": [{"name": "You", "is_user": True, "mes": "hello"}],
            "isGroupChat": True,
            "generationType": "swipe",
            "activeLorebookEntries": [["World", "1"], ["bad"]],
            "now": "2026-02-08T23:15:00",
        }
    )
    assert snap.is_group_chat is True
    assert snap.generation_type == "swipe"
    assert snap.active_lorebook_entries == frozenset({("World", "1")})
    assert snap.now == datetime(2026, 2, 8, 23, 15)
    assert snap.last_message.is_user


# ============================================================================
# Malformed host payloads
# ============================================================================


class TestMalformedPayload:
    def test_string_flags_are_parsed(self):
        snap = ConversationSnapshot.from_dict(
            {"messages": [{"mes": "hi", "is_user": "false"}], "isGroupChat": "false"}
        )
        assert snap.is_group_chat is False
        assert snap.last_message.role == "assistant"
        assert ConversationSnapshot.from_dict({"messages": [], "isGroupChat": "true"}).is_group_chat is True

    def test_bad_numbers_fall_back_to_defaults(self):
        snap = ConversationSnapshot.from_dict(
            {"messages": [{"text": "hi", "swipeCount": "n/a", "turnIndex": "x"}], "totalMessageCount": "lots"}
        )
        msg = snap.last_message
        assert msg.swipe_count == 0
        assert msg.turn_index == 0
        assert snap.message_count == 1

    def test_bad_time_uses_current_clock(self):
        before = datetime.now()
        snap = ConversationSnapshot.from_dict({"messages": [], "now": "yesterday"})
        assert snap.now >= before

    def test_non_dict_entries_are_skipped(self):
        snap = ConversationSnapshot.from_dict({"messages": ["oops", None, {"mes": "ok"}], "activeLorebookEntries": "x"})
        assert [m.text for m in snap.messages] == ["ok"]
        assert snap.active_lorebook_entries == frozenset()
