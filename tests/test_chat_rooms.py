from __future__ import annotations

import pytest

from campus_connect.db.store import DocumentStore
from campus_connect.errors import MessageLengthError, RoomNotFound
from campus_connect.records import ChatRoom
from campus_connect.services.chat_rooms import PUBLIC_ROOMS, ChatRoomService, dm_key_for


def test_dm_room_is_shared_regardless_of_who_opens_it(store: DocumentStore) -> None:
    rooms = ChatRoomService(store)

    first = rooms.get_or_create_dm_room("zoe", "adam", "Zoe", "Adam")
    second = rooms.get_or_create_dm_room("adam", "zoe", "Adam", "Zoe")

    assert first.id == second.id
    assert first.dm_key == "adam_zoe" == dm_key_for("adam", "zoe")
    assert first.member_names == {"zoe": "Zoe", "adam": "Adam"}
    assert len(store.query("chat_rooms")) == 1


def test_dm_room_is_keyed_by_the_member_pair(store: DocumentStore) -> None:
    room = ChatRoomService(store).get_or_create_dm_room("zoe", "adam")

    assert room.id == "adam_zoe"
    assert store.get("chat_rooms/adam_zoe") is not None


def test_racing_dm_opens_create_one_room(store: DocumentStore, monkeypatch) -> None:
    rooms = ChatRoomService(store)
    original_query = store.query

    # Both callers miss each other in the lookup and go on to create.
    monkeypatch.setattr(store, "query", lambda *args, **kwargs: [])
    first = rooms.get_or_create_dm_room("u1", "u2", "One", "Two")
    second = rooms.get_or_create_dm_room("u2", "u1", "Two", "One")
    monkeypatch.setattr(store, "query", original_query)

    assert first.id == second.id
    assert second.member_names == {"u1": "One", "u2": "Two"}
    assert len(store.query("chat_rooms")) == 1


def test_legacy_dm_room_with_random_id_is_reused(store: DocumentStore) -> None:
    legacy = store.create(
        "chat_rooms",
        {"type": "dm", "dm_key": "u1_u2", "members": ["u1", "u2"], "member_names": {}},
    )

    room = ChatRoomService(store).get_or_create_dm_room("u2", "u1")

    assert room.id == legacy.id
    assert len(store.query("chat_rooms")) == 1


def test_dm_with_yourself_is_rejected(store: DocumentStore) -> None:
    with pytest.raises(ValueError):
        ChatRoomService(store).get_or_create_dm_room("u1", "u1")


def test_list_dm_rooms_for_member(store: DocumentStore) -> None:
    rooms = ChatRoomService(store)
    older = rooms.get_or_create_dm_room("u1", "u2")
    newer = rooms.get_or_create_dm_room("u3", "u1")
    rooms.get_or_create_dm_room("u2", "u3")

    assert [room.id for room in rooms.list_dm_rooms("u1")] == [newer.id, older.id]


def test_subscribe_dm_rooms(store: DocumentStore) -> None:
    rooms = ChatRoomService(store)
    seen: list[list[str]] = []

    unsubscribe = rooms.subscribe_dm_rooms("u1", lambda found: seen.append([room.dm_key for room in found]))
    rooms.get_or_create_dm_room("u1", "u2")
    unsubscribe()

    assert seen == [[], ["u1_u2"]]


def test_seed_only_when_no_public_room_exists(store: DocumentStore) -> None:
    rooms = ChatRoomService(store)

    assert rooms.seed_public_rooms() == len(PUBLIC_ROOMS)
    assert rooms.seed_public_rooms() == 0
    assert [room.title for room in rooms.list_public_rooms()] == sorted(seed["title"] for seed in PUBLIC_ROOMS)


def test_cleanup_keeps_oldest_room_per_title(store: DocumentStore) -> None:
    rooms = ChatRoomService(store)
    oldest = store.create("chat_rooms", {"type": "public", "title": "General", "created_at": "2024-01-01T00:00:00+00:00"})
    store.create("chat_rooms", {"type": "public", "title": "General", "created_at": "2024-02-01T00:00:00+00:00"})
    store.create("chat_rooms", {"type": "public", "title": "General", "created_at": "2024-03-01T00:00:00+00:00"})
    store.create("chat_rooms", {"type": "public", "title": "Academics", "created_at": "2024-01-05T00:00:00+00:00"})

    assert rooms.cleanup_duplicate_rooms() == 2

    general = [room for room in rooms.list_public_rooms() if room.title == "General"]
    assert [room.id for room in general] == [oldest.id]


def test_initialize_public_rooms_is_idempotent(store: DocumentStore) -> None:
    rooms = ChatRoomService(store)
    store.create("chat_rooms", {"type": "public", "title": "General"})
    store.create("chat_rooms", {"type": "public", "title": "General"})

    first = rooms.initialize_public_rooms()
    after_first = [room.title for room in rooms.list_public_rooms()]
    second = rooms.initialize_public_rooms()

    assert first == {"duplicates_deleted": 1, "rooms_seeded": 0}
    assert second == {"duplicates_deleted": 0, "rooms_seeded": 0}
    assert [room.title for room in rooms.list_public_rooms()] == after_first == ["General"]


def test_initialize_seeds_an_empty_store(store: DocumentStore) -> None:
    rooms = ChatRoomService(store)

    assert rooms.initialize_public_rooms() == {"duplicates_deleted": 0, "rooms_seeded": 5}
    assert rooms.initialize_public_rooms() == {"duplicates_deleted": 0, "rooms_seeded": 0}
    assert len(rooms.list_public_rooms()) == 5


def test_send_message_trims_and_orders(store: DocumentStore) -> None:
    rooms = ChatRoomService(store)
    rooms.seed_public_rooms()
    room = rooms.list_public_rooms()[0]

    rooms.send_message(room.id, "  first  ", "u1", "Asha")
    rooms.send_message(room.id, "second", "u2")

    messages = rooms.list_messages(room.id)
    assert [message.text for message in messages] == ["first", "second"]
    assert messages[0].sender_name == "Asha"


@pytest.mark.parametrize("text", ["", "    ", "x" * 2001])
def test_send_message_length_limits(store: DocumentStore, text: str) -> None:
    rooms = ChatRoomService(store)
    rooms.seed_public_rooms()
    room = rooms.list_public_rooms()[0]

    with pytest.raises(MessageLengthError):
        rooms.send_message(room.id, text, "u1")

    assert rooms.list_messages(room.id) == []


def test_send_message_accepts_the_maximum_length(store: DocumentStore) -> None:
    rooms = ChatRoomService(store)
    room = rooms.get_or_create_dm_room("u1", "u2")

    message = rooms.send_message(room.id, "x" * 2000, "u1")

    assert len(message.text) == 2000


def test_send_message_to_missing_room(store: DocumentStore) -> None:
    with pytest.raises(RoomNotFound):
        ChatRoomService(store).send_message("nope", "hello", "u1")


def test_subscribe_messages_oldest_first(store: DocumentStore) -> None:
    rooms = ChatRoomService(store)
    room = rooms.get_or_create_dm_room("u1", "u2")
    seen: list[list[str]] = []

    rooms.subscribe_messages(room.id, lambda messages: seen.append([m.text for m in messages]))
    rooms.send_message(room.id, "hi", "u1")
    rooms.send_message(room.id, "hello", "u2")

    assert seen[-1] == ["hi", "hello"]


def test_subscribe_public_rooms_sorted_by_title(store: DocumentStore) -> None:
    rooms = ChatRoomService(store)
    seen: list[list[str]] = []

    rooms.subscribe_public_rooms(lambda found: seen.append([room.title for room in found]))
    rooms.seed_public_rooms()

    assert seen[0] == []
    assert seen[-1] == ["Academics", "General", "Hackathons", "Off-topic", "Placements"]


def test_get_room(store: DocumentStore) -> None:
    rooms = ChatRoomService(store)
    room = rooms.get_or_create_dm_room("u1", "u2")

    assert isinstance(rooms.get_room(room.id), ChatRoom)
    assert rooms.get_room("missing") is None
