from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable

from campus_connect.config import SETTINGS
from campus_connect.db.store import DocumentSnapshot, DocumentStore, Transaction
from campus_connect.errors import MessageLengthError, RoomNotFound
from campus_connect.records import ChatMessage, ChatRoom

logger = logging.getLogger(__name__)

PUBLIC_ROOMS = [
    {"title": "General", "description": "General discussion"},
    {"title": "Hackathons", "description": "Discuss hackathons and competitions"},
    {"title": "Academics", "description": "Academic discussions and study tips"},
    {"title": "Placements", "description": "Placement prep and opportunities"},
    {"title": "Off-topic", "description": "Random fun conversations"},
]


def dm_key_for(uid_a: str, uid_b: str) -> str:
    first, second = sorted([uid_a, uid_b])
    return f"{first}_{second}"


def messages_collection(room_id: str) -> str:
    return f"{ChatRoom.collection}/{room_id}/messages"


class ChatRoomService:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def get_or_create_dm_room(
        self,
        current_uid: str,
        other_uid: str,
        current_name: str = "",
        other_name: str = "",
    ) -> ChatRoom:
        if current_uid == other_uid:
            raise ValueError("Cannot open a direct message with yourself")

        dm_key = dm_key_for(current_uid, other_uid)
        # Rooms written before DM ids were keyed by dm_key still have random ids.
        existing = self.store.query(
            ChatRoom.collection,
            [("type", "==", "dm"), ("dm_key", "==", dm_key)],
            limit=1,
        )
        if existing:
            return ChatRoom.from_snapshot(existing[0])

        room = ChatRoom(
            type="dm",
            dm_key=dm_key,
            members=[current_uid, other_uid],
            member_names={current_uid: current_name, other_uid: other_name},
        )
        path = f"{ChatRoom.collection}/{dm_key}"

        def create_once(transaction: Transaction) -> None:
            if transaction.get(path) is None:
                transaction.set(path, room.to_document())

        self.store.run_transaction(create_once)
        return ChatRoom.from_snapshot(self.store.get(path))

    def list_dm_rooms(self, uid: str) -> list[ChatRoom]:
        snapshots = self.store.query(ChatRoom.collection, _dm_filters(uid), order_by="created_at", descending=True)
        return _rooms(snapshots)

    def subscribe_dm_rooms(self, uid: str, callback: Callable[[list[ChatRoom]], None]) -> Callable[[], None]:
        return self.store.subscribe(
            ChatRoom.collection,
            lambda snapshots: callback(_rooms(snapshots)),
            _dm_filters(uid),
            order_by="created_at",
            descending=True,
        )

    def list_public_rooms(self) -> list[ChatRoom]:
        return _rooms(self.store.query(ChatRoom.collection, [("type", "==", "public")], order_by="title"))

    def subscribe_public_rooms(self, callback: Callable[[list[ChatRoom]], None]) -> Callable[[], None]:
        return self.store.subscribe(
            ChatRoom.collection,
            lambda snapshots: callback(_rooms(snapshots)),
            [("type", "==", "public")],
            order_by="title",
        )

    def get_room(self, room_id: str) -> ChatRoom | None:
        snapshot = self.store.get(f"{ChatRoom.collection}/{room_id}")
        return ChatRoom.from_snapshot(snapshot) if snapshot else None

    def send_message(self, room_id: str, text: str, sender_uid: str, sender_name: str = "") -> ChatMessage:
        cleaned = (text or "").strip()
        if not cleaned or len(cleaned) > SETTINGS.max_message_length:
            raise MessageLengthError(
                f"Message must be between 1 and {SETTINGS.max_message_length} characters"
            )
        if self.get_room(room_id) is None:
            raise RoomNotFound(f"Chat room not found: {room_id}")

        message = ChatMessage(text=cleaned, sender_uid=sender_uid, sender_name=sender_name)
        snapshot = self.store.create(messages_collection(room_id), message.to_document())
        return ChatMessage.from_snapshot(snapshot)

    def list_messages(self, room_id: str) -> list[ChatMessage]:
        snapshots = self.store.query(messages_collection(room_id), order_by="created_at")
        return [ChatMessage.from_snapshot(snapshot) for snapshot in snapshots]

    def subscribe_messages(
        self,
        room_id: str,
        callback: Callable[[list[ChatMessage]], None],
    ) -> Callable[[], None]:
        return self.store.subscribe(
            messages_collection(room_id),
            lambda snapshots: callback([ChatMessage.from_snapshot(snapshot) for snapshot in snapshots]),
            order_by="created_at",
        )

    def seed_public_rooms(self) -> int:
        """Create the default public rooms, but only when no public room exists at all."""
        if self.store.query(ChatRoom.collection, [("type", "==", "public")], limit=1):
            return 0

        for seed in PUBLIC_ROOMS:
            room = ChatRoom(type="public", title=seed["title"], description=seed["description"])
            self.store.create(ChatRoom.collection, room.to_document())
        logger.info("Seeded %d public rooms", len(PUBLIC_ROOMS))
        return len(PUBLIC_ROOMS)

    def cleanup_duplicate_rooms(self) -> int:
        """Keep the oldest public room per title and delete the rest."""
        by_title: dict[str, list[DocumentSnapshot]] = defaultdict(list)
        for snapshot in self.store.query(ChatRoom.collection, [("type", "==", "public")]):
            by_title[snapshot.data.get("title") or "Unknown"].append(snapshot)

        deleted = 0
        for title, rooms in by_title.items():
            if len(rooms) < 2:
                continue
            rooms.sort(key=lambda snap: (snap.data.get("created_at") or "", snap.created_at, snap.id))
            for duplicate in rooms[1:]:
                self.store.delete(duplicate.path)
                deleted += 1
                logger.info("Deleted duplicate room %s (%s)", title, duplicate.id)
        return deleted

    def initialize_public_rooms(self) -> dict[str, int]:
        # Cleanup always runs before seeding.
        deleted = self.cleanup_duplicate_rooms()
        seeded = self.seed_public_rooms()
        return {"duplicates_deleted": deleted, "rooms_seeded": seeded}


def _dm_filters(uid: str) -> list[tuple[str, str, str]]:
    return [("type", "==", "dm"), ("members", "array-contains", uid)]


def _rooms(snapshots: list[DocumentSnapshot]) -> list[ChatRoom]:
    return [ChatRoom.from_snapshot(snapshot) for snapshot in snapshots]
