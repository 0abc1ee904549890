from __future__ import annotations

import json

from campus_connect.db.store import DocumentStore
from campus_connect.services.chat_rooms import ChatRoomService
from campus_connect.utils.logging import configure_logging


if __name__ == "__main__":
    configure_logging()
    summary = ChatRoomService(DocumentStore()).initialize_public_rooms()
    print(json.dumps(summary, indent=2))
