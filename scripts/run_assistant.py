from __future__ import annotations

from campus_connect.config import SETTINGS
from campus_connect.dialogue.session import ConversationSession
from campus_connect.nlp.query_normalizer import QueryNormalizer
from campus_connect.utils.logging import configure_logging


if __name__ == "__main__":
    configure_logging()
    session = ConversationSession(normalizer=QueryNormalizer())
    for entry in session.open():
        print(f"Assistant: {entry.text}")
    while True:
        query = input("\nYou: ").strip()
        if query.lower() in {"exit", "quit"}:
            break
        reply = session.submit(query)
        if reply is None:
            continue
        print(f"\nAssistant: {reply.text}")
        if reply.navigation is not None:
            delay = SETTINGS.navigation_delay_seconds
            print(f"Navigate in {delay:.1f}s -> {reply.navigation.url()}")
