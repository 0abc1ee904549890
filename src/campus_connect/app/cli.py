from __future__ import annotations

import argparse
import json
from pathlib import Path

from campus_connect.config import EVAL_DATA_DIR, REPORTS_DIR, SETTINGS, ensure_directories
from campus_connect.utils.logging import configure_logging


def run_chat(surface: str, db_path: Path) -> None:
    from campus_connect.db.cache import ReadThroughCache
    from campus_connect.db.store import DocumentStore
    from campus_connect.dialogue.navigation import DelayedNavigator
    from campus_connect.dialogue.session import ConversationSession
    from campus_connect.llm.domain_assistant import rephrase_with_domain_assistant
    from campus_connect.nlp.intent import IntentClassifier
    from campus_connect.nlp.query_normalizer import QueryNormalizer
    from campus_connect.nlp.vocabulary import load_vocabulary
    from campus_connect.services.directory import CommunityDirectory

    vocabulary = load_vocabulary(SETTINGS.vocabulary_path)
    store = DocumentStore(db_path)
    cache = ReadThroughCache(store)
    navigator = DelayedNavigator(lambda navigation: print(f"\n[navigate] {navigation.url()}\nYou: ", end=""))
    session = ConversationSession(
        IntentClassifier(vocabulary),
        surface=surface,
        navigator=navigator,
        search=CommunityDirectory(store, cache).count_matches,
        normalizer=QueryNormalizer(vocabulary),
        phraser=rephrase_with_domain_assistant if SETTINGS.openai_api_key else None,
    )
    session.add_listener(lambda entry: print(f"\nAssistant: {entry.text}"))

    print("Campus Connect assistant (type 'exit' to quit)")
    session.open()
    try:
        while True:
            query = input("\nYou: ").strip()
            if query.lower() in {"exit", "quit"}:
                break
            session.submit(query)
    finally:
        navigator.cancel_pending()
        session.close()
        cache.close()


def run_init_rooms(db_path: Path) -> dict[str, int]:
    from campus_connect.db.store import DocumentStore
    from campus_connect.services.chat_rooms import ChatRoomService

    return ChatRoomService(DocumentStore(db_path)).initialize_public_rooms()


def run_migrate(db_path: Path) -> dict[str, int]:
    from campus_connect.db.migrations import add_missing_uids
    from campus_connect.db.store import DocumentStore

    return add_missing_uids(DocumentStore(db_path))


def run_eval(gold_path: Path, out_path: Path) -> dict:
    from campus_connect.evaluation.benchmark import IntentBenchmarkRunner
    from campus_connect.nlp.intent import IntentClassifier
    from campus_connect.nlp.vocabulary import load_vocabulary

    classifier = IntentClassifier(load_vocabulary(SETTINGS.vocabulary_path))
    return IntentBenchmarkRunner(classifier).run(gold_path=gold_path, output_path=out_path)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Campus Connect: tutors, teammates and chat for students")
    parser.add_argument("command", choices=["chat", "init-rooms", "migrate", "evaluate"])
    parser.add_argument("--db-path", default=SETTINGS.database_path)
    parser.add_argument("--surface", choices=["assistant", "tutors", "teammates"], default="assistant")
    parser.add_argument("--gold-path", default=str(EVAL_DATA_DIR / "intent_gold.json"))
    parser.add_argument("--report-path", default=str(REPORTS_DIR / "intent_report.json"))
    args = parser.parse_args(argv)

    configure_logging()
    ensure_directories()

    db_path = Path(args.db_path)

    if args.command == "chat":
        run_chat(surface=args.surface, db_path=db_path)
    elif args.command == "init-rooms":
        print(json.dumps(run_init_rooms(db_path), indent=2))
    elif args.command == "migrate":
        print(json.dumps(run_migrate(db_path), indent=2))
    elif args.command == "evaluate":
        report = run_eval(gold_path=Path(args.gold_path), out_path=Path(args.report_path))
        print(json.dumps(report, indent=2))


if __name__ == "__main__":
    main()
