from __future__ import annotations

import logging

from campus_connect.db.store import DocumentStore
from campus_connect.records import TeammateProfile, TutorProfile

logger = logging.getLogger(__name__)

# Older listings carried the owner under one of these keys instead of ``uid``.
LEGACY_OWNER_KEYS = ("user_id", "userId")


def add_missing_uids(store: DocumentStore) -> dict[str, int]:
    """Copy the legacy owner field into ``uid`` on listings that lack one.

    Safe to run repeatedly: listings that already have a ``uid`` are left alone.
    """
    summary = {
        "tutors_updated": _backfill(store, TutorProfile.collection),
        "teammates_updated": _backfill(store, TeammateProfile.collection),
    }
    logger.info(
        "uid migration complete: %d tutors, %d teammates updated",
        summary["tutors_updated"],
        summary["teammates_updated"],
    )
    return summary


def _backfill(store: DocumentStore, collection: str) -> int:
    updated = 0
    for snapshot in store.query(collection):
        if snapshot.data.get("uid"):
            continue
        owner = next((snapshot.data[key] for key in LEGACY_OWNER_KEYS if snapshot.data.get(key)), None)
        if owner is None:
            continue
        store.update(snapshot.path, {"uid": owner})
        updated += 1
        logger.info("Set uid on %s %s (%s)", collection, snapshot.id, owner)
    return updated
