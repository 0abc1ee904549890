from __future__ import annotations

import logging

from campus_connect.config import SETTINGS
from campus_connect.db.store import DocumentStore, Transaction, utc_now
from campus_connect.errors import CommentTooLong, InvalidScore, SelfRating, TutorNotFound
from campus_connect.records import Rating, TutorStats, UserProfile

logger = logging.getLogger(__name__)


def profile_path(uid: str) -> str:
    return f"{UserProfile.collection}/{uid}"


def ratings_collection(tutor_uid: str) -> str:
    return f"{profile_path(tutor_uid)}/ratings"


def rating_path(tutor_uid: str, reviewer_uid: str) -> str:
    return f"{ratings_collection(tutor_uid)}/{reviewer_uid}"


def updated_stats(stats: TutorStats, new_score: int, previous_score: int | None) -> TutorStats:
    """Fold one submission into the running mean without rescanning ratings."""
    old_avg, old_count = stats.rating_avg, stats.rating_count
    if previous_score is not None and old_count > 0:
        return TutorStats(
            rating_avg=(old_avg * old_count - previous_score + new_score) / old_count,
            rating_count=old_count,
        )
    new_count = old_count + 1
    return TutorStats(rating_avg=(old_avg * old_count + new_score) / new_count, rating_count=new_count)


class RatingAggregator:
    """Stores one rating per (tutor, reviewer) and keeps the tutor's mean current.

    The rating document and the tutor's ``tutor_stats`` are written in a single
    store transaction, so concurrent submissions for the same tutor cannot lose
    updates and no reader ever sees one write without the other.
    """

    def __init__(self, store: DocumentStore, max_attempts: int | None = None) -> None:
        self.store = store
        self.max_attempts = max_attempts

    def submit_rating(self, tutor_uid: str, reviewer_uid: str, score: int, comment: str = "") -> Rating:
        comment = comment or ""
        if tutor_uid == reviewer_uid:
            raise SelfRating("Cannot rate yourself")
        if isinstance(score, bool) or not isinstance(score, int):
            raise InvalidScore(f"Rating must be a whole number between {SETTINGS.min_score} and {SETTINGS.max_score}")
        if score < SETTINGS.min_score or score > SETTINGS.max_score:
            raise InvalidScore(f"Rating must be between {SETTINGS.min_score} and {SETTINGS.max_score}")
        if len(comment) > SETTINGS.max_comment_length:
            raise CommentTooLong(f"Comment must be {SETTINGS.max_comment_length} characters or less")

        def apply(transaction: Transaction) -> Rating:
            existing = transaction.get(rating_path(tutor_uid, reviewer_uid))
            tutor = transaction.get(profile_path(tutor_uid))
            if tutor is None:
                raise TutorNotFound(f"Tutor profile not found: {tutor_uid}")

            stats = TutorStats.model_validate(tutor.data.get("tutor_stats") or {})
            previous = Rating.from_snapshot(existing) if existing else None
            new_stats = updated_stats(stats, score, previous.score if previous else None)

            now = utc_now()
            rating = Rating(
                reviewer_uid=reviewer_uid,
                tutor_uid=tutor_uid,
                score=score,
                comment=comment,
                created_at=previous.created_at if previous else now,
                updated_at=now,
            )
            transaction.set(rating_path(tutor_uid, reviewer_uid), rating.model_dump())
            transaction.update(
                profile_path(tutor_uid),
                {
                    "tutor_stats.rating_avg": new_stats.rating_avg,
                    "tutor_stats.rating_count": new_stats.rating_count,
                    "updated_at": now,
                },
            )
            return rating

        rating = self.store.run_transaction(apply, max_attempts=self.max_attempts)
        logger.info("Recorded rating %d for tutor %s from %s", score, tutor_uid, reviewer_uid)
        return rating

    def get_rating(self, tutor_uid: str, reviewer_uid: str) -> Rating | None:
        snapshot = self.store.get(rating_path(tutor_uid, reviewer_uid))
        return Rating.from_snapshot(snapshot) if snapshot else None

    def list_ratings(self, tutor_uid: str) -> list[Rating]:
        snapshots = self.store.query(ratings_collection(tutor_uid), order_by="updated_at", descending=True)
        return [Rating.from_snapshot(snapshot) for snapshot in snapshots]

    def get_stats(self, tutor_uid: str) -> TutorStats:
        snapshot = self.store.get(profile_path(tutor_uid))
        if snapshot is None:
            raise TutorNotFound(f"Tutor profile not found: {tutor_uid}")
        return TutorStats.model_validate(snapshot.data.get("tutor_stats") or {})
