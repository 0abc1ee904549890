from __future__ import annotations

import logging
from concurrent.futures import Future
from typing import Iterable, TypeVar

from campus_connect.data_models import ClassificationResult, Intent
from campus_connect.db.cache import ReadThroughCache
from campus_connect.db.store import DocumentSnapshot, DocumentStore
from campus_connect.errors import NotFoundError, RecordValidationError
from campus_connect.records import ContactCard, Record, StudentRequest, TeammateProfile, TutorProfile

logger = logging.getLogger(__name__)

L = TypeVar("L", TutorProfile, StudentRequest, TeammateProfile)

LISTING_TYPES: dict[str, type[Record]] = {
    "tutors": TutorProfile,
    "requests": StudentRequest,
    "teammates": TeammateProfile,
}


class CommunityDirectory:
    """Tutor listings, help requests and teammate profiles, with search."""

    def __init__(self, store: DocumentStore, cache: ReadThroughCache | None = None) -> None:
        self.store = store
        self.cache = cache

    def register_tutor(self, profile: TutorProfile) -> TutorProfile:
        return self._create(profile)

    def post_request(self, request: StudentRequest) -> StudentRequest:
        return self._create(request)

    def register_teammate(self, profile: TeammateProfile) -> TeammateProfile:
        return self._create(profile)

    def publish(self, listing: Record) -> Future:
        """Queue a listing write without waiting for the store."""
        if self.cache is None:
            raise RuntimeError("Background publishing needs a ReadThroughCache")
        return self.cache.write(type(listing).collection, listing.to_document())

    def search_tutors(
        self,
        query: str | None = None,
        subject: str | None = None,
        department: str | None = None,
    ) -> list[TutorProfile]:
        matches = []
        for tutor in self._listings(TutorProfile):
            haystack = [tutor.name, tutor.department, *tutor.subjects]
            if not _contains_query(haystack, query):
                continue
            if subject and not _any_contains(tutor.subjects, subject):
                continue
            if not _same_department(tutor.department, department):
                continue
            matches.append(tutor)
        return matches

    def search_requests(
        self,
        query: str | None = None,
        subject: str | None = None,
        department: str | None = None,
    ) -> list[StudentRequest]:
        matches = []
        for request in self._listings(StudentRequest):
            if not _contains_query([request.name, request.subject, request.description], query):
                continue
            if subject and not _any_contains([request.subject], subject):
                continue
            if not _same_department(request.department, department):
                continue
            matches.append(request)
        return matches

    def search_teammates(
        self,
        query: str | None = None,
        skill: str | None = None,
        department: str | None = None,
    ) -> list[TeammateProfile]:
        matches = []
        for teammate in self._listings(TeammateProfile):
            haystack = [teammate.name, teammate.looking_for, *teammate.skills, *teammate.interests]
            if not _contains_query(haystack, query):
                continue
            if skill and not any(s.lower() == skill.lower() for s in teammate.skills):
                continue
            if not _same_department(teammate.department, department):
                continue
            matches.append(teammate)
        return matches

    def count_matches(self, classification: ClassificationResult) -> int | None:
        """Number of listings the assistant's navigation would show, if it searches at all."""
        if classification.intent in {Intent.FIND_TUTOR, Intent.HELP_REQUEST}:
            if not classification.has_slots:
                return None
            return len(self.search_tutors(subject=classification.subject, department=classification.department))
        if classification.intent == Intent.FIND_TEAMMATE:
            if not classification.has_slots:
                return None
            return len(
                self.search_teammates(skill=classification.subject, department=classification.department)
            )
        return None

    def contact_card(self, kind: str, listing_id: str) -> ContactCard:
        record_type = LISTING_TYPES.get(kind)
        if record_type is None:
            raise ValueError(f"Unknown listing kind: {kind}")
        snapshot = self.store.get(f"{record_type.collection}/{listing_id}")
        if snapshot is None:
            raise NotFoundError(f"{kind} listing not found: {listing_id}")
        listing = record_type.from_snapshot(snapshot)
        return ContactCard(
            name=listing.name,
            email=listing.email,
            phone=getattr(listing, "phone", None),
            department=listing.department,
            year=listing.year,
        )

    def _create(self, listing: L) -> L:
        snapshot = self.store.create(type(listing).collection, listing.to_document())
        logger.info("Created %s listing %s for %s", type(listing).collection, snapshot.id, listing.uid)
        return type(listing).from_snapshot(snapshot)

    def _listings(self, record_type: type[L]) -> list[L]:
        if self.cache is not None:
            snapshots = self.cache.get_collection(record_type.collection)
        else:
            snapshots = self.store.query(record_type.collection)
        # Newest first, as the listing pages show them.
        ordered = sorted(snapshots, key=lambda snap: snap.data.get("created_at", ""), reverse=True)
        return list(_parse_all(record_type, ordered))


def _parse_all(record_type: type[L], snapshots: Iterable[DocumentSnapshot]) -> Iterable[L]:
    for snapshot in snapshots:
        try:
            yield record_type.from_snapshot(snapshot)
        except RecordValidationError as exc:
            logger.warning("Skipping malformed %s document %s: %s", record_type.collection, snapshot.id, exc)


def _contains_query(values: Iterable[str], query: str | None) -> bool:
    if not query or not query.strip():
        return True
    return _any_contains(values, query.strip())


def _any_contains(values: Iterable[str], needle: str) -> bool:
    lowered = needle.lower()
    return any(lowered in (value or "").lower() for value in values)


def _same_department(value: str, wanted: str | None) -> bool:
    return not wanted or (value or "").lower() == wanted.lower()
