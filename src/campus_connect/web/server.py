from __future__ import annotations

import logging
import secrets
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Literal, Optional

from fastapi import FastAPI, Header, HTTPException, Query
from pydantic import BaseModel, Field

from campus_connect.config import SETTINGS, ensure_directories
from campus_connect.data_models import ConversationContext, Intent
from campus_connect.db.cache import ReadThroughCache
from campus_connect.db.store import DocumentStore
from campus_connect.dialogue.responder import DialogueResponder
from campus_connect.dialogue.session import ConversationSession, classify_with_retry
from campus_connect.errors import NotFoundError, TransientStoreError, ValidationError
from campus_connect.llm.domain_assistant import rephrase_with_domain_assistant
from campus_connect.nlp.intent import IntentClassifier
from campus_connect.nlp.query_normalizer import QueryNormalizer
from campus_connect.nlp.vocabulary import load_vocabulary
from campus_connect.records import StudentRequest, TeammateProfile, TutorProfile
from campus_connect.services.chat_rooms import ChatRoomService
from campus_connect.services.directory import CommunityDirectory
from campus_connect.services.profiles import Identity, ProfileService
from campus_connect.services.ratings import RatingAggregator
from campus_connect.utils.logging import configure_logging

logger = logging.getLogger(__name__)

app = FastAPI(title="Campus Connect", version="1.0.0")


@dataclass
class RuntimeState:
    store: DocumentStore | None = None
    cache: ReadThroughCache | None = None
    directory: CommunityDirectory | None = None
    profiles: ProfileService | None = None
    ratings: RatingAggregator | None = None
    rooms: ChatRoomService | None = None
    classifier: IntentClassifier = field(default_factory=IntentClassifier)
    responder: DialogueResponder = field(default_factory=DialogueResponder)
    normalizer: QueryNormalizer = field(default_factory=QueryNormalizer)
    sessions: dict[str, ConversationSession] = field(default_factory=dict)
    last_used: dict[str, float] = field(default_factory=dict)
    session_idle_seconds: float = SETTINGS.session_idle_seconds
    lock: threading.Lock = field(default_factory=threading.Lock)

    def reset(self, store: DocumentStore) -> None:
        """Point every service at ``store`` and drop open sessions."""
        if self.cache is not None:
            self.cache.close()
        self.store = store
        self.cache = ReadThroughCache(store)
        self.directory = CommunityDirectory(store, self.cache)
        self.profiles = ProfileService(store)
        self.ratings = RatingAggregator(store)
        self.rooms = ChatRoomService(store)
        with self.lock:
            self.sessions.clear()
            self.last_used.clear()

    def evict_idle_sessions(self, now: float | None = None) -> int:
        """Close and forget sessions unused for longer than ``session_idle_seconds``."""
        now = time.monotonic() if now is None else now
        with self.lock:
            idle = [
                session_id
                for session_id, used in self.last_used.items()
                if now - used > self.session_idle_seconds
            ]
            evicted = [self.sessions.pop(session_id) for session_id in idle if session_id in self.sessions]
            for session_id in idle:
                del self.last_used[session_id]
        for session in evicted:
            session.close()
        if idle:
            logger.info("Evicted %d idle assistant sessions", len(idle))
        return len(idle)


STATE = RuntimeState()


class ClassifyRequest(BaseModel):
    message: str = Field(min_length=1, max_length=2000)
    last_subject: Optional[str] = None
    last_department: Optional[str] = None
    last_intent: Optional[Intent] = None


class SessionRequest(BaseModel):
    surface: Literal["assistant", "tutors", "teammates"] = "assistant"


class MessageRequest(BaseModel):
    message: str = Field(min_length=1, max_length=2000)


class TutorRequest(BaseModel):
    name: str
    email: str
    phone: Optional[str] = None
    subjects: list[str]
    year: str
    department: str
    availability: str = ""
    location: Optional[str] = None
    photo_url: Optional[str] = None


class HelpRequestPayload(BaseModel):
    name: str
    email: str
    subject: str
    description: str = ""
    year: str
    department: str
    photo_url: Optional[str] = None


class TeammateRequest(BaseModel):
    name: str
    email: str
    phone: Optional[str] = None
    skills: list[str] = Field(default_factory=list)
    interests: list[str] = Field(default_factory=list)
    year: str
    department: str
    looking_for: str = ""
    photo_url: Optional[str] = None


class RatingRequest(BaseModel):
    score: int
    comment: str = ""


class DirectMessageRequest(BaseModel):
    other_uid: str = Field(min_length=1)
    other_name: str = ""


class ChatMessageRequest(BaseModel):
    text: str


@app.on_event("startup")
def startup() -> None:
    configure_logging()
    ensure_directories()
    vocabulary = load_vocabulary(SETTINGS.vocabulary_path)
    STATE.classifier = IntentClassifier(vocabulary)
    STATE.normalizer.bootstrap_from_vocabulary(vocabulary)
    _state()


@app.on_event("shutdown")
def shutdown() -> None:
    if STATE.cache is not None:
        STATE.cache.close()
        STATE.cache = None


@app.get("/api/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/api/classify")
def classify(payload: ClassifyRequest) -> dict[str, Any]:
    context = ConversationContext(
        last_subject=payload.last_subject,
        last_department=payload.last_department,
        last_intent=payload.last_intent,
    )
    result, normalized = classify_with_retry(STATE.classifier, STATE.normalizer, payload.message, context)
    reply = STATE.responder.respond(result, context)
    return {
        "ok": True,
        "result": result.to_dict(),
        "reply": reply.to_dict(),
        "normalized": normalized.to_dict() if normalized else None,
    }


@app.post("/api/assistant/sessions")
def open_session(payload: SessionRequest) -> dict[str, Any]:
    state = _state()
    session = ConversationSession(
        STATE.classifier,
        STATE.responder,
        surface=payload.surface,
        search=state.directory.count_matches,
        normalizer=STATE.normalizer,
        phraser=rephrase_with_domain_assistant if SETTINGS.openai_api_key else None,
    )
    session_id = secrets.token_urlsafe(16)
    history = session.open()
    STATE.evict_idle_sessions()
    with STATE.lock:
        STATE.sessions[session_id] = session
        STATE.last_used[session_id] = time.monotonic()
    return {
        "ok": True,
        "session_id": session_id,
        "messages": [entry.to_dict() for entry in history],
    }


@app.post("/api/assistant/sessions/{session_id}/messages")
def send_assistant_message(session_id: str, payload: MessageRequest) -> dict[str, Any]:
    session = _session(session_id)
    with _service_errors():
        reply = session.submit(payload.message)
    return {
        "ok": True,
        "reply": reply.to_dict() if reply else None,
        # The client shows the reply first and follows the navigation after this delay.
        "navigation_delay_ms": int(SETTINGS.navigation_delay_seconds * 1000),
        "context": session.context.to_dict(),
    }


@app.delete("/api/assistant/sessions/{session_id}")
def close_session(session_id: str) -> dict[str, Any]:
    with STATE.lock:
        session = STATE.sessions.pop(session_id, None)
        STATE.last_used.pop(session_id, None)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    session.close()
    return {"ok": True}


@app.get("/api/tutors")
def list_tutors(
    q: Optional[str] = None,
    subject: Optional[str] = None,
    department: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=1000),
) -> dict[str, Any]:
    with _service_errors():
        rows = _state().directory.search_tutors(query=q, subject=subject, department=department)
    return _rows(rows, limit)


@app.post("/api/tutors")
def register_tutor(
    payload: TutorRequest,
    x_user_id: Optional[str] = Header(default=None),
) -> dict[str, Any]:
    uid = _require_uid(x_user_id)
    with _service_errors():
        listing = TutorProfile.parse_document({**payload.model_dump(), "uid": uid})
        created = _state().directory.register_tutor(listing)
    return {"ok": True, "listing": created.model_dump()}


@app.get("/api/tutors/{listing_id}/contact")
def tutor_contact(listing_id: str) -> dict[str, Any]:
    with _service_errors():
        card = _state().directory.contact_card("tutors", listing_id)
    return {"ok": True, "contact": card.model_dump()}


@app.get("/api/tutors/{tutor_uid}/ratings")
def list_ratings(tutor_uid: str) -> dict[str, Any]:
    state = _state()
    with _service_errors():
        stats = state.ratings.get_stats(tutor_uid)
        ratings = state.ratings.list_ratings(tutor_uid)
    return {
        "ok": True,
        "stats": stats.model_dump(),
        "count": len(ratings),
        "rows": [rating.model_dump() for rating in ratings],
    }


@app.post("/api/tutors/{tutor_uid}/ratings")
def submit_rating(
    tutor_uid: str,
    payload: RatingRequest,
    x_user_id: Optional[str] = Header(default=None),
) -> dict[str, Any]:
    reviewer_uid = _require_uid(x_user_id)
    state = _state()
    with _service_errors():
        rating = state.ratings.submit_rating(tutor_uid, reviewer_uid, payload.score, payload.comment)
        stats = state.ratings.get_stats(tutor_uid)
    return {"ok": True, "rating": rating.model_dump(), "stats": stats.model_dump()}


@app.get("/api/requests")
def list_requests(
    q: Optional[str] = None,
    subject: Optional[str] = None,
    department: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=1000),
) -> dict[str, Any]:
    with _service_errors():
        rows = _state().directory.search_requests(query=q, subject=subject, department=department)
    return _rows(rows, limit)


@app.post("/api/requests")
def post_request(
    payload: HelpRequestPayload,
    x_user_id: Optional[str] = Header(default=None),
) -> dict[str, Any]:
    uid = _require_uid(x_user_id)
    with _service_errors():
        request = StudentRequest.parse_document({**payload.model_dump(), "uid": uid})
        created = _state().directory.post_request(request)
    return {"ok": True, "listing": created.model_dump()}


@app.get("/api/teammates")
def list_teammates(
    q: Optional[str] = None,
    skill: Optional[str] = None,
    department: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=1000),
) -> dict[str, Any]:
    with _service_errors():
        rows = _state().directory.search_teammates(query=q, skill=skill, department=department)
    return _rows(rows, limit)


@app.post("/api/teammates")
def register_teammate(
    payload: TeammateRequest,
    x_user_id: Optional[str] = Header(default=None),
) -> dict[str, Any]:
    uid = _require_uid(x_user_id)
    with _service_errors():
        profile = TeammateProfile.parse_document({**payload.model_dump(), "uid": uid})
        created = _state().directory.register_teammate(profile)
    return {"ok": True, "listing": created.model_dump()}


@app.post("/api/profiles/me")
def ensure_profile(
    x_user_id: Optional[str] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None),
    x_user_email: Optional[str] = Header(default=None),
) -> dict[str, Any]:
    identity = Identity(
        uid=_require_uid(x_user_id),
        display_name=x_user_name or "",
        email=x_user_email or "",
    )
    with _service_errors():
        profile = _state().profiles.ensure_user_profile(identity)
    return {"ok": True, "profile": profile.model_dump()}


@app.patch("/api/profiles/me")
def update_profile(
    updates: dict[str, Any],
    x_user_id: Optional[str] = Header(default=None),
) -> dict[str, Any]:
    uid = _require_uid(x_user_id)
    with _service_errors():
        profile = _state().profiles.update_user_profile(uid, updates)
    return {"ok": True, "profile": profile.model_dump()}


@app.get("/api/profiles/{uid}")
def get_profile(uid: str) -> dict[str, Any]:
    with _service_errors():
        profile = _state().profiles.get_user_profile(uid)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"Profile not found: {uid}")
    return {"ok": True, "profile": profile.model_dump()}


@app.get("/api/rooms/public")
def list_public_rooms() -> dict[str, Any]:
    with _service_errors():
        rooms = _state().rooms.list_public_rooms()
    return _rows(rooms)


@app.get("/api/rooms/dm")
def list_dm_rooms(x_user_id: Optional[str] = Header(default=None)) -> dict[str, Any]:
    uid = _require_uid(x_user_id)
    with _service_errors():
        rooms = _state().rooms.list_dm_rooms(uid)
    return _rows(rooms)


@app.post("/api/rooms/dm")
def open_dm_room(
    payload: DirectMessageRequest,
    x_user_id: Optional[str] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None),
) -> dict[str, Any]:
    uid = _require_uid(x_user_id)
    with _service_errors():
        room = _state().rooms.get_or_create_dm_room(uid, payload.other_uid, x_user_name or "", payload.other_name)
    return {"ok": True, "room": room.model_dump()}


@app.get("/api/rooms/{room_id}")
def get_room(room_id: str) -> dict[str, Any]:
    with _service_errors():
        room = _state().rooms.get_room(room_id)
    if room is None:
        raise HTTPException(status_code=404, detail=f"Chat room not found: {room_id}")
    return {"ok": True, "room": room.model_dump()}


@app.get("/api/rooms/{room_id}/messages")
def list_room_messages(room_id: str) -> dict[str, Any]:
    state = _state()
    with _service_errors():
        if state.rooms.get_room(room_id) is None:
            raise HTTPException(status_code=404, detail=f"Chat room not found: {room_id}")
        messages = state.rooms.list_messages(room_id)
    return _rows(messages)


@app.post("/api/rooms/{room_id}/messages")
def post_room_message(
    room_id: str,
    payload: ChatMessageRequest,
    x_user_id: Optional[str] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None),
) -> dict[str, Any]:
    uid = _require_uid(x_user_id)
    with _service_errors():
        message = _state().rooms.send_message(room_id, payload.text, uid, x_user_name or "")
    return {"ok": True, "message": message.model_dump()}


@contextmanager
def _service_errors() -> Iterator[None]:
    try:
        yield
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except (ValidationError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except TransientStoreError as exc:
        logger.warning("Store unavailable: %s", exc)
        raise HTTPException(status_code=503, detail="Storage is busy, please retry.")


def _state() -> RuntimeState:
    if STATE.store is None:
        STATE.reset(DocumentStore())
    return STATE


def _session(session_id: str) -> ConversationSession:
    STATE.evict_idle_sessions()
    with STATE.lock:
        session = STATE.sessions.get(session_id)
        if session is not None:
            STATE.last_used[session_id] = time.monotonic()
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    return session


def _require_uid(x_user_id: Optional[str]) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="X-User-Id header is required.")
    return x_user_id.strip()


def _rows(records: list[BaseModel], limit: int | None = None) -> dict[str, Any]:
    rows = [record.model_dump() for record in records[:limit]]
    return {"ok": True, "count": len(rows), "rows": rows}
