from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable, Optional

from campus_connect.data_models import (
    ACTION_INTENTS,
    BotReply,
    ChatEntry,
    ClassificationResult,
    ConversationContext,
    Intent,
)
from campus_connect.dialogue.navigation import Navigator
from campus_connect.dialogue.responder import DialogueResponder
from campus_connect.errors import SessionStateError
from campus_connect.nlp.intent import IntentClassifier
from campus_connect.nlp.query_normalizer import NormalizedQuery, QueryNormalizer

logger = logging.getLogger(__name__)

SearchHook = Callable[[ClassificationResult], Optional[int]]
Phraser = Callable[[str, BotReply], Optional[str]]
ReplyListener = Callable[[ChatEntry], None]

WELCOME_MESSAGES = {
    "assistant": (
        "Hey! I'm your campus assistant.\n\n"
        "I can help you with:\n"
        "- Finding tutors for any subject\n"
        "- Posting a request for help\n"
        "- Finding teammates for projects\n"
        "- Becoming a tutor yourself\n\n"
        "Just tell me what you need!"
    ),
    "tutors": (
        "Hey there! I'm here to help you find the perfect tutor.\n\n"
        "Just chat with me naturally, for example:\n"
        "- 'I'm struggling with Data Structures'\n"
        "- 'Can you recommend a Python tutor?'\n\n"
        "What subject are you looking for help with?"
    ),
    "teammates": (
        "Hi! I'll help you find teammates for your project.\n\n"
        "Tell me what you're working on, for example:\n"
        "- 'I need a React developer for my web app'\n"
        "- 'Want to find CSE students for a hackathon'\n\n"
        "What kind of teammate are you looking for?"
    ),
}


def classify_with_retry(
    classifier: IntentClassifier,
    normalizer: QueryNormalizer | None,
    message: str,
    context: ConversationContext | None = None,
) -> tuple[ClassificationResult, NormalizedQuery | None]:
    """Classify ``message``, retrying on the normalized text when nothing actionable was found.

    The retry is only adopted when it lands on an action intent; the returned
    ``NormalizedQuery`` is set exactly when it was.
    """
    result = classifier.classify(message, context)
    if result.intent != Intent.GENERIC_QUERY or normalizer is None:
        return result, None

    normalized = normalizer.normalize(message)
    if not normalized.applied:
        return result, None
    retry = classifier.classify(normalized.corrected, context)
    if retry.intent in ACTION_INTENTS:
        logger.debug("Normalized %r to %r for classification", message, normalized.corrected)
        return retry, normalized
    return result, None


class SessionState(str, Enum):
    CLOSED = "closed"
    GREETING = "greeting"
    AWAITING_INPUT = "awaiting_input"
    RESPONDING = "responding"


class ConversationSession:
    """One user's dialogue with the assistant, from open to close.

    Messages are processed one at a time: concurrent ``submit`` calls block
    on the session lock and run in arrival order. The reply is appended to the
    history and handed to every listener before any navigation is scheduled.
    """

    def __init__(
        self,
        classifier: IntentClassifier | None = None,
        responder: DialogueResponder | None = None,
        *,
        surface: str = "assistant",
        navigator: Navigator | None = None,
        search: SearchHook | None = None,
        normalizer: QueryNormalizer | None = None,
        phraser: Phraser | None = None,
    ) -> None:
        if surface not in WELCOME_MESSAGES:
            raise ValueError(f"Unknown surface: {surface}")
        self.classifier = classifier or IntentClassifier()
        self.responder = responder or DialogueResponder()
        self.surface = surface
        self.navigator = navigator
        self.search = search
        self.normalizer = normalizer
        self.phraser = phraser

        self.state = SessionState.CLOSED
        self.history: list[ChatEntry] = []
        self.context = ConversationContext()
        self._listeners: list[ReplyListener] = []
        self._lock = threading.Lock()
        self._welcomed = False

    def add_listener(self, listener: ReplyListener) -> None:
        self._listeners.append(listener)

    def open(self) -> list[ChatEntry]:
        with self._lock:
            if self.state != SessionState.CLOSED:
                return list(self.history)
            self.state = SessionState.GREETING
            if not self._welcomed:
                self._welcomed = True
                self._deliver(ChatEntry(text=WELCOME_MESSAGES[self.surface], is_bot=True))
            self.state = SessionState.AWAITING_INPUT
            return list(self.history)

    def close(self) -> None:
        with self._lock:
            self.state = SessionState.CLOSED

    def submit(self, text: str) -> BotReply | None:
        message = (text or "").strip()
        if not message:
            return None

        with self._lock:
            if self.state == SessionState.CLOSED:
                raise SessionStateError("Session is closed; open it before sending messages")

            self.history.append(ChatEntry(text=message, is_bot=False))
            self.state = SessionState.RESPONDING
            try:
                classification = self._classify(message)
                result_count = self.search(classification) if self.search else None
                reply = self.responder.respond(classification, self.context, result_count)
                reply = self._phrase(message, reply)
                self.context.remember(classification)

                self._deliver(ChatEntry(text=reply.text, is_bot=True))
                if reply.navigation is not None and self.navigator is not None:
                    self.navigator.schedule(reply.navigation)
                return reply
            finally:
                self.state = SessionState.AWAITING_INPUT

    def _classify(self, message: str) -> ClassificationResult:
        result, _ = classify_with_retry(self.classifier, self.normalizer, message, self.context)
        return result

    def _phrase(self, message: str, reply: BotReply) -> BotReply:
        if self.phraser is None:
            return reply
        text = self.phraser(message, reply)
        if not text:
            return reply
        return BotReply(text=text, navigation=reply.navigation)

    def _deliver(self, entry: ChatEntry) -> None:
        self.history.append(entry)
        for listener in self._listeners:
            listener(entry)
