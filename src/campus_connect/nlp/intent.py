from __future__ import annotations

import re

from campus_connect.config import SETTINGS
from campus_connect.data_models import ACTION_INTENTS, ClassificationResult, ConversationContext, Intent
from campus_connect.nlp.vocabulary import Vocabulary, default_vocabulary


class IntentClassifier:
    """
    Rule-based intent classifier for the campus assistant.

    Greeting and thanks short-circuit everything else. Otherwise the department
    and subject slots are resolved from the vocabulary and the first matching
    intent keyword group wins, in the order declared below. The classifier is
    a pure function of (text, vocabulary, prior context).
    """

    GREETING_PATTERN = re.compile(r"^(hi|hello|hey|hola|yo|greetings)\b")
    THANKS_PATTERN = re.compile(r"^(thanks|thank you|thx|ty)\b")
    FOLLOW_UP_PATTERN = re.compile(r"^(what about|how about|and|also|in)\b")

    INTENT_KEYWORDS: list[tuple[Intent, list[str]]] = [
        (
            Intent.HELP_REQUEST,
            ["need help", "looking for help", "struggling with", "post a request", "student request"],
        ),
        (
            Intent.BECOME_TUTOR,
            ["want to teach", "become a tutor", "i can teach", "help others"],
        ),
        (
            Intent.FIND_TEAMMATE,
            ["teammate", "hackathon", "collaborat", "project partner"],
        ),
        (
            Intent.FIND_TUTOR,
            ["find tutor", "find a tutor", "get tutor", "get a tutor", "tutor for", "need a tutor"],
        ),
    ]

    # Word-bounded extras that are too short for plain substring checks.
    INTENT_PATTERNS: dict[Intent, list[re.Pattern[str]]] = {
        Intent.FIND_TEAMMATE: [re.compile(r"\bteams?\b")],
        Intent.FIND_TUTOR: [re.compile(r"\btutors?\b")],
    }

    def __init__(self, vocabulary: Vocabulary | None = None, min_query_length: int | None = None) -> None:
        self.vocabulary = vocabulary or default_vocabulary()
        self.min_query_length = (
            SETTINGS.min_query_length if min_query_length is None else min_query_length
        )

    def classify(self, text: str, context: ConversationContext | None = None) -> ClassificationResult:
        stripped = (text or "").strip()
        lowered = stripped.lower()
        if not lowered:
            return ClassificationResult(intent=Intent.UNKNOWN)

        if self.GREETING_PATTERN.search(lowered):
            return ClassificationResult(intent=Intent.GREETING)
        if self.THANKS_PATTERN.search(lowered):
            return ClassificationResult(intent=Intent.THANKS)

        department = self.vocabulary.departments.resolve(stripped)
        subject = self.vocabulary.subjects.resolve(stripped)

        intent = self._keyword_intent(lowered)
        if intent is None and (subject or department):
            intent = self._follow_up_intent(lowered, context)
            if intent is not None and context is not None:
                subject = subject or context.last_subject
                department = department or context.last_department
        if intent is None and subject:
            intent = Intent.FIND_TUTOR

        if intent is not None:
            return ClassificationResult(intent=intent, subject=subject, department=department)

        if len(lowered) > self.min_query_length:
            return ClassificationResult(
                intent=Intent.GENERIC_QUERY,
                department=department,
                raw_query=text.strip(),
            )
        return ClassificationResult(intent=Intent.UNKNOWN)

    def _keyword_intent(self, lowered: str) -> Intent | None:
        for intent, keywords in self.INTENT_KEYWORDS:
            if any(keyword in lowered for keyword in keywords):
                return intent
            if any(pattern.search(lowered) for pattern in self.INTENT_PATTERNS.get(intent, [])):
                return intent
        return None

    def _follow_up_intent(self, lowered: str, context: ConversationContext | None) -> Intent | None:
        if context is None or context.last_intent not in ACTION_INTENTS:
            return None
        if not self.FOLLOW_UP_PATTERN.search(lowered):
            return None
        return context.last_intent
