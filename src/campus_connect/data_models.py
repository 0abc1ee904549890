from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urlencode


class Intent(str, Enum):
    GREETING = "greeting"
    THANKS = "thanks"
    HELP_REQUEST = "help_request"
    BECOME_TUTOR = "become_tutor"
    FIND_TEAMMATE = "find_teammate"
    FIND_TUTOR = "find_tutor"
    GENERIC_QUERY = "generic_query"
    UNKNOWN = "unknown"


# Intents that route the user somewhere.
ACTION_INTENTS = frozenset(
    {Intent.HELP_REQUEST, Intent.BECOME_TUTOR, Intent.FIND_TEAMMATE, Intent.FIND_TUTOR}
)


class NavigationTarget(str, Enum):
    TUTOR_LISTING = "tutor_listing"
    REQUEST_POSTING = "request_posting"
    TUTOR_REGISTRATION = "tutor_registration"
    TEAMMATE_LISTING = "teammate_listing"


@dataclass(frozen=True)
class ClassificationResult:
    intent: Intent
    subject: str | None = None
    department: str | None = None
    raw_query: str | None = None

    @property
    def has_slots(self) -> bool:
        return bool(self.subject or self.department)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["intent"] = self.intent.value
        return payload


@dataclass(frozen=True)
class Navigation:
    target: NavigationTarget
    route: str
    params: dict[str, str] = field(default_factory=dict)

    def url(self) -> str:
        if not self.params:
            return self.route
        return f"{self.route}?{urlencode(self.params)}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target.value,
            "route": self.route,
            "params": dict(self.params),
            "url": self.url(),
        }


@dataclass(frozen=True)
class BotReply:
    text: str
    navigation: Navigation | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "navigation": self.navigation.to_dict() if self.navigation else None,
        }


@dataclass(frozen=True)
class ChatEntry:
    text: str
    is_bot: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ConversationContext:
    last_subject: str | None = None
    last_department: str | None = None
    last_intent: Intent | None = None

    def remember(self, result: ClassificationResult) -> None:
        if result.subject:
            self.last_subject = result.subject
        if result.department:
            self.last_department = result.department
        if result.intent in ACTION_INTENTS:
            self.last_intent = result.intent

    def to_dict(self) -> dict[str, Any]:
        return {
            "last_subject": self.last_subject,
            "last_department": self.last_department,
            "last_intent": self.last_intent.value if self.last_intent else None,
        }
