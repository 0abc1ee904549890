"""Validated entity records stored in the document store.

Each record knows the collection it lives in. ``from_snapshot`` and
``to_document`` are the store boundary: anything that does not fit the schema
is rejected there with a ``RecordValidationError``.
"""

from __future__ import annotations

from typing import Any, ClassVar, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from campus_connect.config import SETTINGS
from campus_connect.db.store import DocumentSnapshot, utc_now
from campus_connect.errors import RecordValidationError

R = TypeVar("R", bound="Record")


class Record(BaseModel):
    model_config = ConfigDict(extra="ignore")

    collection: ClassVar[str] = ""

    id: str = ""

    @classmethod
    def from_snapshot(cls: type[R], snapshot: DocumentSnapshot) -> R:
        return cls.parse_document(snapshot.to_dict())

    @classmethod
    def parse_document(cls: type[R], payload: dict[str, Any]) -> R:
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise RecordValidationError(f"Invalid {cls.__name__}: {exc}") from exc

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(exclude={"id"})


class TutorStats(BaseModel):
    rating_avg: float = 0.0
    rating_count: int = Field(default=0, ge=0)


class UserProfile(Record):
    collection: ClassVar[str] = "profiles"

    uid: str = Field(min_length=1)
    email: str = ""
    display_name: str = "Anonymous User"
    photo_url: Optional[str] = None
    department: Optional[str] = None
    year: Optional[str] = None
    bio: str = ""
    skills: list[str] = Field(default_factory=list)

    is_tutor: bool = False
    tutor_subjects: list[str] = Field(default_factory=list)
    tutor_pricing_text: str = ""
    tutor_availability_text: str = ""
    tutor_stats: TutorStats = Field(default_factory=TutorStats)

    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)

    @field_validator("year", mode="before")
    @classmethod
    def _year_as_text(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value


class Rating(BaseModel):
    reviewer_uid: str = Field(min_length=1)
    tutor_uid: str = Field(min_length=1)
    score: int = Field(ge=SETTINGS.min_score, le=SETTINGS.max_score)
    comment: str = Field(default="", max_length=SETTINGS.max_comment_length)
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)

    @classmethod
    def from_snapshot(cls, snapshot: DocumentSnapshot) -> "Rating":
        try:
            return cls.model_validate(snapshot.data)
        except ValidationError as exc:
            raise RecordValidationError(f"Invalid Rating: {exc}") from exc


class TutorProfile(Record):
    collection: ClassVar[str] = "tutors"

    uid: str = Field(min_length=1)
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    phone: Optional[str] = None
    subjects: list[str] = Field(min_length=1)
    year: str
    department: str
    availability: str = ""
    location: Optional[str] = None
    photo_url: Optional[str] = None
    created_at: str = Field(default_factory=utc_now)


class StudentRequest(Record):
    collection: ClassVar[str] = "student_requests"

    uid: str = Field(min_length=1)
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    subject: str = Field(min_length=1)
    description: str = ""
    year: str
    department: str
    photo_url: Optional[str] = None
    created_at: str = Field(default_factory=utc_now)


class TeammateProfile(Record):
    collection: ClassVar[str] = "teammates"

    uid: str = Field(min_length=1)
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    phone: Optional[str] = None
    skills: list[str] = Field(default_factory=list)
    interests: list[str] = Field(default_factory=list)
    year: str
    department: str
    looking_for: str = ""
    photo_url: Optional[str] = None
    created_at: str = Field(default_factory=utc_now)


class ChatRoom(Record):
    collection: ClassVar[str] = "chat_rooms"

    type: Literal["dm", "public"]
    title: Optional[str] = None
    description: Optional[str] = None
    dm_key: Optional[str] = None
    members: list[str] = Field(default_factory=list)
    member_names: dict[str, str] = Field(default_factory=dict)
    created_at: str = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _check_variant(self) -> "ChatRoom":
        if self.type == "dm":
            if not self.dm_key or len(self.members) != 2:
                raise ValueError("dm rooms need a dm_key and exactly two members")
        elif not self.title:
            raise ValueError("public rooms need a title")
        return self


class ChatMessage(Record):
    text: str = Field(min_length=1, max_length=SETTINGS.max_message_length)
    sender_uid: str = Field(min_length=1)
    sender_name: str = ""
    created_at: str = Field(default_factory=utc_now)


class ContactCard(BaseModel):
    name: str
    email: str
    phone: Optional[str] = None
    department: Optional[str] = None
    year: Optional[str] = None
