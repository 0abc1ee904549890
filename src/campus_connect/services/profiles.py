from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from campus_connect.db.store import DocumentStore, utc_now
from campus_connect.errors import NotFoundError
from campus_connect.records import UserProfile
from campus_connect.services.ratings import profile_path

logger = logging.getLogger(__name__)

# Fields a user may not overwrite through a profile update.
PROTECTED_FIELDS = {"uid", "tutor_stats", "created_at", "updated_at", "id"}


@dataclass(frozen=True)
class Identity:
    uid: str
    display_name: str = ""
    email: str = ""
    photo_url: str | None = None


class ProfileService:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def ensure_user_profile(self, identity: Identity) -> UserProfile:
        """Create the profile on first sign-in, otherwise refresh the identity fields."""
        snapshot = self.store.get(profile_path(identity.uid))
        if snapshot is None:
            profile = UserProfile(
                uid=identity.uid,
                email=identity.email,
                display_name=identity.display_name or "Anonymous User",
                photo_url=identity.photo_url,
            )
            self.store.set(profile_path(identity.uid), profile.to_document())
            logger.info("Created profile for %s", identity.uid)
            return self.get_user_profile(identity.uid)

        current = UserProfile.from_snapshot(snapshot)
        self.store.update(
            profile_path(identity.uid),
            {
                "email": identity.email or current.email,
                "display_name": identity.display_name or current.display_name,
                "photo_url": identity.photo_url or current.photo_url,
                "updated_at": utc_now(),
            },
        )
        return self.get_user_profile(identity.uid)

    def get_user_profile(self, uid: str) -> UserProfile | None:
        snapshot = self.store.get(profile_path(uid))
        if snapshot is None:
            return None
        return UserProfile.from_snapshot(snapshot)

    def update_user_profile(self, uid: str, updates: dict[str, Any]) -> UserProfile:
        current = self.get_user_profile(uid)
        if current is None:
            raise NotFoundError(f"Profile not found: {uid}")

        changes = {key: value for key, value in updates.items() if key not in PROTECTED_FIELDS}
        merged = UserProfile.parse_document({**current.model_dump(), **changes, "updated_at": utc_now()})
        document = merged.to_document()
        # tutor_stats is owned by the rating transaction; write only what changed.
        fields = {key: document[key] for key in changes if key in document}
        fields["updated_at"] = document["updated_at"]
        snapshot = self.store.update(profile_path(uid), fields)
        return UserProfile.from_snapshot(snapshot)

    def get_tutors(self) -> list[UserProfile]:
        snapshots = self.store.query(UserProfile.collection, [("is_tutor", "==", True)])
        return [UserProfile.from_snapshot(snapshot) for snapshot in snapshots]

    def get_all_profiles(self) -> list[UserProfile]:
        return [UserProfile.from_snapshot(snapshot) for snapshot in self.store.query(UserProfile.collection)]
