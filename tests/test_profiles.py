from __future__ import annotations

import pytest

from campus_connect.db.store import DocumentStore
from campus_connect.errors import NotFoundError, RecordValidationError
from campus_connect.services.profiles import Identity, ProfileService
from campus_connect.services.ratings import RatingAggregator


def test_first_sign_in_creates_profile_with_zero_stats(store: DocumentStore) -> None:
    profile = ProfileService(store).ensure_user_profile(Identity(uid="u1", email="u1@campus.edu"))

    assert profile.uid == "u1"
    assert profile.display_name == "Anonymous User"
    assert profile.tutor_stats.rating_avg == 0.0
    assert profile.tutor_stats.rating_count == 0


def test_later_sign_in_refreshes_identity_only(store: DocumentStore) -> None:
    profiles = ProfileService(store)
    profiles.ensure_user_profile(Identity(uid="u1", display_name="Old Name"))
    profiles.update_user_profile("u1", {"bio": "Loves graphs"})

    profile = profiles.ensure_user_profile(Identity(uid="u1", display_name="New Name", photo_url="p.png"))

    assert profile.display_name == "New Name"
    assert profile.photo_url == "p.png"
    assert profile.bio == "Loves graphs"


def test_update_cannot_touch_protected_fields(store: DocumentStore) -> None:
    profiles = ProfileService(store)
    profiles.ensure_user_profile(Identity(uid="t1"))
    RatingAggregator(store).submit_rating("t1", "s1", 5)

    profile = profiles.update_user_profile(
        "t1",
        {
            "is_tutor": True,
            "tutor_subjects": ["Python"],
            "year": 3,
            "tutor_stats": {"rating_avg": 1.0, "rating_count": 99},
            "uid": "someone-else",
        },
    )

    assert profile.uid == "t1"
    assert profile.is_tutor is True
    assert profile.year == "3"
    assert profile.tutor_stats.rating_avg == 5.0
    assert profile.tutor_stats.rating_count == 1


def test_update_validates_before_writing(store: DocumentStore) -> None:
    profiles = ProfileService(store)
    profiles.ensure_user_profile(Identity(uid="u1"))

    with pytest.raises(RecordValidationError):
        profiles.update_user_profile("u1", {"skills": "not-a-list"})

    assert profiles.get_user_profile("u1").skills == []


def test_update_missing_profile(store: DocumentStore) -> None:
    with pytest.raises(NotFoundError):
        ProfileService(store).update_user_profile("ghost", {"bio": "x"})


def test_tutor_listing(store: DocumentStore) -> None:
    profiles = ProfileService(store)
    for uid in ("a", "b", "c"):
        profiles.ensure_user_profile(Identity(uid=uid))
    profiles.update_user_profile("b", {"is_tutor": True})

    assert [profile.uid for profile in profiles.get_tutors()] == ["b"]
    assert len(profiles.get_all_profiles()) == 3
    assert profiles.get_user_profile("nobody") is None
