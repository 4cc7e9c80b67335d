import pytest

from profilehub.errors import ProfileValidationError
from profilehub.services.profile_service import ProfileService


@pytest.fixture()
def profiles(session, store, service):
    return ProfileService(session, store, service)


def test_email_taken_between_lookup_and_commit(session, profiles, make_user, user, monkeypatch):
    make_user("bob", email="bob@example.com")
    # The other request commits after this one has checked the address
    monkeypatch.setattr(profiles.users, "get_by_email", lambda email: None)

    with pytest.raises(ProfileValidationError) as exc:
        profiles.update_profile(user, {"name": "Alice", "email": "bob@example.com"})

    assert str(exc.value) == "The email has already been taken."
    session.refresh(user)
    assert user.email == "alice@example.com"


def test_update_profile_without_changes_keeps_fields(session, profiles, user):
    out = profiles.update_profile(user, {"name": user.name, "email": user.email})
    assert out["email"] == "alice@example.com"
    assert out["name"] == "Alice"
