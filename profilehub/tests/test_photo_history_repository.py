from datetime import datetime, timedelta

import pytest

from profilehub.errors import PhotoNotFoundError
from profilehub.models import ProfilePhotoHistory
from profilehub.repositories.photo_history_repository import PhotoHistoryRepository


@pytest.fixture()
def repo(session):
    return PhotoHistoryRepository(session)


def _add(repo, user_id, path, *, current=False, used_from=None):
    return repo.insert(
        ProfilePhotoHistory(user_id=user_id, photo_path=path, is_current=current, used_from=used_from or datetime.utcnow())
    )


def test_clear_current_keeps_exception(repo, user):
    a = _add(repo, user.id, "a.png", current=True)
    b = _add(repo, user.id, "b.png", current=True)

    assert repo.clear_current(user.id, except_id=b.id) == 1
    assert repo.find_current(user.id).id == b.id
    assert a.is_current is False

    assert repo.clear_current(user.id) == 1
    assert repo.find_current(user.id) is None


def test_find_current_prefers_latest_start(repo, user):
    now = datetime.utcnow()
    _add(repo, user.id, "old.png", current=True, used_from=now - timedelta(days=2))
    newer = _add(repo, user.id, "new.png", current=True, used_from=now)
    assert repo.find_current(user.id).id == newer.id


def test_update_rejects_immutable_fields(repo, user):
    a = _add(repo, user.id, "a.png")
    with pytest.raises(ValueError):
        repo.update(a.id, photo_path="other.png")
    updated = repo.update(a.id, is_current=True, used_until=None)
    assert updated.is_current is True


def test_find_and_delete_by_id(repo, user):
    a = _add(repo, user.id, "a.png")
    repo.delete_by_id(a.id)
    with pytest.raises(PhotoNotFoundError):
        repo.find_by_id(a.id)


def test_count_by_path_spans_users(repo, make_user, user):
    bob = make_user("bob")
    _add(repo, user.id, "shared.png")
    _add(repo, bob.id, "shared.png")
    assert repo.count_by_path("shared.png") == 2
    assert repo.exists_by_path(bob.id, "shared.png")
    assert not repo.exists_by_path(bob.id, "missing.png")


def test_delete_all_for_user_returns_paths(repo, make_user, user):
    bob = make_user("bob")
    _add(repo, user.id, "a.png")
    _add(repo, user.id, "b.png")
    _add(repo, bob.id, "c.png")

    assert sorted(repo.delete_all_for_user(user.id)) == ["a.png", "b.png"]
    assert repo.list_by_user(user.id) == []
    assert len(repo.list_by_user(bob.id)) == 1
