import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from sqlmodel import Session

from profilehub.audit_utils import log_event, photo_snapshot
from profilehub.errors import (
    InvalidPhotoOperation,
    PhotoAccessDenied,
    PhotoStorageError,
    ProfileError,
)
from profilehub.models import ProfilePhotoHistory, User
from profilehub.photo_store import PhotoStore
from profilehub.photo_uploads import PhotoUpload
from profilehub.repositories.photo_history_repository import PhotoHistoryRepository
from profilehub.repositories.user_repository import UserRepository
from profilehub.user_locks import get_user_locks

log = logging.getLogger("profilehub.photos")

# Adoption time assumed for photos whose real start of use is unknown.
ESTIMATED_USAGE = timedelta(days=1)


def belongs_to(record: ProfilePhotoHistory, user_id: int) -> bool:
    return record is not None and user_id is not None and record.user_id == user_id


def _only_use_since_upload(record: ProfilePhotoHistory) -> bool:
    """True while the record is still in the period of use its upload started.

    Restored, repaired and estimated records were in history before and are
    never discarded.
    """
    return (
        not record.is_estimated
        and record.used_from is not None
        and record.used_from == record.created_at
        and record.updated_at == record.created_at
    )


@dataclass
class PhotoResult:
    status: str
    changed: bool = True
    record: Optional[ProfilePhotoHistory] = None
    warning: Optional[str] = None


@dataclass
class Transition:
    """State shared by the steps of one locked, transactional operation."""

    user: User
    now: datetime
    request: Any = None
    blob_deletes: List[str] = field(default_factory=list)
    audit: List[Tuple[str, Optional[int], Dict[str, Any]]] = field(default_factory=list)
    warning: Optional[str] = None
    committed: bool = False

    def record_audit(self, action: str, record: Optional[ProfilePhotoHistory], **extra: Any) -> None:
        payload = dict(photo_snapshot(record) or {})
        payload.update(extra)
        self.audit.append((action, record.id if record is not None else None, payload))


class PhotoHistoryService:
    """Transitions over a user's photo ledger and the mirrored avatar field.

    Every public operation runs under the per-user lock, inside one database
    transaction that also row-locks the user. Blob deletions are deferred
    until after the commit so a storage hiccup can never orphan a pointer.

    ``min_retention`` selects the supersede policy: zero keeps every replaced
    photo in history; a positive value drops photos that were current for
    less than that long.
    """

    def __init__(
        self,
        session: Session,
        store: PhotoStore,
        min_retention: timedelta = timedelta(0),
        locks=None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.session = session
        self.store = store
        self.repo = PhotoHistoryRepository(session)
        self.users = UserRepository(session)
        self.min_retention = min_retention
        self.locks = locks or get_user_locks()
        self._clock = clock

    # -- plumbing -----------------------------------------------------------

    @contextmanager
    def transition(self, user: User, request: Any = None) -> Iterator[Transition]:
        user_id = user.id
        username = user.username
        with self.locks.hold(user_id):
            try:
                locked = self.users.lock_for_update(user_id)
                if locked is None:
                    raise ProfileError("User no longer exists.")
                tx = Transition(user=locked, now=self._clock(), request=request)
                yield tx
                self.session.commit()
                tx.committed = True
            except Exception:
                self.session.rollback()
                raise
        tx.warning = self._delete_orphaned_blobs(tx.blob_deletes)
        for action, entity_id, payload in tx.audit:
            log_event(
                self.session,
                action=action,
                entity_type="profile_photo",
                entity_id=entity_id,
                entity_name=payload.get("photo_path"),
                after=payload,
                request=request,
                actor_user_id=user_id,
                actor_username=username,
            )

    def _delete_orphaned_blobs(self, paths: List[str]) -> Optional[str]:
        failed = []
        for path in dict.fromkeys(paths):
            if self.repo.count_by_path(path) > 0:
                continue
            try:
                if self.store.exists(path):
                    self.store.delete(path)
            except PhotoStorageError as exc:
                log.warning("Could not delete photo blob %s: %s", path, exc)
                failed.append(path)
        if failed:
            return "The photo record was removed but its file could not be deleted."
        return None

    def _load_owned(self, user: User, photo_id: int) -> ProfilePhotoHistory:
        record = self.repo.find_by_id(photo_id)
        if not belongs_to(record, user.id):
            log.warning("User %s attempted to act on photo %s of another user", user.id, photo_id)
            raise PhotoAccessDenied()
        return record

    # -- transitions --------------------------------------------------------

    def _supersede(self, tx: Transition, allow_discard: bool = True) -> Optional[ProfilePhotoHistory]:
        """Close out the current photo so a new one can take its place."""
        user = tx.user
        current = self.repo.find_current(user.id)
        if current is None:
            if user.avatar_path and not self.repo.exists_by_path(user.id, user.avatar_path):
                # Avatar predates the ledger: record it as a closed, estimated entry
                record = self.repo.insert(
                    ProfilePhotoHistory(
                        user_id=user.id,
                        photo_path=user.avatar_path,
                        used_from=tx.now - ESTIMATED_USAGE,
                        used_until=tx.now,
                        is_current=False,
                        is_estimated=True,
                    )
                )
                tx.record_audit("photo.backfill", record)
                return record
            return None

        held_for = tx.now - current.used_from if current.used_from else None
        if (
            allow_discard
            and self.min_retention > timedelta(0)
            and _only_use_since_upload(current)
            and held_for < self.min_retention
        ):
            log.info("Dropping photo %s from history; current for only %s", current.id, held_for)
            tx.record_audit("photo.discard", current, held_seconds=int(held_for.total_seconds()))
            tx.blob_deletes.append(current.photo_path)
            self.repo.delete(current)
            return None

        return self.repo.update(current.id, is_current=False, used_until=tx.now)

    def _ensure(self, tx: Transition) -> Optional[ProfilePhotoHistory]:
        user = tx.user
        if not user.avatar_path:
            return None
        current = self.repo.find_current(user.id)
        if current is not None and current.photo_path == user.avatar_path:
            return current
        existing = self.repo.find_by_path(user.id, user.avatar_path)
        if existing is None:
            record = self.repo.insert(
                ProfilePhotoHistory(
                    user_id=user.id,
                    photo_path=user.avatar_path,
                    used_from=tx.now - ESTIMATED_USAGE,
                    used_until=None,
                    is_current=True,
                    is_estimated=True,
                )
            )
            self.repo.clear_current(user.id, except_id=record.id)
            log.info("Backfilled history for avatar of user %s", user.id)
            tx.record_audit("photo.backfill", record)
            return record
        # Avatar points at a closed row: reopen it
        self.repo.clear_current(user.id, except_id=existing.id)
        record = self.repo.update(existing.id, is_current=True, used_until=None)
        log.warning("Repaired current photo of user %s (record %s)", user.id, record.id)
        tx.record_audit("photo.repair", record)
        return record

    def _needs_ensure(self, user: User) -> bool:
        if not user.avatar_path:
            return False
        current = self.repo.find_current(user.id)
        return current is None or current.photo_path != user.avatar_path

    def ensure_current_in_history(self, user: User, request: Any = None) -> Optional[ProfilePhotoHistory]:
        """Make sure the avatar has a matching current ledger row. Idempotent."""
        if not self._needs_ensure(user):
            return self.repo.find_current(user.id) if user.avatar_path else None
        with self.transition(user, request) as tx:
            record = self._ensure(tx)
        return record

    def list_history(self, user: User, request: Any = None) -> List[ProfilePhotoHistory]:
        self.ensure_current_in_history(user, request)
        return self.repo.list_by_user(user.id, newest_first=True)

    def upload(self, user: User, upload: PhotoUpload, request: Any = None) -> PhotoResult:
        # Blob first: a failed write leaves ledger and avatar untouched
        path = self.store.put(upload.data, upload.content_type)
        tx = None
        try:
            with self.transition(user, request) as tx:
                self._supersede(tx)
                self.repo.clear_current(tx.user.id)
                record = self.repo.insert(
                    ProfilePhotoHistory(
                        user_id=tx.user.id,
                        photo_path=path,
                        used_from=tx.now,
                        used_until=None,
                        is_current=True,
                        is_estimated=False,
                        created_at=tx.now,
                        updated_at=tx.now,
                    )
                )
                tx.user.avatar_path = path
                tx.user.avatar_updated_at = tx.now
                self.users.save(tx.user)
                tx.record_audit("photo.upload", record, size=upload.size)
        except Exception:
            if tx is None or not tx.committed:
                try:
                    self.store.delete(path)
                except PhotoStorageError:
                    log.warning("Could not clean up blob %s after failed upload", path)
            raise
        log.info("User %s uploaded photo %s", user.id, record.id)
        return PhotoResult("Profile photo updated successfully!", record=record, warning=tx.warning)

    def remove(self, user: User, request: Any = None) -> PhotoResult:
        with self.transition(user, request) as tx:
            if not tx.user.avatar_path and self.repo.find_current(tx.user.id) is None:
                return PhotoResult("No profile photo to remove.", changed=False)
            record = self._supersede(tx, allow_discard=False)
            tx.user.avatar_path = None
            tx.user.avatar_updated_at = tx.now
            self.users.save(tx.user)
            tx.record_audit("photo.remove", record)
        log.info("User %s removed their profile photo", user.id)
        return PhotoResult("Profile photo removed successfully!", record=record, warning=tx.warning)

    def set_as_current(self, user: User, photo_id: int, request: Any = None) -> PhotoResult:
        with self.transition(user, request) as tx:
            target = self._load_owned(tx.user, photo_id)
            if target.is_current and tx.user.avatar_path == target.photo_path:
                return PhotoResult("This photo is already your profile photo.", changed=False, record=target)

            current = self.repo.find_current(tx.user.id)
            if current is None or current.id != target.id:
                self._supersede(tx)
            self.repo.clear_current(tx.user.id, except_id=target.id)
            target = self.repo.update(
                target.id, is_current=True, used_from=tx.now, used_until=None, is_estimated=False
            )
            tx.user.avatar_path = target.photo_path
            tx.user.avatar_updated_at = tx.now
            self.users.save(tx.user)
            tx.record_audit("photo.set_current", target)
        log.info("User %s restored photo %s", user.id, photo_id)
        return PhotoResult("Profile photo restored successfully!", record=target, warning=tx.warning)

    def add_to_history(self, user: User, request: Any = None) -> PhotoResult:
        if not user.avatar_path:
            return PhotoResult("No current profile photo to add to history.", changed=False)
        with self.transition(user, request) as tx:
            path = tx.user.avatar_path
            if not path:
                return PhotoResult("No current profile photo to add to history.", changed=False)
            if self.repo.exists_by_path(tx.user.id, path):
                return PhotoResult("Photo is already in your history.", changed=False)
            record = self.repo.insert(
                ProfilePhotoHistory(
                    user_id=tx.user.id,
                    photo_path=path,
                    used_from=tx.now - ESTIMATED_USAGE,
                    used_until=tx.now,
                    is_current=False,
                    is_estimated=True,
                )
            )
            tx.record_audit("photo.add_to_history", record)
        return PhotoResult("Photo added to history successfully!", record=record)

    def delete_photo(self, user: User, photo_id: int, request: Any = None) -> PhotoResult:
        with self.transition(user, request) as tx:
            record = self._load_owned(tx.user, photo_id)
            if record.is_current:
                raise InvalidPhotoOperation("Cannot delete your current profile photo. Please change it first.")
            tx.record_audit("photo.delete", record)
            # Only removed from storage if no other row still points at it
            tx.blob_deletes.append(record.photo_path)
            self.repo.delete(record)
        log.info("User %s deleted photo %s", user.id, photo_id)
        return PhotoResult("Photo deleted from history successfully!", warning=tx.warning)
