import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from profilehub.audit_utils import diff_dicts, log_event
from profilehub.auth import verify_password
from profilehub.errors import ProfileValidationError
from profilehub.models import User
from profilehub.photo_store import PhotoStore
from profilehub.presenters import get_display_timezone, history_to_out, user_to_out
from profilehub.repositories.photo_history_repository import PhotoHistoryRepository
from profilehub.repositories.user_repository import UserRepository
from profilehub.services.photo_history_service import PhotoHistoryService
from profilehub.validators import clean_profile_fields

log = logging.getLogger("profilehub.profile")


class ProfileService:
    def __init__(self, session: Session, store: PhotoStore, photos: PhotoHistoryService):
        self.session = session
        self.store = store
        self.photos = photos
        self.users = UserRepository(session)
        self.history = PhotoHistoryRepository(session)

    def get_profile(self, user: User, request: Any = None) -> Dict[str, Any]:
        records = self.photos.list_history(user, request)
        tz = get_display_timezone(self.session)
        return {
            "user": user_to_out(user, self.store, tz),
            "photo_history": history_to_out(records, self.store, tz),
            "timezone": tz,
        }

    def update_profile(self, user: User, payload: Optional[Dict[str, Any]], request: Any = None) -> Dict[str, Any]:
        fields = clean_profile_fields(payload)
        other = self.users.get_by_email(fields["email"])
        if other is not None and other.id != user.id:
            raise ProfileValidationError("The email has already been taken.")

        before = {"name": user.name, "email": user.email}
        if fields["email"] != (user.email or "").lower():
            # A new address has to be verified again
            user.email_verified_at = None
        user.name = fields["name"]
        user.email = fields["email"]
        user.updated_at = datetime.utcnow()
        try:
            self.users.save(user)
            self.session.commit()
        except IntegrityError:
            # Another request claimed the address after the lookup above
            self.session.rollback()
            raise ProfileValidationError("The email has already been taken.")
        self.session.refresh(user)

        after = {"name": user.name, "email": user.email}
        changes = diff_dicts(before, after)
        if changes:
            log_event(
                self.session,
                action="user.profile_update",
                entity_type="user",
                entity_id=user.id,
                entity_name=user.username,
                before=before,
                after=after,
                metadata={"changed_keys": list(changes.keys())},
                request=request,
                user=user,
            )
        return user_to_out(user, self.store, get_display_timezone(self.session))

    def delete_account(self, user: User, password: Optional[str], request: Any = None) -> Optional[str]:
        """Delete the user, their ledger and their photo files.

        Returns a warning when some files could not be removed.
        """
        if not password:
            raise ProfileValidationError("The password field is required.")
        if not verify_password(password, user.password_hash):
            raise ProfileValidationError("The password is incorrect.")

        user_id = user.id
        username = user.username
        with self.photos.transition(user, request) as tx:
            paths = self.history.delete_all_for_user(tx.user.id)
            tx.blob_deletes.extend(paths)
            self.users.delete(tx.user)
        log.info("Deleted account %s (%s) and %d photo record(s)", username, user_id, len(paths))
        log_event(
            self.session,
            action="user.delete",
            entity_type="user",
            entity_id=user_id,
            entity_name=username,
            metadata={"photos_removed": len(paths)},
            request=request,
            actor_user_id=user_id,
            actor_username=username,
        )
        return tx.warning
