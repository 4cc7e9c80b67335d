from datetime import datetime
from typing import Any, List, Optional
from sqlmodel import select, func
from profilehub.errors import PhotoNotFoundError
from profilehub.models import ProfilePhotoHistory
from profilehub.repositories.base import BaseRepository


class PhotoHistoryRepository(BaseRepository[ProfilePhotoHistory]):
    def __init__(self, session):
        super().__init__(ProfilePhotoHistory, session)

    def find_current(self, user_id: int) -> Optional[ProfilePhotoHistory]:
        # Newest first so a (never expected) duplicate resolves deterministically
        return self.session.exec(
            select(ProfilePhotoHistory)
            .where(ProfilePhotoHistory.user_id == user_id, ProfilePhotoHistory.is_current == True)  # noqa: E712
            .order_by(ProfilePhotoHistory.used_from.desc(), ProfilePhotoHistory.id.desc())
        ).first()

    def find_by_id(self, photo_id: int) -> ProfilePhotoHistory:
        record = self.get_by_id(photo_id)
        if record is None:
            raise PhotoNotFoundError("The selected photo could not be found.")
        return record

    def find_by_path(self, user_id: int, path: str) -> Optional[ProfilePhotoHistory]:
        return self.session.exec(
            select(ProfilePhotoHistory)
            .where(ProfilePhotoHistory.user_id == user_id, ProfilePhotoHistory.photo_path == path)
            .order_by(ProfilePhotoHistory.id.desc())
        ).first()

    def exists_by_path(self, user_id: int, path: str) -> bool:
        return self.find_by_path(user_id, path) is not None

    def count_by_path(self, path: str) -> int:
        """Number of ledger rows, across all users, that reference a blob path."""
        return self.session.exec(
            select(func.count()).select_from(ProfilePhotoHistory).where(ProfilePhotoHistory.photo_path == path)
        ).one()

    def list_by_user(self, user_id: int, newest_first: bool = True) -> List[ProfilePhotoHistory]:
        order = (
            (ProfilePhotoHistory.created_at.desc(), ProfilePhotoHistory.id.desc())
            if newest_first
            else (ProfilePhotoHistory.created_at.asc(), ProfilePhotoHistory.id.asc())
        )
        return list(
            self.session.exec(
                select(ProfilePhotoHistory).where(ProfilePhotoHistory.user_id == user_id).order_by(*order)
            ).all()
        )

    def update(self, photo_id: int, **fields: Any) -> ProfilePhotoHistory:
        record = self.find_by_id(photo_id)
        for key, value in fields.items():
            if key in ("id", "user_id", "photo_path", "created_at"):
                raise ValueError(f"{key} is immutable")
            setattr(record, key, value)
        record.updated_at = datetime.utcnow()
        return self.save(record)

    def delete_by_id(self, photo_id: int) -> None:
        self.delete(self.find_by_id(photo_id))

    def clear_current(self, user_id: int, except_id: Optional[int] = None) -> int:
        """Force is_current=false on every current row of the user but one."""
        stmt = select(ProfilePhotoHistory).where(
            ProfilePhotoHistory.user_id == user_id, ProfilePhotoHistory.is_current == True  # noqa: E712
        )
        if except_id is not None:
            stmt = stmt.where(ProfilePhotoHistory.id != except_id)
        cleared = 0
        for record in self.session.exec(stmt).all():
            record.is_current = False
            record.updated_at = datetime.utcnow()
            self.session.add(record)
            cleared += 1
        self.session.flush()
        return cleared

    def delete_all_for_user(self, user_id: int) -> List[str]:
        """Delete every ledger row of the user and return their photo paths."""
        records = self.list_by_user(user_id)
        paths = [r.photo_path for r in records]
        for r in records:
            self.session.delete(r)
        self.session.flush()
        return paths
