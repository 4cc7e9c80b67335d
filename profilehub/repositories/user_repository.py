from typing import Optional
from sqlmodel import select
from profilehub.models import User
from profilehub.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    def __init__(self, session):
        super().__init__(User, session)

    def get_by_email(self, email: str) -> Optional[User]:
        return self.session.exec(select(User).where(User.email == email)).first()

    def lock_for_update(self, user_id: int) -> Optional[User]:
        """Re-read the user row with a row lock; SQLite ignores FOR UPDATE."""
        return self.session.exec(
            select(User).where(User.id == user_id).with_for_update().execution_options(populate_existing=True)
        ).first()
