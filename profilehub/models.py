from typing import Optional
from datetime import datetime
from sqlalchemy import Index
from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)
    password_hash: str
    is_admin: bool = False
    is_active: bool = True
    name: Optional[str] = None
    email: Optional[str] = Field(default=None, index=True, unique=True)
    email_verified_at: Optional[datetime] = None
    # Denormalized copy of the current ProfilePhotoHistory.photo_path
    avatar_path: Optional[str] = None
    avatar_updated_at: Optional[datetime] = Field(default=None, index=True)
    token_version: int = Field(default=1)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class ProfilePhotoHistory(SQLModel, table=True):
    __tablename__ = "profile_photo_history"
    __table_args__ = (
        Index("ix_profile_photo_history_user_id_is_current", "user_id", "is_current"),
        # Ids of deleted photos must never be handed to new ones
        {"sqlite_autoincrement": True},
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    photo_path: str
    used_from: Optional[datetime] = None
    used_until: Optional[datetime] = None
    is_current: bool = Field(default=False)
    # used_from was inferred (backfill / manual add), not observed
    is_estimated: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class AuditEvent(SQLModel, table=True):
    __tablename__ = "audit_events"
    id: Optional[int] = Field(default=None, primary_key=True)
    timestamp: str = Field(index=True)
    actor_user_id: Optional[int] = Field(default=None, index=True)
    actor_username: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    action: str = Field(index=True)
    entity_type: Optional[str] = Field(default=None, index=True)
    entity_id: Optional[str] = Field(default=None, index=True)
    entity_name: Optional[str] = None
    before_data: Optional[str] = None
    after_data: Optional[str] = None
    details: Optional[str] = None


class Setting(SQLModel, table=True):
    __tablename__ = "settings"
    id: Optional[int] = Field(default=None, primary_key=True)
    key: str = Field(index=True, unique=True)
    value: str
    type: str  # string | int | bool | json
    scope: str = Field(default="global")
    updated_by_user_id: int
    updated_at: str = Field(index=True)
