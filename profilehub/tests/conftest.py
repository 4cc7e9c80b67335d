import struct
import zlib
from typing import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from profilehub.auth import get_current_user, get_password_hash, router as auth_router
from profilehub.db import get_session
from profilehub.models import User
from profilehub.photo_store import LocalPhotoStore, get_photo_store
from profilehub.profile import router as profile_router
from profilehub.services.photo_history_service import PhotoHistoryService
from profilehub.settings import router as settings_router
from profilehub.user_locks import LocalUserLocks, set_user_locks

PASSWORD = "secret123"


def _png(width: int = 1, height: int = 1) -> bytes:
    def chunk(kind: bytes, data: bytes) -> bytes:
        return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", zlib.crc32(kind + data) & 0xFFFFFFFF)

    raw = b"".join(b"\x00" + b"\x00\x00\x00" * width for _ in range(height))
    return (
        b"\x89PNG\r\n\x1a\n"
        + chunk(b"IHDR", struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0))
        + chunk(b"IDAT", zlib.compress(raw))
        + chunk(b"IEND", b"")
    )


PNG_BYTES = _png()
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00\xff\xd9"


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture()
def session(engine) -> Generator[Session, None, None]:
    with Session(engine) as s:
        yield s


@pytest.fixture(autouse=True)
def user_locks():
    locks = LocalUserLocks()
    set_user_locks(locks)
    yield locks
    set_user_locks(None)


@pytest.fixture()
def store(tmp_path) -> LocalPhotoStore:
    return LocalPhotoStore(str(tmp_path / "photos"), base_url="/media")


@pytest.fixture()
def make_user(session):
    counter = {"n": 0}

    def _make(username=None, *, avatar_path=None, is_admin=False, email=None):
        counter["n"] += 1
        username = username or f"user{counter['n']}"
        user = User(
            username=username,
            password_hash=get_password_hash(PASSWORD),
            name=username.title(),
            email=email or f"{username}@example.com",
            avatar_path=avatar_path,
            is_admin=is_admin,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make


@pytest.fixture()
def user(make_user) -> User:
    return make_user("alice")


@pytest.fixture()
def service(session, store) -> PhotoHistoryService:
    return PhotoHistoryService(session, store)


@pytest.fixture()
def password() -> str:
    return PASSWORD


@pytest.fixture()
def png_bytes() -> bytes:
    return PNG_BYTES


@pytest.fixture()
def jpeg_bytes() -> bytes:
    return JPEG_BYTES


def _build_app(session, store) -> FastAPI:
    app = FastAPI()
    app.include_router(auth_router, prefix="/api")
    app.include_router(profile_router, prefix="/api")
    app.include_router(settings_router, prefix="/api")

    def _get_session_override():
        yield session

    app.dependency_overrides[get_session] = _get_session_override
    app.dependency_overrides[get_photo_store] = lambda: store
    return app


@pytest.fixture()
def app(session, store, user) -> FastAPI:
    app = _build_app(session, store)

    # Token handling is covered by test_auth; resolve the signed-in user directly.
    def _get_current_user_override():
        return session.get(User, app.state.current_user_id)

    app.state.current_user_id = user.id
    app.dependency_overrides[get_current_user] = _get_current_user_override
    return app


@pytest.fixture()
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def auth_client(session, store) -> Generator[TestClient, None, None]:
    with TestClient(_build_app(session, store)) as c:
        yield c
