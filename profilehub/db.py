from sqlmodel import SQLModel, create_engine, Session
import os

DB_PATH = os.path.join(os.path.dirname(__file__), "app.db")
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DB_PATH}")

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, echo=False, connect_args=_connect_args)

def init_db():
    # Ensure models are imported so SQLModel is aware of all tables
    from .models import (
        User,
        ProfilePhotoHistory,
        AuditEvent,
        Setting,
    )  # noqa: F401
    SQLModel.metadata.create_all(engine)

    # Lightweight dev migration for SQLite (create_all does not add columns).
    if not DATABASE_URL.startswith("sqlite"):
        return
    try:
        with engine.connect() as conn:
            rows = conn.exec_driver_sql("PRAGMA table_info(profile_photo_history)").fetchall()
            cols = {r[1] for r in rows}  # name is index 1
            if "is_estimated" not in cols:
                conn.exec_driver_sql("ALTER TABLE profile_photo_history ADD COLUMN is_estimated INTEGER DEFAULT 0")
            if "updated_at" not in cols:
                conn.exec_driver_sql("ALTER TABLE profile_photo_history ADD COLUMN updated_at TIMESTAMP")
            conn.commit()
    except Exception:
        # best-effort; dev DB can be reset by deleting profilehub/app.db
        pass

def get_session():
    with Session(engine) as session:
        yield session
