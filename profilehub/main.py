import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlmodel import Session

from .db import engine, init_db
from .auth import router as auth_router, ensure_admin_user
from .profile import router as profile_router
from .settings import router as settings_router
from .logging_utils import configure_logging
from .photo_store import PHOTO_DIR, PHOTO_PUBLIC_BASE_URL

configure_logging()
log = logging.getLogger("profilehub.main")

app = FastAPI(title="profilehub")

origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Serve stored photos when the local store is exposed under a relative path
if PHOTO_PUBLIC_BASE_URL.startswith("/"):
    os.makedirs(PHOTO_DIR, exist_ok=True)
    app.mount(PHOTO_PUBLIC_BASE_URL.rstrip("/") or "/media", StaticFiles(directory=PHOTO_DIR), name="media")


@app.get("/")
def read_root():
    return {"service": "profilehub", "status": "ok"}


@app.on_event("startup")
def on_startup():
    init_db()
    with Session(engine) as session:
        ensure_admin_user(session)
    log.info("Startup complete; photos stored in %s", PHOTO_DIR)


app.include_router(auth_router, prefix="/api")
app.include_router(profile_router, prefix="/api")
app.include_router(settings_router, prefix="/api")
