import logging
import os
from datetime import datetime, timedelta
from hashlib import sha256
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from fastapi.security import OAuth2PasswordRequestForm
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlmodel import Session, select

from profilehub.db import get_session
from profilehub.models import User
from profilehub.audit_utils import log_event
from profilehub.errors import ProfileValidationError
from profilehub.validators import clean_email, clean_name, clean_password, clean_username

router = APIRouter(prefix="/auth", tags=["auth"])

log = logging.getLogger("profilehub.auth")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "480"))
_BCRYPT_MAX_INPUT_BYTES = 72


def _prepare_password_input(password: str) -> str:
    """Pre-hash passwords that exceed bcrypt's 72-byte input limit."""
    password = password or ""
    raw_bytes = password.encode("utf-8")
    if len(raw_bytes) > _BCRYPT_MAX_INPUT_BYTES:
        return sha256(raw_bytes).hexdigest()
    return password


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not plain_password or not hashed_password:
        return False
    try:
        return pwd_context.verify(_prepare_password_input(plain_password), hashed_password)
    except ValueError:
        # Malformed or unknown hash format
        return False


def get_password_hash(password: str) -> str:
    return pwd_context.hash(_prepare_password_input(password))


def _utcnow() -> datetime:
    return datetime.utcnow()


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = _utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def token_for(user: User) -> str:
    return create_access_token({"sub": user.username, "token_version": getattr(user, "token_version", 1) or 1})


def get_current_user(
    session: Session = Depends(get_session),
    credentials: HTTPAuthorizationCredentials = Depends(HTTPBearer()),
) -> User:
    invalid = HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    try:
        payload = jwt.decode(credentials.credentials, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise invalid
    username = payload.get("sub")
    token_version = payload.get("token_version")
    if not username or token_version is None:
        raise invalid
    user = session.exec(select(User).where(User.username == username)).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")
    if int(token_version) != int(user.token_version or 1):
        raise invalid
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not getattr(user, "is_admin", False):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin privileges required")
    return user


@router.post("/login")
def login(form_data: OAuth2PasswordRequestForm = Depends(), session: Session = Depends(get_session)):
    user = session.exec(select(User).where(User.username == form_data.username)).first()
    # Generic error to avoid account enumeration
    if not user or not verify_password(form_data.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")
    return {"access_token": token_for(user), "token_type": "bearer"}


@router.post("/register", status_code=201)
def register(payload: dict, request: Request, session: Session = Depends(get_session)):
    try:
        username = clean_username(payload.get("username"))
        password = clean_password(payload.get("password"))
        name = clean_name(payload.get("name"))
        email = clean_email(payload.get("email"))
    except ProfileValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if session.exec(select(User).where(User.username == username)).first():
        raise HTTPException(status_code=400, detail="The username has already been taken.")
    if session.exec(select(User).where(User.email == email)).first():
        raise HTTPException(status_code=400, detail="The email has already been taken.")

    user = User(
        username=username,
        password_hash=get_password_hash(password),
        name=name,
        email=email,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    log.info("Registered user %s", user.username)
    log_event(
        session,
        action="user.register",
        entity_type="user",
        entity_id=user.id,
        entity_name=user.username,
        after={"username": user.username, "email": user.email},
        request=request,
        user=user,
    )
    return {"access_token": token_for(user), "token_type": "bearer"}


def ensure_admin_user(session: Session) -> Optional[User]:
    """Seed an admin account when ADMIN_PASSWORD is configured."""
    password = os.getenv("ADMIN_PASSWORD")
    if not password:
        return None
    existing = session.exec(select(User).where(User.username == "admin")).first()
    if existing:
        return existing
    admin_user = User(
        username="admin",
        password_hash=get_password_hash(password),
        name="Administrator",
        is_admin=True,
    )
    session.add(admin_user)
    session.commit()
    session.refresh(admin_user)
    return admin_user
