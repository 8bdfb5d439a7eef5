# utils/tokenJWT.py
from jose import jwt, JWTError
from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from models.users import User
from utils.errors import UnauthenticatedError
from utils.permissions import Actor, build_actor

SESSION_COOKIE = "authToken"

# Generate a new session token for the given e-mail identity
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

# Resolve an opaque session token to an e-mail; expired or broken tokens give None
def resolve_session(token: Optional[str]) -> Optional[str]:
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    return payload.get("sub")

# Session cookie first, Authorization header as a fallback for API clients
def _token_from_request(request: Request) -> Optional[str]:
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        return token
    auth = request.headers.get("Authorization") or ""
    if auth.lower().startswith("bearer "):
        return auth[7:].strip()
    return None

# Retrieve the currently authenticated user row
def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    email = resolve_session(_token_from_request(request))
    if email is None:
        raise UnauthenticatedError()

    user = db.query(User).filter(User.email == email).first()
    if user is None:
        raise UnauthenticatedError()
    return user

# Explicit identity + capability context handed to the workflows
def get_current_actor(current_user: User = Depends(get_current_user)) -> Actor:
    return build_actor(current_user)
