from __future__ import annotations

import hashlib
import hmac
import secrets

from fastapi import Depends, HTTPException, Query
from itsdangerous import BadSignature, URLSafeSerializer
from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import SESSION_SECRET
from .db import get_db, transaction
from .errors import ValidationError
from .models import User
from .validation import normalize_name

serializer = URLSafeSerializer(SESSION_SECRET, salt="coursemap")
HASH_ITERATIONS = 200_000


def hash_password(password: str, salt: str | None = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), HASH_ITERATIONS)
    return f"{salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    salt, _, expected = stored.partition("$")
    return hmac.compare_digest(hash_password(password, salt).partition("$")[2], expected)


def issue_token(user: User) -> str:
    return serializer.dumps({"user_id": user.id})


def register_user(db: Session, email: str, password: str, name: str) -> User:
    email = (email or "").strip().lower()
    if "@" not in email:
        raise ValidationError("Invalid email address")
    if len(password or "") < 8:
        raise ValidationError("Password must be at least 8 characters")
    with transaction(db):
        if db.scalar(select(User.id).where(User.email == email)):
            raise ValidationError("Email already exists")
        user = User(email=email, name=normalize_name(name), password_hash=hash_password(password))
        db.add(user)
        db.flush()
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    user = db.scalar(select(User).where(User.email == (email or "").strip().lower()))
    if not user or not verify_password(password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return user


def current_user(session_token: str = Query(...), db: Session = Depends(get_db)) -> User:
    try:
        payload = serializer.loads(session_token)
    except BadSignature as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc
    user = db.get(User, payload.get("user_id"))
    if not user:
        raise HTTPException(status_code=401, detail="Invalid user")
    return user
