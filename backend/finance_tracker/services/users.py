from __future__ import annotations

import logging
from typing import Any, Optional

from ..auth_utils import hash_password, verify_password
from ..errors import ConflictError, NotFoundError, ValidationError
from ..ids import next_id
from ..schemas import RegisterRequest
from ..store import USERS, Record, RecordStore, timestamp

logger = logging.getLogger(__name__)


def public_user(row: Record) -> dict[str, Any]:
    return {key: value for key, value in row.items() if key != "password"}


def normalize_email(value: Optional[str]) -> str:
    email = (value or "").strip().lower()
    if not email:
        raise ValidationError("email is required", field="email")
    if "@" not in email or "." not in email.split("@")[-1]:
        raise ValidationError("invalid email format", field="email")
    return email


class UserService:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def register(self, payload: RegisterRequest) -> Record:
        email = normalize_email(payload.email)
        if not payload.password:
            raise ValidationError("password is required", field="password")
        with self.store.locked(USERS):
            users = self.store.load_all(USERS)
            if any(u.get("email", "").lower() == email for u in users):
                raise ConflictError("a user with this email already exists")
            now = timestamp()
            row = {
                "id": next_id(users),
                "name": (payload.name or "").strip() or None,
                "email": email,
                "password": hash_password(payload.password),
                "created_at": now,
                "updated_at": now,
            }
            users.append(row)
            self.store.save_all(USERS, users)
        logger.info("user %s registered", row["id"])
        return public_user(row)

    def authenticate(self, email: str, password: str) -> Optional[Record]:
        wanted = (email or "").strip().lower()
        for row in self.store.load_all(USERS):
            if row.get("email") == wanted:
                if verify_password(password, row.get("password", "")):
                    return public_user(row)
                return None
        return None

    def get(self, user_id: int) -> Record:
        for row in self.store.load_all(USERS):
            if row.get("id") == user_id:
                return public_user(row)
        raise NotFoundError(f"user not found: {user_id}")
