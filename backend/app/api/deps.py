from __future__ import annotations

from typing import Generator

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from backend.app.core.config import Settings, get_settings
from backend.app.db.session import SessionLocal
from backend.app.db.models.models_v1 import User


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_actor_id(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    x_user_id: int | None = Header(default=None, alias="X-User-Id"),
) -> int:
    """Utilisateur courant (l'authentification est gérée en amont)."""
    actor_id = x_user_id if x_user_id is not None else settings.default_actor_id
    user = db.get(User, actor_id)
    if not user or not user.active:
        raise HTTPException(status_code=403, detail="Unknown or inactive user")
    return int(user.id)
