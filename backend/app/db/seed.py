from __future__ import annotations

import logging

from sqlalchemy import select

from backend.app.core.config import get_settings
from backend.app.core.logging import configure_logging
from backend.app.db.session import SessionLocal
from backend.app.db.models.models_v1 import Location, User
from backend.app.db.models.core_types import Role

logger = logging.getLogger(__name__)


def run_seed():
    db = SessionLocal()
    try:
        # 1) Emplacement principal
        location = db.scalar(select(Location).where(Location.name == "MAGASIN"))
        if not location:
            location = Location(name="MAGASIN", description="Magasin principal")
            db.add(location)
            db.commit()

        # 2) Admin (acteur par défaut des requêtes sans X-User-Id)
        user = db.scalar(select(User).where(User.name == "ADMIN"))
        if not user:
            user = User(
                id=get_settings().default_actor_id,
                name="ADMIN",
                role=Role.admin,
                active=True,
            )
            db.add(user)
            db.commit()

        logger.info("SEED OK: location=MAGASIN, user=ADMIN")
    finally:
        db.close()


if __name__ == "__main__":
    configure_logging(get_settings().log_level)
    run_seed()
