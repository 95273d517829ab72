from __future__ import annotations

from collections.abc import Callable

from sqlalchemy.orm import Session

from identity_api.core.config import Settings, get_settings
from identity_api.db.pg.session import SessionLocal


def get_session_factory() -> Callable[[], Session]:
    return SessionLocal


def get_settings_dep() -> Settings:
    return get_settings()
