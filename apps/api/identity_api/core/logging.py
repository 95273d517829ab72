from __future__ import annotations

import logging

from identity_api.core.config import get_settings

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str | None = None) -> None:
    resolved = (level or get_settings().log_level).upper()
    root = logging.getLogger()
    if not any(getattr(handler, "_identity_api", False) for handler in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._identity_api = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(resolved)
