from __future__ import annotations

import logging
from collections.abc import Callable

from sqlalchemy.orm import Session

from identity_api.core.errors import StoreError
from identity_api.services.identity.contact_store import ContactStore, store_errors
from identity_api.services.identity.resolver import IdentifyResult, IdentityResolver

logger = logging.getLogger(__name__)


def identify_in_transaction(
    session_factory: Callable[[], Session],
    email: str | None,
    phone_number: str | None,
    *,
    serializable: bool = True,
    max_attempts: int = 3,
) -> IdentifyResult:
    """Run one identify call in its own transaction, retrying serialization conflicts.

    Any failure rolls the whole call back. Only store errors flagged as
    retryable are attempted again, up to ``max_attempts`` in total; everything
    else propagates to the caller unchanged.
    """
    attempt = 1
    while True:
        db = session_factory()
        try:
            if serializable:
                with store_errors("begin"):
                    db.connection(execution_options={"isolation_level": "SERIALIZABLE"})
            result = IdentityResolver(ContactStore(db)).identify(email, phone_number)
            with store_errors("commit"):
                db.commit()
            return result
        except StoreError as exc:
            db.rollback()
            if not exc.retryable or attempt >= max_attempts:
                raise
            logger.warning(
                "identify_retrying_after_conflict",
                extra={"attempt": attempt, "operation": exc.operation},
            )
            attempt += 1
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
