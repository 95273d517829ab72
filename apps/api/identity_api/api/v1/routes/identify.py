from __future__ import annotations

from collections.abc import Callable

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from identity_api.api.v1.deps import get_session_factory, get_settings_dep
from identity_api.api.v1.schemas import ConsolidatedContact, ErrorResponse, IdentifyRequest, IdentifyResponse
from identity_api.core.config import Settings
from identity_api.services.identity.transactions import identify_in_transaction

router = APIRouter(tags=["identify"])


@router.post(
    "/identify",
    response_model=IdentifyResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    },
)
def identify(
    payload: IdentifyRequest,
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    settings: Settings = Depends(get_settings_dep),
) -> IdentifyResponse:
    result = identify_in_transaction(
        session_factory,
        payload.email,
        payload.phone_number,
        serializable=settings.identify_serializable,
        max_attempts=settings.identify_max_attempts,
    )
    return IdentifyResponse(
        contact=ConsolidatedContact(
            primary_contact_id=result.primary_contact_id,
            emails=result.emails,
            phone_numbers=result.phone_numbers,
            secondary_contact_ids=result.secondary_contact_ids,
        )
    )
