from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IdentifyRequest(CamelModel):
    email: str | None = None
    phone_number: str | None = None

    @field_validator("phone_number", mode="before")
    @classmethod
    def _phone_number_as_text(cls, value: object) -> object:
        # Clients commonly send phone numbers as JSON numbers.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class ConsolidatedContact(CamelModel):
    primary_contact_id: int
    emails: list[str] = Field(default_factory=list)
    phone_numbers: list[str] = Field(default_factory=list)
    secondary_contact_ids: list[int] = Field(default_factory=list)


class IdentifyResponse(BaseModel):
    contact: ConsolidatedContact


class ErrorResponse(BaseModel):
    error: str
    message: str
