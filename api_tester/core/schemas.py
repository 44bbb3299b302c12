"""Input models for the actions.

Keys are accepted in camelCase (as sent by the web client) or snake_case.
Update inputs distinguish an omitted field from one explicitly set to null:
only fields present in the payload are written.
"""

import datetime
from typing import Any, ClassVar, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ..db.models import utcnow
from ..db.repositories import COLLECTION_MUTABLE_FIELDS, REQUEST_MUTABLE_FIELDS
from ..utils.validators import ensure_utc, normalize_http_method, validate_json_text

NOTHING_TO_UPDATE = "At least one field must be provided to update."

JSON_FIELDS = ("query_params_json", "headers_json", "auth_config_json")


class ActionInput(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PartialUpdate(ActionInput):
    """Base for update inputs: at least one mutable field must be present."""

    mutable_fields: ClassVar[Tuple[str, ...]] = ()
    non_nullable_fields: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode="after")
    def check_fields_present(self):
        present = self.model_fields_set & set(self.mutable_fields)
        if not present:
            raise ValueError(NOTHING_TO_UPDATE)
        for name in self.non_nullable_fields:
            if name in present and getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} cannot be null.")
        return self

    def changes(self) -> Dict[str, Any]:
        """Return only the mutable fields present in the payload."""
        return {name: getattr(self, name) for name in self.mutable_fields if name in self.model_fields_set}


class CreateCollectionInput(ActionInput):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    icon: Optional[str] = None


class UpdateCollectionInput(PartialUpdate):
    mutable_fields: ClassVar[Tuple[str, ...]] = COLLECTION_MUTABLE_FIELDS
    non_nullable_fields: ClassVar[Tuple[str, ...]] = ("name",)

    id: str = Field(min_length=1)
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    icon: Optional[str] = None


class ListCollectionsInput(ActionInput):
    pass


class CollectionIdInput(ActionInput):
    id: str = Field(min_length=1)


class _RequestFields(ActionInput):
    @field_validator("method", check_fields=False)
    @classmethod
    def method_is_token(cls, v: Optional[str]) -> Optional[str]:
        return normalize_http_method(v)

    @field_validator(*JSON_FIELDS, check_fields=False)
    @classmethod
    def json_is_well_formed(cls, v: Optional[str]) -> Optional[str]:
        return validate_json_text(v)


class CreateRequestInput(_RequestFields):
    collection_id: Optional[str] = None
    name: str = Field(min_length=1)
    method: str = Field(min_length=1)
    url: str = Field(min_length=1)
    query_params_json: Optional[str] = None
    headers_json: Optional[str] = None
    body_mode: Optional[str] = None
    body_content: Optional[str] = None
    auth_mode: Optional[str] = None
    auth_config_json: Optional[str] = None


class UpdateRequestInput(_RequestFields, PartialUpdate):
    mutable_fields: ClassVar[Tuple[str, ...]] = REQUEST_MUTABLE_FIELDS
    non_nullable_fields: ClassVar[Tuple[str, ...]] = ("name", "method", "url")

    id: str = Field(min_length=1)
    collection_id: Optional[str] = None
    name: Optional[str] = Field(None, min_length=1)
    method: Optional[str] = Field(None, min_length=1)
    url: Optional[str] = Field(None, min_length=1)
    query_params_json: Optional[str] = None
    headers_json: Optional[str] = None
    body_mode: Optional[str] = None
    body_content: Optional[str] = None
    auth_mode: Optional[str] = None
    auth_config_json: Optional[str] = None


class RequestIdInput(ActionInput):
    id: str = Field(min_length=1)


class ListRequestsInput(ActionInput):
    collection_id: Optional[str] = None


class LogRequestRunInput(ActionInput):
    request_id: str = Field(min_length=1)
    started_at: Optional[datetime.datetime] = None
    completed_at: Optional[datetime.datetime] = None
    status_code: Optional[int] = Field(None, ge=100, le=599)
    status_text: Optional[str] = None
    duration_ms: Optional[float] = Field(None, ge=0)
    request_headers_json: Optional[str] = None
    response_headers_json: Optional[str] = None
    response_body: Optional[str] = None
    error_message: Optional[str] = None

    @field_validator("started_at", "completed_at")
    @classmethod
    def as_utc(cls, v: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
        return ensure_utc(v)

    @field_validator("request_headers_json", "response_headers_json")
    @classmethod
    def json_is_well_formed(cls, v: Optional[str]) -> Optional[str]:
        return validate_json_text(v)

    @model_validator(mode="after")
    def completed_after_started(self):
        # The start defaults to now here so the check sees the stored value.
        if self.started_at is None:
            self.started_at = utcnow()
        if self.completed_at and self.completed_at < self.started_at:
            raise ValueError("completedAt must not be earlier than startedAt.")
        return self


class ListRequestRunsInput(ActionInput):
    request_id: str = Field(min_length=1)
