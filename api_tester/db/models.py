import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class Record(BaseModel):
    """Base for stored rows; serialized with camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class User(Record):
    """The signed-in user, resolved by the session layer."""

    id: str
    email: Optional[str] = None
    name: Optional[str] = None


class Collection(Record):
    """A named group of saved requests."""

    id: str
    user_id: str
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    created_at: datetime.datetime = Field(default_factory=utcnow)
    updated_at: datetime.datetime = Field(default_factory=utcnow)


class ApiRequest(Record):
    """A saved HTTP request definition."""

    id: str
    collection_id: Optional[str] = None
    user_id: str
    name: str
    method: str
    url: str
    query_params_json: Optional[str] = None
    headers_json: Optional[str] = None
    body_mode: Optional[str] = None  # "json", "form", "raw", ...
    body_content: Optional[str] = None
    auth_mode: Optional[str] = None  # "none", "bearer", ...
    auth_config_json: Optional[str] = None
    created_at: datetime.datetime = Field(default_factory=utcnow)
    updated_at: datetime.datetime = Field(default_factory=utcnow)


class RequestRun(Record):
    """One logged execution of a saved request."""

    id: str
    request_id: str
    user_id: str
    started_at: datetime.datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime.datetime] = None
    status_code: Optional[int] = None
    status_text: Optional[str] = None
    duration_ms: Optional[float] = None
    request_headers_json: Optional[str] = None
    response_headers_json: Optional[str] = None
    response_body: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime.datetime = Field(default_factory=utcnow)
