from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Response body serialized with camelCase keys for the browser client."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HealthResponse(ApiModel):
    status: str
    service: str
    environment: str
    version: str
    timestamp: datetime
    uptime_seconds: float
    session_store: str


class OperationResponse(ApiModel):
    success: bool
    message: str
    timestamp: datetime
    details: dict[str, Any] | None = None
