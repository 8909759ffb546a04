"""PassKit web service schemas (Apple's wire format, camelCase as-is)."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DeviceRegistrationRequest(BaseModel):
    push_token: str = Field(alias="pushToken", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class SerialNumbersResponse(BaseModel):
    serial_numbers: list[str] = Field(alias="serialNumbers")
    last_updated: Optional[str] = Field(None, alias="lastUpdated")

    model_config = ConfigDict(populate_by_name=True)


class DeviceLogRequest(BaseModel):
    logs: list[str] = []
