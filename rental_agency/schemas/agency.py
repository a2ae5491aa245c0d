from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AgencySettingsUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    defaultTaxRate: Optional[float] = Field(default=None, ge=0, le=100)
    invoicePrefix: Optional[str] = Field(default=None, max_length=20)


class AuthLoginRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str | None = None
    password: str | None = None
