from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict


class CreateRentalDto(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    assetId: Optional[int] = None
    customerId: Optional[int] = None
    ratePerMonth: Optional[float] = None
    dailyRate: Optional[float] = None
    fromDate: Optional[date] = None
    notes: Optional[str] = None


class UpdateRentalDto(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    ratePerMonth: Optional[float] = None
    dailyRate: Optional[float] = None
    fromDate: Optional[date] = None
    toDate: Optional[date] = None
    clearToDate: bool = False
    notes: Optional[str] = None


class ReturnRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    returnDate: Optional[date] = None
