from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict


class CurrencyInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    symbol: str
    name: str


class InvoiceParty(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    address: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class RentalItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    assetDescription: str
    assetModel: str = ""
    manufacturer: str = ""
    fromDate: date
    toDate: date
    dailyRate: float
    totalDays: int
    totalAmount: float
    status: Literal["active", "returned"]
    returnedDate: Optional[date] = None


class InvoiceData(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    invoiceNumber: str
    invoiceDate: date
    dueDate: date
    invoicePeriod: Optional[str] = None
    customer: InvoiceParty
    agency: InvoiceParty
    rentals: List[RentalItem] = []
    subtotal: float
    tax: float
    taxRate: float
    total: float
    notes: Optional[str] = None
    currencySymbol: str = "$"
