from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Optional, Sequence

from rental_agency.models.agency_models import Agency, AgencySettings, AssetRental, Customer
from rental_agency.schemas.invoices import CurrencyInfo, InvoiceData, InvoiceParty, RentalItem
from rental_agency.services.billing_period import (
    calculate_days,
    days_in_period,
    filter_rentals_for_period,
    invoice_period_label,
    period_suffix,
)
from rental_agency.services.country_currency import DEFAULT_CURRENCY
from rental_agency.services.rental_validation import customer_display_name


LOGGER = logging.getLogger("rental_agency.invoices")

DEFAULT_AGENCY_NAME = "Asset Rental Co."
DEFAULT_INVOICE_PREFIX = "INV"
INVOICE_DUE_DAYS = 30
DAYS_PER_BILLING_MONTH = 30

# The built-in Helvetica face has no glyphs for these symbols.
PDF_CURRENCY_FALLBACKS = {
    "₹": "Rs ",
    "₱": "PHP ",
    "₩": "KRW ",
    "₴": "UAH ",
    "₺": "TRY ",
    "₫": "VND ",
    "৳": "BDT ",
    "₨": "Rs ",
}

_BASE36_DIGITS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


class NoRentalsForPeriodError(ValueError):
    pass


def pdf_currency_symbol(symbol: str | None) -> str:
    raw = symbol or "$"
    return PDF_CURRENCY_FALLBACKS.get(raw, raw)


def _base36(value: int) -> str:
    if value <= 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def _timestamp_token(now: datetime) -> str:
    return _base36(int(now.timestamp() * 1000))


def generate_invoice_number(
    prefix: str | None,
    customer_id: int,
    period_month: Optional[int] = None,
    period_year: Optional[int] = None,
    now: Optional[datetime] = None,
) -> str:
    token = prefix or DEFAULT_INVOICE_PREFIX
    suffix = period_suffix(period_month, period_year) or _timestamp_token(now or datetime.now())
    return f"{token}-{customer_id}-{suffix}"


def resolve_daily_rate(rental: AssetRental) -> float:
    if rental.DailyRate is not None:
        return float(rental.DailyRate)
    return float(rental.RatePerMonth or 0) / DAYS_PER_BILLING_MONTH


def format_agency_address(agency: Agency | None) -> str:
    if agency is None:
        return ""
    parts = [agency.Address, agency.City, agency.StateProvince, agency.ZipPostalCode, agency.CountryRegion]
    return ", ".join(part for part in parts if part)


def _agency_party(agency: Agency | None) -> InvoiceParty:
    if agency is None:
        return InvoiceParty(name=DEFAULT_AGENCY_NAME, address="", email="", phone="")
    return InvoiceParty(
        name=agency.Name or DEFAULT_AGENCY_NAME,
        address=format_agency_address(agency),
        email=agency.ContactEmail or "",
        phone=agency.ContactPhone or "",
    )


def _customer_party(customer: Customer) -> InvoiceParty:
    return InvoiceParty(
        name=customer_display_name(customer),
        email=customer.EmailID,
        phone=customer.MobilePhone,
    )


def _rental_item(rental: AssetRental, days: int, start: date, end: date) -> RentalItem:
    spec = rental.Asset.AssetSpec if rental.Asset else None
    daily_rate = resolve_daily_rate(rental)
    return RentalItem(
        id=rental.RentalID,
        assetDescription=(spec.Description if spec else None) or "Unknown Asset",
        assetModel=(spec.Model if spec else None) or "",
        manufacturer=(spec.Manufacturer.Description if spec and spec.Manufacturer else None) or "",
        fromDate=start,
        toDate=end,
        dailyRate=daily_rate,
        totalDays=days,
        totalAmount=round(days * daily_rate, 2),
        status="active" if rental.ToDate is None else "returned",
        returnedDate=rental.ToDate,
    )


def summarize_totals(amounts: Sequence[float], tax_rate: float) -> tuple[float, float, float]:
    subtotal = round(sum(amounts), 2)
    tax = round(subtotal * (tax_rate / 100), 2)
    total = round(subtotal + tax, 2)
    return subtotal, tax, total


def _assemble(
    *,
    invoice_number: str,
    customer: Customer,
    agency: Agency | None,
    settings: AgencySettings | None,
    currency: CurrencyInfo | None,
    items: list[RentalItem],
    invoice_period: Optional[str],
    now: datetime,
) -> InvoiceData:
    tax_rate = float(settings.DefaultTaxRate or 0) if settings else 0.0
    subtotal, tax, total = summarize_totals([item.totalAmount for item in items], tax_rate)
    invoice_date = now.date()
    return InvoiceData(
        invoiceNumber=invoice_number,
        invoiceDate=invoice_date,
        dueDate=invoice_date + timedelta(days=INVOICE_DUE_DAYS),
        invoicePeriod=invoice_period,
        customer=_customer_party(customer),
        agency=_agency_party(agency),
        rentals=items,
        subtotal=subtotal,
        tax=tax,
        taxRate=tax_rate,
        total=total,
        currencySymbol=(currency or DEFAULT_CURRENCY).symbol,
    )


def build_invoice(
    customer: Customer,
    rentals: Sequence[AssetRental],
    *,
    agency: Agency | None = None,
    settings: AgencySettings | None = None,
    currency: CurrencyInfo | None = None,
    period_month: Optional[int] = None,
    period_year: Optional[int] = None,
    now: Optional[datetime] = None,
) -> InvoiceData:
    current = now or datetime.now()
    today = current.date()

    selected = filter_rentals_for_period(rentals, period_month, period_year, today)
    if not selected:
        raise NoRentalsForPeriodError("No rentals found for the selected period")

    items = []
    for rental in selected:
        proration = days_in_period(rental.FromDate, rental.ToDate, period_month, period_year, today)
        items.append(_rental_item(rental, proration.days, proration.period_start, proration.period_end))

    invoice_number = generate_invoice_number(
        settings.InvoicePrefix if settings else None,
        customer.CustomerID,
        period_month,
        period_year,
        current,
    )
    LOGGER.info(
        "Assembled invoice %s for customer %s with %d line(s)",
        invoice_number,
        customer.CustomerID,
        len(items),
    )
    return _assemble(
        invoice_number=invoice_number,
        customer=customer,
        agency=agency,
        settings=settings,
        currency=currency,
        items=items,
        invoice_period=invoice_period_label(period_month, period_year),
        now=current,
    )


def build_single_rental_invoice(
    rental: AssetRental,
    *,
    agency: Agency | None = None,
    settings: AgencySettings | None = None,
    currency: CurrencyInfo | None = None,
    now: Optional[datetime] = None,
) -> InvoiceData:
    current = now or datetime.now()
    end = rental.ToDate or current.date()
    item = _rental_item(rental, calculate_days(rental.FromDate, end), rental.FromDate, end)

    prefix = (settings.InvoicePrefix if settings else None) or DEFAULT_INVOICE_PREFIX
    invoice_number = f"{prefix}-R{rental.RentalID}-{_timestamp_token(current)}"
    return _assemble(
        invoice_number=invoice_number,
        customer=rental.Customer,
        agency=agency,
        settings=settings,
        currency=currency,
        items=[item],
        invoice_period=None,
        now=current,
    )
