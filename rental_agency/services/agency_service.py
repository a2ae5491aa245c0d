from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session

from rental_agency.models.agency_models import Agency, AgencySettings
from rental_agency.schemas.invoices import CurrencyInfo
from rental_agency.services.country_currency import currency_for
from rental_agency.services.invoice_service import DEFAULT_INVOICE_PREFIX


def sync_agency_settings(
    db: Session,
    agency: Agency,
    *,
    default_tax_rate: float | None = None,
    invoice_prefix: str | None = None,
) -> tuple[AgencySettings, CurrencyInfo]:
    """Create or refresh the settings row; the currency always follows the agency country."""
    currency = currency_for(agency.CountryRegion)
    settings = agency.Settings
    if settings is None:
        settings = AgencySettings(
            AgencyID=agency.AgencyID,
            DefaultTaxRate=0,
            InvoicePrefix=DEFAULT_INVOICE_PREFIX,
        )
        db.add(settings)
        agency.Settings = settings

    settings.CurrencyCode = currency.code
    settings.CurrencySymbol = currency.symbol
    settings.CurrencyName = currency.name
    if default_tax_rate is not None:
        settings.DefaultTaxRate = float(default_tax_rate)
    if invoice_prefix:
        settings.InvoicePrefix = invoice_prefix.strip().upper()
    settings.UpdatedDate = datetime.now()
    return settings, currency


def serialize_agency(agency: Agency) -> dict:
    return {
        "id": agency.AgencyID,
        "name": agency.Name,
        "contactEmail": agency.ContactEmail,
        "contactPhone": agency.ContactPhone,
        "address": agency.Address,
        "city": agency.City,
        "stateProvince": agency.StateProvince,
        "zipPostalCode": agency.ZipPostalCode,
        "countryRegion": agency.CountryRegion,
    }


def serialize_settings(settings: AgencySettings) -> dict:
    return {
        "defaultTaxRate": float(settings.DefaultTaxRate or 0),
        "invoicePrefix": settings.InvoicePrefix or DEFAULT_INVOICE_PREFIX,
    }
