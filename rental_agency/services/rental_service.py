from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from rental_agency.models.agency_models import Asset, AssetRental
from rental_agency.services.catalog_service import serialize_asset, serialize_customer


class RentalAlreadyReturnedError(ValueError):
    def __init__(self, returned_on: date):
        self.returned_on = returned_on
        super().__init__("Asset has already been returned")


def lock_asset(db: Session, asset_id: int, agency_id: int) -> Asset | None:
    # Serializes overlap check + write per asset; no-op on dialects without row locks.
    return db.execute(
        select(Asset)
        .where(Asset.AssetID == asset_id)
        .where(Asset.AgencyID == agency_id)
        .with_for_update()
    ).scalars().first()


def apply_return(rental: AssetRental, return_date: date | None = None) -> date:
    if rental.ToDate is not None:
        raise RentalAlreadyReturnedError(rental.ToDate)
    returned_on = return_date or date.today()
    if returned_on < rental.FromDate:
        raise ValueError("Return date cannot be before rental start date")
    rental.ToDate = returned_on
    rental.UpdatedDate = datetime.now()
    return returned_on


def serialize_rental(rental: AssetRental, include_customer: bool = True) -> dict:
    payload = {
        "id": rental.RentalID,
        "assetId": rental.AssetID,
        "customerId": rental.CustomerID,
        "ratePerMonth": float(rental.RatePerMonth) if rental.RatePerMonth is not None else None,
        "dailyRate": float(rental.DailyRate) if rental.DailyRate is not None else None,
        "fromDate": rental.FromDate,
        "toDate": rental.ToDate,
        "status": "active" if rental.ToDate is None else "returned",
        "notes": rental.Notes,
        "createdDate": rental.CreatedDate,
        "updatedDate": rental.UpdatedDate,
        "asset": serialize_asset(rental.Asset) if rental.Asset else None,
    }
    if include_customer:
        payload["customer"] = serialize_customer(rental.Customer) if rental.Customer else None
    return payload
