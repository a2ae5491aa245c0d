from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from rental_agency.models.agency_models import AssetRental


@dataclass(frozen=True)
class RentalInterval:
    rental_id: int
    from_date: date
    to_date: Optional[date]
    customer_name: str = ""


@dataclass(frozen=True)
class OverlapResult:
    has_overlap: bool
    conflict: Optional[RentalInterval] = None

    def to_dict(self) -> dict:
        if not self.conflict:
            return {"hasOverlap": self.has_overlap}
        return {
            "hasOverlap": self.has_overlap,
            "overlappingRental": {
                "id": self.conflict.rental_id,
                "fromDate": self.conflict.from_date,
                "toDate": self.conflict.to_date,
                "customerName": self.conflict.customer_name,
            },
        }


def customer_display_name(customer) -> str:
    if customer is None:
        return ""
    return f"{customer.FirstName or ''} {customer.LastName or ''}".strip()


def interval_from_rental(rental: AssetRental) -> RentalInterval:
    return RentalInterval(
        rental_id=rental.RentalID,
        from_date=rental.FromDate,
        to_date=rental.ToDate,
        customer_name=customer_display_name(rental.Customer),
    )


def rentals_overlap(
    existing_from: date,
    existing_to: Optional[date],
    from_date: date,
    to_date: Optional[date],
) -> bool:
    """Closed-interval intersection where a missing end date means "ongoing"."""
    if existing_to is None:
        return to_date is None or to_date >= existing_from
    if to_date is None:
        return from_date <= existing_to
    return from_date <= existing_to and to_date >= existing_from


def check_rental_overlap(
    existing: Iterable[RentalInterval],
    from_date: date,
    to_date: Optional[date],
) -> OverlapResult:
    """Return the first rental in ``existing`` that collides with [from_date, to_date].

    Callers are expected to have already excluded the rental being edited and to
    have validated ``from_date <= to_date``.
    """
    for interval in existing:
        if rentals_overlap(interval.from_date, interval.to_date, from_date, to_date):
            return OverlapResult(has_overlap=True, conflict=interval)
    return OverlapResult(has_overlap=False)


def find_rental_overlap(
    db: Session,
    asset_id: int,
    from_date: date,
    to_date: Optional[date],
    exclude_rental_id: int | None = None,
) -> OverlapResult:
    stmt = (
        select(AssetRental)
        .options(selectinload(AssetRental.Customer))
        .where(AssetRental.AssetID == asset_id)
        .order_by(AssetRental.RentalID)
    )
    if exclude_rental_id:
        stmt = stmt.where(AssetRental.RentalID != exclude_rental_id)

    rentals = db.execute(stmt).scalars().all()
    return check_rental_overlap((interval_from_rental(rental) for rental in rentals), from_date, to_date)


def format_date_range(from_date: date, to_date: Optional[date]) -> str:
    start = from_date.isoformat()
    if to_date is None:
        return f"{start} - ongoing"
    return f"{start} - {to_date.isoformat()}"
