#!/usr/bin/env python3
from __future__ import annotations

import argparse
import os

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session

from rental_agency.db.base import Base
from rental_agency.models.agency_models import Agency, AuthUser, DefinedCondition
from rental_agency.services.agency_service import sync_agency_settings
from rental_agency.services.passwords import MIN_PASSWORD_LENGTH, set_password


DEFAULT_CONDITIONS = ["New", "Under Repair", "Retired", "Missing"]

DEFAULT_AGENCIES = [
    {
        "Name": "Acme Rentals",
        "ContactEmail": "contact@acmerentals.com",
        "ContactPhone": "555-0100",
        "City": "Springfield",
        "StateProvince": "IL",
        "CountryRegion": "USA",
        "user": ("admin@acmerentals.com", "Alice", "Admin"),
    },
    {
        "Name": "Global Equipment Co",
        "ContactEmail": "info@globalequipment.com",
        "ContactPhone": "555-0200",
        "City": "Portland",
        "StateProvince": "OR",
        "CountryRegion": "USA",
        "user": ("manager@globalequipment.com", "Bob", "Manager"),
    },
]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Create tables and seed demo agencies, users and defined conditions.",
    )
    parser.add_argument(
        "--db-url",
        default=os.environ.get("RENTAL_AGENCY_DB_URL", "").strip(),
        help="SQLAlchemy DB URL; defaults to RENTAL_AGENCY_DB_URL env var.",
    )
    parser.add_argument(
        "--password",
        default=os.environ.get("SEED_USER_PASSWORD", "changeme123"),
        help="Password assigned to newly created seed users.",
    )
    return parser


def seed_agency(db: Session, spec: dict, password: str) -> tuple[Agency, bool]:
    agency = db.execute(select(Agency).where(Agency.Name == spec["Name"])).scalars().first()
    created = agency is None
    if created:
        agency = Agency(**{key: value for key, value in spec.items() if key != "user"})
        db.add(agency)
        db.flush()
    sync_agency_settings(db, agency)

    email, first_name, last_name = spec["user"]
    user = db.execute(select(AuthUser).where(AuthUser.Email == email)).scalars().first()
    if user is None:
        user = AuthUser(AgencyID=agency.AgencyID, Email=email, FirstName=first_name, LastName=last_name, IsActive=True)
        set_password(user, password)
        db.add(user)

    existing = set(
        db.execute(
            select(DefinedCondition.Description).where(DefinedCondition.AgencyID == agency.AgencyID)
        ).scalars().all()
    )
    for description in DEFAULT_CONDITIONS:
        if description not in existing:
            db.add(DefinedCondition(AgencyID=agency.AgencyID, Description=description))
    return agency, created


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.db_url:
        parser.error("Missing DB URL. Set RENTAL_AGENCY_DB_URL or pass --db-url.")
    if len(args.password.strip()) < MIN_PASSWORD_LENGTH:
        parser.error(f"--password must be at least {MIN_PASSWORD_LENGTH} characters.")

    engine = create_engine(args.db_url, pool_pre_ping=True, future=True)
    Base.metadata.create_all(engine)
    with Session(engine, expire_on_commit=False) as db:
        for spec in DEFAULT_AGENCIES:
            agency, created = seed_agency(db, spec, args.password)
            print(f"OK agency_id={agency.AgencyID} name={agency.Name} created={created}")
        db.commit()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
