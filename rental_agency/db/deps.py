from collections.abc import Generator

from .session import SessionLocalAgency


def get_agency_db() -> Generator:
    db = SessionLocalAgency()
    try:
        yield db
    finally:
        db.close()
