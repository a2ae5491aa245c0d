import os

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


load_dotenv()


def _require_env(name: str) -> str:
    value = os.environ.get(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


RENTAL_AGENCY_DB_URL = _require_env("RENTAL_AGENCY_DB_URL")

engine_agency = create_engine(
    RENTAL_AGENCY_DB_URL,
    pool_pre_ping=True,
    future=True,
)

SessionLocalAgency = sessionmaker(
    bind=engine_agency,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)
