import logging
import os
import re
import threading
import time
from datetime import date, datetime

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import func, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from starlette.middleware.sessions import SessionMiddleware

load_dotenv()

from rental_agency.db.deps import get_agency_db
from rental_agency.models.agency_models import (
    Agency,
    Asset,
    AssetCategory,
    AssetCurrentCondition,
    AssetCurrentValue,
    AssetRental,
    AssetSpec,
    AuditLog,
    Customer,
    DefinedCondition,
    Manufacturer,
)
from rental_agency.schemas.agency import AgencySettingsUpdate, AuthLoginRequest
from rental_agency.schemas.catalog import AssetCreate, AssetSpecCreate, DescriptionDto
from rental_agency.schemas.conditions import AssetConditionUpsert, AssetValueUpsert
from rental_agency.schemas.customers import REQUIRED_CUSTOMER_FIELDS, CustomerUpsert
from rental_agency.schemas.rentals import CreateRentalDto, ReturnRequest, UpdateRentalDto
from rental_agency.services.agency_service import serialize_agency, serialize_settings, sync_agency_settings
from rental_agency.services.billing_period import months_with_rentals, rental_years
from rental_agency.services.catalog_service import (
    serialize_asset,
    serialize_asset_condition,
    serialize_asset_value,
    serialize_category,
    serialize_customer,
    serialize_defined_condition,
    serialize_manufacturer,
    serialize_spec,
)
from rental_agency.services.country_currency import all_countries_with_currencies
from rental_agency.services.invoice_pdf import render_invoice_pdf
from rental_agency.services.passwords import verify_password
from rental_agency.services.invoice_service import (
    NoRentalsForPeriodError,
    build_invoice,
    build_single_rental_invoice,
)
from rental_agency.services.rental_service import (
    RentalAlreadyReturnedError,
    apply_return,
    lock_asset,
    serialize_rental,
)
from rental_agency.services.rental_validation import OverlapResult, find_rental_overlap, format_date_range
from rental_agency.services.session_service import (
    create_session,
    find_active_user,
    get_session,
    remove_session,
    session_payload_for,
)

app = FastAPI(title="Rental Agency")


def _parse_csv_env(name: str, default: str) -> list[str]:
    raw = os.environ.get(name, default)
    return [item.strip() for item in str(raw).split(",") if item.strip()]


_CORS_ALLOW_ORIGINS = _parse_csv_env(
    "CORS_ALLOW_ORIGINS",
    "http://127.0.0.1,http://localhost,http://127.0.0.1:3000,http://localhost:3000",
)
_CORS_ALLOW_CREDENTIALS = str(os.environ.get("CORS_ALLOW_CREDENTIALS", "true")).strip().lower() in {"1", "true", "yes", "on"}
if "*" in _CORS_ALLOW_ORIGINS:
    # Browsers reject wildcard origins with credentials.
    _CORS_ALLOW_CREDENTIALS = False

app.add_middleware(
    CORSMiddleware,
    allow_origins=_CORS_ALLOW_ORIGINS,
    allow_credentials=_CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(
    SessionMiddleware,
    secret_key=os.environ["SESSION_SIGNING_SECRET"].strip(),
    session_cookie="rental_agency_session",
    same_site="lax",
    https_only=False,
)

AUTH_ATTEMPT_WINDOW_SECONDS = int(os.environ.get("AUTH_ATTEMPT_WINDOW_SECONDS") or "300")
AUTH_MAX_ATTEMPTS_PER_ACCOUNT = int(os.environ.get("AUTH_MAX_ATTEMPTS_PER_ACCOUNT") or "8")
AUTH_LOCKOUT_SECONDS = int(os.environ.get("AUTH_LOCKOUT_SECONDS") or "900")
AUTH_LOGGER = logging.getLogger("rental_agency.auth")
RENTAL_LOGGER = logging.getLogger("rental_agency.rentals")
INVOICE_LOGGER = logging.getLogger("rental_agency.invoices")
_AUTH_GUARD_LOCK = threading.Lock()
_AUTH_ATTEMPTS_BY_ACCOUNT: dict[str, list[float]] = {}
_AUTH_LOCKOUT_UNTIL_BY_ACCOUNT: dict[str, float] = {}


def log_audit(
    db: Session,
    agency_id: int | None,
    entity_type: str,
    entity_id: int,
    action: str,
    details: str | None = None,
    user_id: int | None = None,
) -> None:
    db.add(
        AuditLog(
            AgencyID=agency_id,
            EntityType=entity_type,
            EntityID=entity_id,
            Action=action,
            Details=details,
            UserID=user_id,
            CreatedAt=datetime.now(),
        )
    )


def _check_login_guard(account_key: str) -> int | None:
    now_ts = time.time()
    with _AUTH_GUARD_LOCK:
        lockout_until = _AUTH_LOCKOUT_UNTIL_BY_ACCOUNT.get(account_key)
        if lockout_until and lockout_until > now_ts:
            return max(1, int(lockout_until - now_ts))
        if lockout_until:
            _AUTH_LOCKOUT_UNTIL_BY_ACCOUNT.pop(account_key, None)
    return None


def _record_login_failure(account_key: str) -> None:
    now_ts = time.time()
    cutoff = now_ts - max(AUTH_ATTEMPT_WINDOW_SECONDS, 1)
    with _AUTH_GUARD_LOCK:
        attempts = [ts for ts in _AUTH_ATTEMPTS_BY_ACCOUNT.get(account_key, []) if ts >= cutoff]
        attempts.append(now_ts)
        _AUTH_ATTEMPTS_BY_ACCOUNT[account_key] = attempts
        if len(attempts) >= max(AUTH_MAX_ATTEMPTS_PER_ACCOUNT, 1):
            _AUTH_LOCKOUT_UNTIL_BY_ACCOUNT[account_key] = now_ts + max(AUTH_LOCKOUT_SECONDS, 1)
            _AUTH_ATTEMPTS_BY_ACCOUNT.pop(account_key, None)


def _record_login_success(account_key: str) -> None:
    with _AUTH_GUARD_LOCK:
        _AUTH_ATTEMPTS_BY_ACCOUNT.pop(account_key, None)
        _AUTH_LOCKOUT_UNTIL_BY_ACCOUNT.pop(account_key, None)


def _audit_auth_event(db: Session, *, agency_id: int | None, action: str, details: str, user_id: int | None = None) -> None:
    try:
        log_audit(db, agency_id, "Auth", int(user_id or 0), action, details, user_id=user_id)
        db.commit()
    except Exception:
        AUTH_LOGGER.exception("Could not write auth audit event %s", action)
        db.rollback()


@app.get("/healthz")
def healthcheck():
    return {"status": "ok"}


@app.get("/api/healthz")
def healthcheck_api(db: Session = Depends(get_agency_db)):
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as exc:
        raise HTTPException(status_code=503, detail=f"db_unavailable: {exc}") from exc


@app.post("/api/auth/login")
def auth_login(payload: AuthLoginRequest, request: Request, db: Session = Depends(get_agency_db)):
    email = (payload.email or "").strip().lower()
    password = payload.password or ""
    if not email or not password:
        raise HTTPException(status_code=400, detail="email and password are required.")

    retry_after = _check_login_guard(email)
    if retry_after:
        AUTH_LOGGER.warning("Login throttled for %s", email)
        raise HTTPException(
            status_code=429,
            detail="Too many login attempts. Try again later.",
            headers={"Retry-After": str(retry_after)},
        )

    user = find_active_user(db, email)
    if not user or not verify_password(user, password):
        _record_login_failure(email)
        AUTH_LOGGER.info("Rejected login for %s", email)
        _audit_auth_event(
            db,
            agency_id=user.AgencyID if user else None,
            action="LoginFailed",
            details=f"Rejected login for {email}",
            user_id=user.UserID if user else None,
        )
        raise HTTPException(status_code=401, detail="Invalid credentials.")

    _record_login_success(email)
    user.LastLoginAt = datetime.now()
    session_user = session_payload_for(user)
    token = create_session(session_user)
    request.session["user"] = session_user
    request.session["token"] = token
    _audit_auth_event(db, agency_id=user.AgencyID, action="Login", details=f"Login for {email}", user_id=user.UserID)
    AUTH_LOGGER.info("User %s logged in for agency %s", user.UserID, user.AgencyID)
    return {"sessionToken": token, "user": session_user}


@app.post("/api/auth/logout")
def auth_logout(request: Request, x_session_token: str | None = Header(None, alias="X-Session-Token")):
    remove_session(x_session_token or request.session.get("token"))
    request.session.clear()
    return {"message": "Logged out"}


@app.get("/api/auth/me")
def auth_me(request: Request, x_session_token: str | None = Header(None, alias="X-Session-Token")):
    session = _require_session_or_401(request, x_session_token)
    return {"user": session}


@app.get("/api/countries")
def get_countries():
    return all_countries_with_currencies()


@app.get("/api/agency-settings")
def get_agency_settings(
    request: Request,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    agency_id = _require_agency_id(request, x_session_token)
    agency = _get_agency_or_404(db, agency_id)
    settings, currency = sync_agency_settings(db, agency)
    db.commit()
    return {
        "agency": serialize_agency(agency),
        "currency": currency.model_dump(),
        "settings": serialize_settings(settings),
    }


@app.put("/api/agency-settings")
def update_agency_settings(
    request: Request,
    payload: AgencySettingsUpdate,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    session = _require_session_or_401(request, x_session_token)
    agency_id = int(session["agencyID"])
    agency = _get_agency_or_404(db, agency_id)
    settings, currency = sync_agency_settings(
        db,
        agency,
        default_tax_rate=payload.defaultTaxRate,
        invoice_prefix=payload.invoicePrefix,
    )
    log_audit(db, agency_id, "AgencySettings", agency_id, "Update", f"Tax {settings.DefaultTaxRate}%, prefix {settings.InvoicePrefix}", user_id=session.get("userID"))
    db.commit()
    return {
        "agency": {"id": agency.AgencyID, "name": agency.Name, "countryRegion": agency.CountryRegion},
        "currency": currency.model_dump(),
        "settings": serialize_settings(settings),
    }


@app.get("/api/manufacturers")
def get_manufacturers(
    request: Request,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    _require_session_or_401(request, x_session_token)
    rows = db.execute(select(Manufacturer).order_by(Manufacturer.Description)).scalars().all()
    return [serialize_manufacturer(row) for row in rows]


@app.post("/api/manufacturers", status_code=201)
def create_manufacturer(
    request: Request,
    payload: DescriptionDto,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    session = _require_session_or_401(request, x_session_token)
    manufacturer = Manufacturer(Description=_require_description(payload))
    db.add(manufacturer)
    db.flush()
    log_audit(db, int(session["agencyID"]), "Manufacturer", manufacturer.ManufacturerID, "CreateManufacturer", manufacturer.Description, user_id=session.get("userID"))
    db.commit()
    return serialize_manufacturer(manufacturer)


@app.get("/api/asset-categories")
def get_asset_categories(
    request: Request,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    _require_session_or_401(request, x_session_token)
    rows = db.execute(select(AssetCategory).order_by(AssetCategory.Description)).scalars().all()
    return [serialize_category(row) for row in rows]


@app.post("/api/asset-categories", status_code=201)
def create_asset_category(
    request: Request,
    payload: DescriptionDto,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    session = _require_session_or_401(request, x_session_token)
    category = AssetCategory(Description=_require_description(payload))
    db.add(category)
    db.flush()
    log_audit(db, int(session["agencyID"]), "AssetCategory", category.AssetCategoryID, "CreateAssetCategory", category.Description, user_id=session.get("userID"))
    db.commit()
    return serialize_category(category)


@app.get("/api/asset-specs")
def get_asset_specs(
    request: Request,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    _require_session_or_401(request, x_session_token)
    stmt = (
        select(AssetSpec)
        .options(selectinload(AssetSpec.Manufacturer), selectinload(AssetSpec.AssetCategory))
        .order_by(AssetSpec.Description)
    )
    return [serialize_spec(spec) for spec in db.execute(stmt).scalars().all()]


@app.post("/api/asset-specs", status_code=201)
def create_asset_spec(
    request: Request,
    payload: AssetSpecCreate,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    session = _require_session_or_401(request, x_session_token)
    if not all([payload.assetCategoryId, payload.manufacturerId, payload.yearMake, (payload.model or "").strip(), (payload.description or "").strip()]):
        raise HTTPException(status_code=400, detail="All fields are required")
    if not db.get(AssetCategory, payload.assetCategoryId):
        raise HTTPException(status_code=400, detail=f"Asset category {payload.assetCategoryId} not found.")
    if not db.get(Manufacturer, payload.manufacturerId):
        raise HTTPException(status_code=400, detail=f"Manufacturer {payload.manufacturerId} not found.")

    spec = AssetSpec(
        AssetCategoryID=payload.assetCategoryId,
        ManufacturerID=payload.manufacturerId,
        YearMake=payload.yearMake,
        Model=payload.model.strip(),
        Description=payload.description.strip(),
    )
    db.add(spec)
    db.flush()
    log_audit(db, int(session["agencyID"]), "AssetSpec", spec.SpecID, "CreateAssetSpec", spec.Description, user_id=session.get("userID"))
    db.commit()
    return serialize_spec(spec)


@app.get("/api/assets")
def get_assets(
    request: Request,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    agency_id = _require_agency_id(request, x_session_token)
    stmt = (
        select(Asset)
        .options(selectinload(Asset.AssetSpec).selectinload(AssetSpec.Manufacturer))
        .options(selectinload(Asset.AssetSpec).selectinload(AssetSpec.AssetCategory))
        .where(Asset.AgencyID == agency_id)
        .order_by(Asset.CreatedDate.desc(), Asset.AssetID.desc())
    )
    return [serialize_asset(asset) for asset in db.execute(stmt).scalars().all()]


@app.post("/api/assets", status_code=201)
def create_asset(
    request: Request,
    payload: AssetCreate,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    session = _require_session_or_401(request, x_session_token)
    agency_id = int(session["agencyID"])
    if not payload.specId or not payload.acquiredDate or not payload.purchasePrice:
        raise HTTPException(status_code=400, detail="Missing required fields")
    if not db.get(AssetSpec, payload.specId):
        raise HTTPException(status_code=400, detail=f"Asset spec {payload.specId} not found.")

    asset = Asset(
        AgencyID=agency_id,
        SpecID=payload.specId,
        AcquiredDate=payload.acquiredDate,
        PurchasePrice=payload.purchasePrice,
        CreatedDate=datetime.now(),
    )
    db.add(asset)
    db.flush()
    log_audit(db, agency_id, "Asset", asset.AssetID, "CreateAsset", None, user_id=session.get("userID"))
    db.commit()
    return serialize_asset(asset)


@app.get("/api/customers")
def get_customers(
    request: Request,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    agency_id = _require_agency_id(request, x_session_token)
    stmt = (
        select(Customer)
        .options(selectinload(Customer.Rentals).selectinload(AssetRental.Asset))
        .where(Customer.AgencyID == agency_id)
        .order_by(Customer.CreatedDate.desc(), Customer.CustomerID.desc())
    )
    customers = db.execute(stmt).scalars().all()
    return [_serialize_customer_with_rentals(customer) for customer in customers]


@app.get("/api/customers/{customer_id}")
def get_customer(
    request: Request,
    customer_id: int,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    agency_id = _require_agency_id(request, x_session_token)
    customer = _get_customer_or_404(db, customer_id, agency_id)
    return _serialize_customer_with_rentals(customer)


@app.post("/api/customers", status_code=201)
def create_customer(
    request: Request,
    payload: CustomerUpsert,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    session = _require_session_or_401(request, x_session_token)
    agency_id = int(session["agencyID"])
    missing = [field for field in REQUIRED_CUSTOMER_FIELDS if not (getattr(payload, field) or "").strip()]
    if missing:
        raise HTTPException(status_code=400, detail=f"Missing required fields: {', '.join(missing)}")

    customer = Customer(AgencyID=agency_id, CreatedDate=datetime.now())
    _apply_customer_fields(customer, payload)
    db.add(customer)
    _flush_customer_or_400(db)
    log_audit(db, agency_id, "Customer", customer.CustomerID, "CreateCustomer", None, user_id=session.get("userID"))
    db.commit()
    return serialize_customer(customer)


@app.put("/api/customers/{customer_id}")
def update_customer(
    request: Request,
    customer_id: int,
    payload: CustomerUpsert,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    session = _require_session_or_401(request, x_session_token)
    agency_id = int(session["agencyID"])
    customer = _get_customer_or_404(db, customer_id, agency_id)
    _apply_customer_fields(customer, payload)
    _flush_customer_or_400(db)
    log_audit(db, agency_id, "Customer", customer_id, "UpdateCustomer", None, user_id=session.get("userID"))
    db.commit()
    return serialize_customer(customer)


@app.delete("/api/customers/{customer_id}")
def delete_customer(
    request: Request,
    customer_id: int,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    session = _require_session_or_401(request, x_session_token)
    agency_id = int(session["agencyID"])
    customer = _get_customer_or_404(db, customer_id, agency_id)
    rental_count = db.execute(
        select(func.count(AssetRental.RentalID)).where(AssetRental.CustomerID == customer_id)
    ).scalar_one()
    if rental_count > 0:
        raise HTTPException(status_code=400, detail=f"Cannot delete: Customer has {rental_count} rental(s)")

    db.delete(customer)
    log_audit(db, agency_id, "Customer", customer_id, "DeleteCustomer", None, user_id=session.get("userID"))
    db.commit()
    return {"success": True}


@app.get("/api/defined-conditions")
def get_defined_conditions(
    request: Request,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    agency_id = _require_agency_id(request, x_session_token)
    rows = db.execute(
        select(DefinedCondition)
        .where(DefinedCondition.AgencyID == agency_id)
        .order_by(DefinedCondition.DefinedConditionID)
    ).scalars().all()
    return [serialize_defined_condition(row) for row in rows]


@app.post("/api/defined-conditions", status_code=201)
def create_defined_condition(
    request: Request,
    payload: DescriptionDto,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    session = _require_session_or_401(request, x_session_token)
    agency_id = int(session["agencyID"])
    condition = DefinedCondition(AgencyID=agency_id, Description=_require_description(payload))
    db.add(condition)
    db.flush()
    log_audit(db, agency_id, "DefinedCondition", condition.DefinedConditionID, "CreateDefinedCondition", condition.Description, user_id=session.get("userID"))
    db.commit()
    return serialize_defined_condition(condition)


@app.put("/api/defined-conditions/{condition_id}")
def update_defined_condition(
    request: Request,
    condition_id: int,
    payload: DescriptionDto,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    session = _require_session_or_401(request, x_session_token)
    agency_id = int(session["agencyID"])
    condition = _get_defined_condition_or_404(db, condition_id, agency_id)
    condition.Description = _require_description(payload)
    log_audit(db, agency_id, "DefinedCondition", condition_id, "UpdateDefinedCondition", condition.Description, user_id=session.get("userID"))
    db.commit()
    return serialize_defined_condition(condition)


@app.delete("/api/defined-conditions/{condition_id}")
def delete_defined_condition(
    request: Request,
    condition_id: int,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    session = _require_session_or_401(request, x_session_token)
    agency_id = int(session["agencyID"])
    condition = _get_defined_condition_or_404(db, condition_id, agency_id)
    in_use = db.execute(
        select(func.count(AssetCurrentCondition.ConditionID))
        .where(AssetCurrentCondition.DefinedConditionID == condition_id)
    ).scalar_one()
    if in_use > 0:
        raise HTTPException(status_code=400, detail=f"Cannot delete: condition is used by {in_use} asset record(s)")
    db.delete(condition)
    log_audit(db, agency_id, "DefinedCondition", condition_id, "DeleteDefinedCondition", None, user_id=session.get("userID"))
    db.commit()
    return {"success": True}


@app.get("/api/asset-current-conditions")
def get_asset_conditions(
    request: Request,
    asset_id: int | None = Query(None, alias="assetId"),
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    agency_id = _require_agency_id(request, x_session_token)
    stmt = (
        select(AssetCurrentCondition)
        .join(Asset, Asset.AssetID == AssetCurrentCondition.AssetID)
        .options(selectinload(AssetCurrentCondition.DefinedCondition))
        .options(selectinload(AssetCurrentCondition.Asset).selectinload(Asset.AssetSpec))
        .where(Asset.AgencyID == agency_id)
        .order_by(AssetCurrentCondition.AsOnDate.desc(), AssetCurrentCondition.ConditionID.desc())
    )
    if asset_id:
        stmt = stmt.where(AssetCurrentCondition.AssetID == asset_id)
    return [serialize_asset_condition(row) for row in db.execute(stmt).scalars().all()]


@app.post("/api/asset-current-conditions", status_code=201)
def create_asset_condition(
    request: Request,
    payload: AssetConditionUpsert,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    session = _require_session_or_401(request, x_session_token)
    agency_id = int(session["agencyID"])
    if not payload.assetId or not payload.definedConditionId or not payload.asOnDate:
        raise HTTPException(status_code=400, detail="Asset ID, Condition ID, and Date are required")
    _get_asset_or_404(db, payload.assetId, agency_id)
    _get_defined_condition_or_404(db, payload.definedConditionId, agency_id)

    condition = AssetCurrentCondition(
        AssetID=payload.assetId,
        DefinedConditionID=payload.definedConditionId,
        AsOnDate=payload.asOnDate,
    )
    db.add(condition)
    db.flush()
    log_audit(db, agency_id, "AssetCondition", condition.ConditionID, "CreateAssetCondition", f"Asset {condition.AssetID} condition {condition.DefinedConditionID}", user_id=session.get("userID"))
    db.commit()
    return serialize_asset_condition(condition)


@app.put("/api/asset-current-conditions/{condition_id}")
def update_asset_condition(
    request: Request,
    condition_id: int,
    payload: AssetConditionUpsert,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    session = _require_session_or_401(request, x_session_token)
    agency_id = int(session["agencyID"])
    condition = _get_asset_record_or_404(db, AssetCurrentCondition, condition_id, agency_id)
    if payload.definedConditionId:
        _get_defined_condition_or_404(db, payload.definedConditionId, agency_id)
        condition.DefinedConditionID = payload.definedConditionId
    if payload.asOnDate:
        condition.AsOnDate = payload.asOnDate
    log_audit(db, agency_id, "AssetCondition", condition_id, "UpdateAssetCondition", None, user_id=session.get("userID"))
    db.commit()
    return serialize_asset_condition(condition)


@app.delete("/api/asset-current-conditions/{condition_id}")
def delete_asset_condition(
    request: Request,
    condition_id: int,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    session = _require_session_or_401(request, x_session_token)
    agency_id = int(session["agencyID"])
    condition = _get_asset_record_or_404(db, AssetCurrentCondition, condition_id, agency_id)
    db.delete(condition)
    log_audit(db, agency_id, "AssetCondition", condition_id, "DeleteAssetCondition", None, user_id=session.get("userID"))
    db.commit()
    return {"success": True}


@app.get("/api/asset-current-values")
def get_asset_values(
    request: Request,
    asset_id: int | None = Query(None, alias="assetId"),
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    agency_id = _require_agency_id(request, x_session_token)
    stmt = (
        select(AssetCurrentValue)
        .join(Asset, Asset.AssetID == AssetCurrentValue.AssetID)
        .options(selectinload(AssetCurrentValue.Asset).selectinload(Asset.AssetSpec))
        .where(Asset.AgencyID == agency_id)
        .order_by(AssetCurrentValue.AsOnDate.desc(), AssetCurrentValue.ValueID.desc())
    )
    if asset_id:
        stmt = stmt.where(AssetCurrentValue.AssetID == asset_id)
    return [serialize_asset_value(row) for row in db.execute(stmt).scalars().all()]


@app.post("/api/asset-current-values", status_code=201)
def create_asset_value(
    request: Request,
    payload: AssetValueUpsert,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    session = _require_session_or_401(request, x_session_token)
    agency_id = int(session["agencyID"])
    if not payload.assetId or payload.theCurrentValue is None or not payload.asOnDate:
        raise HTTPException(status_code=400, detail="Asset ID, Value, and Date are required")
    _get_asset_or_404(db, payload.assetId, agency_id)

    value = AssetCurrentValue(
        AssetID=payload.assetId,
        TheCurrentValue=payload.theCurrentValue,
        AsOnDate=payload.asOnDate,
    )
    db.add(value)
    db.flush()
    log_audit(db, agency_id, "AssetValue", value.ValueID, "CreateAssetValue", f"Asset {value.AssetID} value {value.TheCurrentValue}", user_id=session.get("userID"))
    db.commit()
    return serialize_asset_value(value)


@app.put("/api/asset-current-values/{value_id}")
def update_asset_value(
    request: Request,
    value_id: int,
    payload: AssetValueUpsert,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    session = _require_session_or_401(request, x_session_token)
    agency_id = int(session["agencyID"])
    value = _get_asset_record_or_404(db, AssetCurrentValue, value_id, agency_id)
    if payload.theCurrentValue is not None:
        value.TheCurrentValue = payload.theCurrentValue
    if payload.asOnDate:
        value.AsOnDate = payload.asOnDate
    log_audit(db, agency_id, "AssetValue", value_id, "UpdateAssetValue", None, user_id=session.get("userID"))
    db.commit()
    return serialize_asset_value(value)


@app.delete("/api/asset-current-values/{value_id}")
def delete_asset_value(
    request: Request,
    value_id: int,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    session = _require_session_or_401(request, x_session_token)
    agency_id = int(session["agencyID"])
    value = _get_asset_record_or_404(db, AssetCurrentValue, value_id, agency_id)
    db.delete(value)
    log_audit(db, agency_id, "AssetValue", value_id, "DeleteAssetValue", None, user_id=session.get("userID"))
    db.commit()
    return {"success": True}


@app.get("/api/asset-rentals")
def get_rentals(
    request: Request,
    customer_id: int | None = Query(None, alias="customerId"),
    asset_id: int | None = Query(None, alias="assetId"),
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    agency_id = _require_agency_id(request, x_session_token)
    stmt = _rental_query().where(Customer.AgencyID == agency_id).order_by(AssetRental.FromDate.desc(), AssetRental.RentalID.desc())
    if customer_id:
        stmt = stmt.where(AssetRental.CustomerID == customer_id)
    if asset_id:
        stmt = stmt.where(AssetRental.AssetID == asset_id)
    return [serialize_rental(rental) for rental in db.execute(stmt).scalars().all()]


@app.get("/api/asset-rentals/overlap")
def check_overlap(
    request: Request,
    asset_id: int = Query(..., alias="assetId"),
    from_date: date = Query(..., alias="fromDate"),
    to_date: date | None = Query(None, alias="toDate"),
    exclude_rental_id: int | None = Query(None, alias="excludeRentalId"),
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    agency_id = _require_agency_id(request, x_session_token)
    _get_asset_or_404(db, asset_id, agency_id)
    if to_date is not None and to_date < from_date:
        raise HTTPException(status_code=400, detail="toDate must be on or after fromDate.")
    return find_rental_overlap(db, asset_id, from_date, to_date, exclude_rental_id).to_dict()


@app.post("/api/asset-rentals", status_code=201)
def create_rental(
    request: Request,
    payload: CreateRentalDto,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    session = _require_session_or_401(request, x_session_token)
    agency_id = int(session["agencyID"])
    if not payload.assetId or not payload.customerId or payload.ratePerMonth is None or not payload.fromDate:
        raise HTTPException(status_code=400, detail="All fields are required")
    if payload.ratePerMonth <= 0:
        raise HTTPException(status_code=400, detail="ratePerMonth must be greater than zero.")
    if payload.dailyRate is not None and payload.dailyRate <= 0:
        raise HTTPException(status_code=400, detail="dailyRate must be greater than zero.")

    _get_customer_or_404(db, payload.customerId, agency_id)
    if not lock_asset(db, payload.assetId, agency_id):
        raise HTTPException(status_code=404, detail="Asset not found")

    overlap = find_rental_overlap(db, payload.assetId, payload.fromDate, None)
    if overlap.has_overlap:
        db.rollback()
        raise _overlap_conflict(overlap)

    rental = AssetRental(
        AssetID=payload.assetId,
        CustomerID=payload.customerId,
        RatePerMonth=payload.ratePerMonth,
        DailyRate=payload.dailyRate,
        FromDate=payload.fromDate,
        ToDate=None,
        Notes=payload.notes,
        CreatedDate=datetime.now(),
        UpdatedDate=datetime.now(),
    )
    db.add(rental)
    db.flush()
    log_audit(db, agency_id, "Rental", rental.RentalID, "CreateRental", f"Asset {rental.AssetID} from {rental.FromDate}", user_id=session.get("userID"))
    db.commit()
    RENTAL_LOGGER.info("Rental %s created for asset %s", rental.RentalID, rental.AssetID)
    return serialize_rental(_get_rental_or_404(db, rental.RentalID, agency_id))


@app.get("/api/asset-rentals/{rental_id}")
def get_rental(
    request: Request,
    rental_id: int,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    agency_id = _require_agency_id(request, x_session_token)
    return serialize_rental(_get_rental_or_404(db, rental_id, agency_id))


@app.put("/api/asset-rentals/{rental_id}")
def update_rental(
    request: Request,
    rental_id: int,
    payload: UpdateRentalDto,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    session = _require_session_or_401(request, x_session_token)
    agency_id = int(session["agencyID"])
    rental = _get_rental_or_404(db, rental_id, agency_id)

    from_date = payload.fromDate or rental.FromDate
    if payload.clearToDate:
        to_date = None
    else:
        to_date = payload.toDate if payload.toDate is not None else rental.ToDate
    if to_date is not None and to_date < from_date:
        raise HTTPException(status_code=400, detail="toDate must be on or after fromDate.")

    lock_asset(db, rental.AssetID, agency_id)
    overlap = find_rental_overlap(db, rental.AssetID, from_date, to_date, exclude_rental_id=rental_id)
    if overlap.has_overlap:
        db.rollback()
        raise _overlap_conflict(overlap)

    if payload.ratePerMonth is not None:
        if payload.ratePerMonth <= 0:
            raise HTTPException(status_code=400, detail="ratePerMonth must be greater than zero.")
        rental.RatePerMonth = payload.ratePerMonth
    if payload.dailyRate is not None:
        rental.DailyRate = payload.dailyRate
    if payload.notes is not None:
        rental.Notes = payload.notes
    rental.FromDate = from_date
    rental.ToDate = to_date
    rental.UpdatedDate = datetime.now()
    log_audit(db, agency_id, "Rental", rental_id, "UpdateRental", format_date_range(from_date, to_date), user_id=session.get("userID"))
    db.commit()
    return serialize_rental(rental)


@app.patch("/api/asset-rentals/{rental_id}/return")
def return_rental(
    request: Request,
    rental_id: int,
    payload: ReturnRequest | None = None,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    session = _require_session_or_401(request, x_session_token)
    agency_id = int(session["agencyID"])
    rental = _get_rental_or_404(db, rental_id, agency_id)
    try:
        returned_on = apply_return(rental, payload.returnDate if payload else None)
    except RentalAlreadyReturnedError as exc:
        raise HTTPException(
            status_code=400,
            detail={"error": str(exc), "returnedDate": exc.returned_on.isoformat()},
        ) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    log_audit(db, agency_id, "Rental", rental_id, "Return", f"Returned on {returned_on}", user_id=session.get("userID"))
    db.commit()
    RENTAL_LOGGER.info("Rental %s returned on %s", rental_id, returned_on)
    return {"message": "Asset returned successfully", "rental": serialize_rental(rental)}


@app.delete("/api/asset-rentals/{rental_id}")
def delete_rental(
    request: Request,
    rental_id: int,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    session = _require_session_or_401(request, x_session_token)
    agency_id = int(session["agencyID"])
    rental = _get_rental_or_404(db, rental_id, agency_id)
    db.delete(rental)
    log_audit(db, agency_id, "Rental", rental_id, "DeleteRental", None, user_id=session.get("userID"))
    db.commit()
    return {"success": True}


@app.get("/api/asset-rentals/{rental_id}/invoice")
def download_rental_invoice(
    request: Request,
    rental_id: int,
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    agency_id = _require_agency_id(request, x_session_token)
    rental = _get_rental_or_404(db, rental_id, agency_id)
    agency = _get_agency_or_404(db, agency_id)
    settings, currency = sync_agency_settings(db, agency)
    db.commit()

    invoice = build_single_rental_invoice(rental, agency=agency, settings=settings, currency=currency)
    INVOICE_LOGGER.info("Rendering invoice %s for rental %s", invoice.invoiceNumber, rental_id)
    return _pdf_response(render_invoice_pdf(invoice), f"invoice-rental-{rental_id}.pdf")


@app.get("/api/customers/{customer_id}/invoice-data")
def get_customer_invoice_data(
    request: Request,
    customer_id: int,
    month: int | None = Query(None, ge=1, le=12),
    year: int | None = Query(None, ge=1900, le=9999),
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    agency_id = _require_agency_id(request, x_session_token)
    _, invoice = _build_customer_invoice(db, agency_id, customer_id, month, year)
    return invoice.model_dump(mode="json")


@app.get("/api/customers/{customer_id}/invoice")
def download_customer_invoice(
    request: Request,
    customer_id: int,
    month: int | None = Query(None, ge=1, le=12),
    year: int | None = Query(None, ge=1900, le=9999),
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    agency_id = _require_agency_id(request, x_session_token)
    customer, invoice = _build_customer_invoice(db, agency_id, customer_id, month, year)
    INVOICE_LOGGER.info("Rendering invoice %s for customer %s", invoice.invoiceNumber, customer_id)
    filename = f"invoice-{_safe_filename_part(customer.LastName)}-{invoice.invoiceNumber}.pdf"
    return _pdf_response(render_invoice_pdf(invoice), filename)


@app.get("/api/customers/{customer_id}/invoice-periods")
def get_customer_invoice_periods(
    request: Request,
    customer_id: int,
    year: int | None = Query(None, ge=1900, le=9999),
    db: Session = Depends(get_agency_db),
    x_session_token: str | None = Header(None, alias="X-Session-Token"),
):
    agency_id = _require_agency_id(request, x_session_token)
    _get_customer_or_404(db, customer_id, agency_id)
    rentals = db.execute(select(AssetRental).where(AssetRental.CustomerID == customer_id)).scalars().all()
    years = rental_years(rentals)
    return {
        "years": [
            {"year": y, "rentalCount": sum(1 for rental in rentals if rental.FromDate.year == y)}
            for y in years
        ],
        "year": year,
        "months": months_with_rentals(rentals, year) if year else [],
    }


def _build_customer_invoice(db: Session, agency_id: int, customer_id: int, month: int | None, year: int | None):
    customer = _get_customer_or_404(db, customer_id, agency_id)
    rentals = db.execute(
        _rental_query()
        .where(AssetRental.CustomerID == customer_id)
        .order_by(AssetRental.FromDate.desc(), AssetRental.RentalID.desc())
    ).scalars().all()
    if not rentals:
        raise HTTPException(status_code=400, detail="Customer has no rentals to invoice")

    agency = _get_agency_or_404(db, agency_id)
    settings, currency = sync_agency_settings(db, agency)
    db.commit()
    try:
        invoice = build_invoice(
            customer,
            rentals,
            agency=agency,
            settings=settings,
            currency=currency,
            period_month=month,
            period_year=year,
        )
    except NoRentalsForPeriodError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return customer, invoice


def _pdf_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _safe_filename_part(value: str | None) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9_-]+", "", value or "")
    return cleaned or "customer"


def _overlap_conflict(overlap: OverlapResult) -> HTTPException:
    conflict = overlap.conflict
    message = (
        f"Asset is already rented to {conflict.customer_name} "
        f"({format_date_range(conflict.from_date, conflict.to_date)})"
    )
    RENTAL_LOGGER.info("Rental overlap with rental %s: %s", conflict.rental_id, message)
    detail = jsonable_encoder(overlap.to_dict())
    detail["error"] = message
    return HTTPException(status_code=409, detail=detail)


def _rental_query():
    return (
        select(AssetRental)
        .join(Customer, Customer.CustomerID == AssetRental.CustomerID)
        .options(selectinload(AssetRental.Customer))
        .options(
            selectinload(AssetRental.Asset)
            .selectinload(Asset.AssetSpec)
            .selectinload(AssetSpec.Manufacturer)
        )
        .options(
            selectinload(AssetRental.Asset)
            .selectinload(Asset.AssetSpec)
            .selectinload(AssetSpec.AssetCategory)
        )
    )


def _serialize_customer_with_rentals(customer: Customer) -> dict:
    payload = serialize_customer(customer)
    payload["rentals"] = [serialize_rental(rental, include_customer=False) for rental in customer.Rentals]
    return payload


def _apply_customer_fields(customer: Customer, payload: CustomerUpsert) -> None:
    customer.Company = payload.company or None
    customer.JobTitle = payload.jobTitle or None
    customer.BusinessPhone = payload.businessPhone or None
    customer.HomePhone = payload.homePhone or None
    customer.WebPage = payload.webPage or None
    required = {
        "LastName": payload.lastName,
        "FirstName": payload.firstName,
        "EmailID": payload.emailId,
        "MobilePhone": payload.mobilePhone,
        "Address": payload.address,
        "City": payload.city,
        "StateProvince": payload.stateProvince,
        "ZipPostalCode": payload.zipPostalCode,
        "CountryRegion": payload.countryRegion,
    }
    for column, value in required.items():
        if value is not None and value.strip():
            setattr(customer, column, value.strip())


def _flush_customer_or_400(db: Session) -> None:
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail="Email already exists for another customer") from exc


def _require_description(payload: DescriptionDto) -> str:
    description = (payload.description or "").strip()
    if not description:
        raise HTTPException(status_code=400, detail="Description is required")
    return description


def _get_agency_or_404(db: Session, agency_id: int) -> Agency:
    agency = db.execute(
        select(Agency).options(selectinload(Agency.Settings)).where(Agency.AgencyID == agency_id)
    ).scalars().first()
    if not agency:
        raise HTTPException(status_code=404, detail="Agency not found")
    return agency


def _get_customer_or_404(db: Session, customer_id: int, agency_id: int) -> Customer:
    customer = db.execute(
        select(Customer)
        .options(selectinload(Customer.Rentals).selectinload(AssetRental.Asset))
        .where(Customer.CustomerID == customer_id)
        .where(Customer.AgencyID == agency_id)
    ).scalars().first()
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


def _get_asset_or_404(db: Session, asset_id: int, agency_id: int) -> Asset:
    asset = db.execute(
        select(Asset).where(Asset.AssetID == asset_id).where(Asset.AgencyID == agency_id)
    ).scalars().first()
    if not asset:
        raise HTTPException(status_code=404, detail="Asset not found")
    return asset


def _get_defined_condition_or_404(db: Session, condition_id: int, agency_id: int) -> DefinedCondition:
    condition = db.execute(
        select(DefinedCondition)
        .where(DefinedCondition.DefinedConditionID == condition_id)
        .where(DefinedCondition.AgencyID == agency_id)
    ).scalars().first()
    if not condition:
        raise HTTPException(status_code=404, detail="Defined condition not found")
    return condition


def _get_asset_record_or_404(db: Session, model, record_id: int, agency_id: int):
    record = db.get(model, record_id)
    if not record or not record.Asset or record.Asset.AgencyID != agency_id:
        raise HTTPException(status_code=404, detail="Record not found")
    return record


def _get_rental_or_404(db: Session, rental_id: int, agency_id: int) -> AssetRental:
    rental = db.execute(
        _rental_query()
        .where(AssetRental.RentalID == rental_id)
        .where(Customer.AgencyID == agency_id)
    ).scalars().first()
    if not rental:
        raise HTTPException(status_code=404, detail="Rental not found")
    return rental


def _get_active_session(request: Request, session_token: str | None) -> dict | None:
    if session_token:
        session_from_token = get_session(session_token)
        if session_from_token:
            return dict(session_from_token)
        return None
    cookie_token = request.session.get("token")
    if cookie_token and get_session(cookie_token):
        return dict(request.session.get("user") or {})
    return None


def _require_session_or_401(request: Request, session_token: str | None) -> dict:
    session = _get_active_session(request, session_token)
    if not session or not session.get("agencyID"):
        raise HTTPException(status_code=401, detail="Not logged in.")
    return session


def _require_agency_id(request: Request, session_token: str | None) -> int:
    return int(_require_session_or_401(request, session_token)["agencyID"])
