import os
import unittest
from datetime import date
from unittest import mock

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


os.environ.setdefault("RENTAL_AGENCY_DB_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("SESSION_SIGNING_SECRET", "x" * 48)

import rental_agency.RentalMan as app_module
from rental_agency.db.base import Base
from rental_agency.models.agency_models import (
    Agency,
    Asset,
    AssetCategory,
    AssetRental,
    AssetSpec,
    AuditLog,
    AuthUser,
    Customer,
    DefinedCondition,
    Manufacturer,
)
from rental_agency.services.passwords import set_password


PASSWORD = "correct-horse"


class RentalRouteTests(unittest.TestCase):
    def setUp(self):
        self.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            future=True,
        )
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(
            bind=self.engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
            future=True,
        )
        self._seed()

        def _override_db():
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app_module._AUTH_ATTEMPTS_BY_ACCOUNT.clear()
        app_module._AUTH_LOCKOUT_UNTIL_BY_ACCOUNT.clear()
        app_module.app.dependency_overrides[app_module.get_agency_db] = _override_db
        self.client = TestClient(app_module.app)

    def tearDown(self):
        app_module.app.dependency_overrides.clear()
        self.engine.dispose()

    def _seed(self):
        with self.SessionLocal() as db:
            acme = Agency(Name="Acme Rentals", ContactEmail="contact@acme.test", CountryRegion="India", City="Pune")
            globex = Agency(Name="Global Equipment Co", ContactEmail="info@global.test", CountryRegion="USA")
            db.add_all([acme, globex])
            db.flush()

            for agency, email in ((acme, "admin@acme.test"), (globex, "manager@global.test")):
                user = AuthUser(AgencyID=agency.AgencyID, Email=email, FirstName="Test", LastName="User", IsActive=True)
                set_password(user, PASSWORD)
                db.add(user)

            manufacturer = Manufacturer(Description="Caterpillar")
            category = AssetCategory(Description="Heavy Equipment")
            db.add_all([manufacturer, category])
            db.flush()
            spec = AssetSpec(
                AssetCategoryID=category.AssetCategoryID,
                ManufacturerID=manufacturer.ManufacturerID,
                YearMake=2020,
                Model="X100",
                Description="Excavator",
            )
            db.add(spec)
            db.flush()
            asset = Asset(AgencyID=acme.AgencyID, SpecID=spec.SpecID, AcquiredDate=date(2020, 1, 1), PurchasePrice=50000)
            customer = Customer(
                AgencyID=acme.AgencyID,
                FirstName="Ada",
                LastName="Lovelace",
                EmailID="ada@example.com",
                MobilePhone="555-0101",
                Address="1 Main St",
                City="Pune",
                StateProvince="MH",
                ZipPostalCode="411001",
                CountryRegion="India",
            )
            db.add_all([asset, customer, DefinedCondition(AgencyID=acme.AgencyID, Description="New")])
            db.commit()
            self.asset_id = asset.AssetID
            self.customer_id = customer.CustomerID

    def _login(self, email="admin@acme.test"):
        response = self.client.post("/api/auth/login", json={"email": email, "password": PASSWORD})
        self.assertEqual(response.status_code, 200)
        return {"X-Session-Token": response.json()["sessionToken"]}

    def _create_rental(self, headers, from_date="2024-01-10"):
        return self.client.post(
            "/api/asset-rentals",
            headers=headers,
            json={
                "assetId": self.asset_id,
                "customerId": self.customer_id,
                "ratePerMonth": 300,
                "fromDate": from_date,
            },
        )

    def test_requires_session(self):
        response = self.client.get("/api/asset-rentals")
        self.assertEqual(response.status_code, 401)

    def test_login_rejects_bad_password(self):
        response = self.client.post("/api/auth/login", json={"email": "admin@acme.test", "password": "nope-nope"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["detail"], "Invalid credentials.")

    def test_login_is_throttled_after_repeated_failures(self):
        for _ in range(app_module.AUTH_MAX_ATTEMPTS_PER_ACCOUNT):
            self.client.post("/api/auth/login", json={"email": "admin@acme.test", "password": "nope-nope"})
        response = self.client.post("/api/auth/login", json={"email": "admin@acme.test", "password": PASSWORD})
        self.assertEqual(response.status_code, 429)
        self.assertIn("Retry-After", response.headers)

    def test_logout_revokes_token(self):
        headers = self._login()
        self.assertEqual(self.client.get("/api/auth/me", headers=headers).status_code, 200)
        self.client.post("/api/auth/logout", headers=headers)
        self.assertEqual(self.client.get("/api/auth/me", headers=headers).status_code, 401)

    def test_cookie_session_is_accepted(self):
        self._login()
        me = self.client.get("/api/auth/me")
        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.json()["user"]["agencyName"], "Acme Rentals")

    def test_create_rental_and_conflict(self):
        headers = self._login()
        created = self._create_rental(headers)
        self.assertEqual(created.status_code, 201)
        body = created.json()
        self.assertEqual(body["status"], "active")
        self.assertIsNone(body["toDate"])

        conflict = self._create_rental(headers, from_date="2025-06-01")
        self.assertEqual(conflict.status_code, 409)
        detail = conflict.json()["detail"]
        self.assertEqual(detail["error"], "Asset is already rented to Ada Lovelace (2024-01-10 - ongoing)")
        self.assertEqual(detail["overlappingRental"]["id"], body["id"])

    def test_missing_fields_are_rejected(self):
        headers = self._login()
        response = self.client.post("/api/asset-rentals", headers=headers, json={"assetId": self.asset_id})
        self.assertEqual(response.status_code, 400)

    def test_return_rental_once(self):
        headers = self._login()
        rental_id = self._create_rental(headers).json()["id"]

        early = self.client.patch(f"/api/asset-rentals/{rental_id}/return", headers=headers, json={"returnDate": "2024-01-01"})
        self.assertEqual(early.status_code, 400)

        returned = self.client.patch(f"/api/asset-rentals/{rental_id}/return", headers=headers, json={"returnDate": "2024-01-20"})
        self.assertEqual(returned.status_code, 200)
        self.assertEqual(returned.json()["rental"]["toDate"], "2024-01-20")

        again = self.client.patch(f"/api/asset-rentals/{rental_id}/return", headers=headers, json={"returnDate": "2024-01-25"})
        self.assertEqual(again.status_code, 400)
        self.assertEqual(again.json()["detail"]["returnedDate"], "2024-01-20")

    def test_overlap_endpoint_after_return(self):
        headers = self._login()
        rental_id = self._create_rental(headers).json()["id"]
        self.client.patch(f"/api/asset-rentals/{rental_id}/return", headers=headers, json={"returnDate": "2024-01-20"})

        busy = self.client.get(
            "/api/asset-rentals/overlap",
            headers=headers,
            params={"assetId": self.asset_id, "fromDate": "2024-01-20"},
        )
        self.assertTrue(busy.json()["hasOverlap"])

        free = self.client.get(
            "/api/asset-rentals/overlap",
            headers=headers,
            params={"assetId": self.asset_id, "fromDate": "2024-01-21"},
        )
        self.assertEqual(free.json(), {"hasOverlap": False})

        excluded = self.client.get(
            "/api/asset-rentals/overlap",
            headers=headers,
            params={"assetId": self.asset_id, "fromDate": "2024-01-15", "excludeRentalId": rental_id},
        )
        self.assertFalse(excluded.json()["hasOverlap"])

    def test_update_rejects_end_before_start(self):
        headers = self._login()
        rental_id = self._create_rental(headers).json()["id"]
        response = self.client.put(f"/api/asset-rentals/{rental_id}", headers=headers, json={"toDate": "2024-01-01"})
        self.assertEqual(response.status_code, 400)

    def test_customer_invoice_pdf_and_data(self):
        headers = self._login()
        rental_id = self._create_rental(headers).json()["id"]
        self.client.patch(f"/api/asset-rentals/{rental_id}/return", headers=headers, json={"returnDate": "2024-01-20"})

        data = self.client.get(
            f"/api/customers/{self.customer_id}/invoice-data",
            headers=headers,
            params={"month": 1, "year": 2024},
        )
        self.assertEqual(data.status_code, 200)
        invoice = data.json()
        self.assertEqual(invoice["rentals"][0]["totalDays"], 11)
        self.assertEqual(invoice["total"], 110)
        self.assertEqual(invoice["currencySymbol"], "₹")
        self.assertEqual(invoice["invoiceNumber"], f"INV-{self.customer_id}-2024-01")

        pdf = self.client.get(
            f"/api/customers/{self.customer_id}/invoice",
            headers=headers,
            params={"month": 1, "year": 2024},
        )
        self.assertEqual(pdf.status_code, 200)
        self.assertEqual(pdf.headers["content-type"], "application/pdf")
        self.assertIn("invoice-Lovelace-", pdf.headers["content-disposition"])
        self.assertTrue(pdf.content.startswith(b"%PDF"))

        empty = self.client.get(
            f"/api/customers/{self.customer_id}/invoice",
            headers=headers,
            params={"month": 6, "year": 2024},
        )
        self.assertEqual(empty.status_code, 400)

        periods = self.client.get(f"/api/customers/{self.customer_id}/invoice-periods", headers=headers, params={"year": 2024})
        self.assertEqual(periods.json()["months"], [1])

    def test_invalid_month_is_rejected(self):
        headers = self._login()
        response = self.client.get(f"/api/customers/{self.customer_id}/invoice", headers=headers, params={"month": 13})
        self.assertEqual(response.status_code, 422)

    def test_agency_settings_follow_country(self):
        headers = self._login()
        response = self.client.get("/api/agency-settings", headers=headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["currency"]["code"], "INR")

        updated = self.client.put(
            "/api/agency-settings",
            headers=headers,
            json={"defaultTaxRate": 10, "invoicePrefix": "acme"},
        )
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.json()["settings"], {"defaultTaxRate": 10.0, "invoicePrefix": "ACME"})

    def test_other_agency_cannot_see_records(self):
        acme_headers = self._login()
        rental_id = self._create_rental(acme_headers).json()["id"]

        global_headers = self._login("manager@global.test")
        self.assertEqual(self.client.get(f"/api/customers/{self.customer_id}", headers=global_headers).status_code, 404)
        self.assertEqual(self.client.get(f"/api/asset-rentals/{rental_id}", headers=global_headers).status_code, 404)
        self.assertEqual(self.client.get("/api/asset-rentals", headers=global_headers).json(), [])

    def test_customer_with_rentals_cannot_be_deleted(self):
        headers = self._login()
        self._create_rental(headers)
        response = self.client.delete(f"/api/customers/{self.customer_id}", headers=headers)
        self.assertEqual(response.status_code, 400)

    def test_duplicate_customer_email_is_rejected(self):
        headers = self._login()
        payload = {
            "firstName": "Grace",
            "lastName": "Hopper",
            "emailId": "ada@example.com",
            "mobilePhone": "555-0102",
            "address": "2 Main St",
            "city": "Pune",
            "stateProvince": "MH",
            "zipPostalCode": "411001",
            "countryRegion": "India",
        }
        response = self.client.post("/api/customers", headers=headers, json=payload)
        self.assertEqual(response.status_code, 400)

        missing = self.client.post("/api/customers", headers=headers, json={"firstName": "Grace"})
        self.assertEqual(missing.status_code, 400)

    def _audit_actions(self):
        with self.SessionLocal() as db:
            rows = db.execute(select(AuditLog).order_by(AuditLog.AuditID)).scalars().all()
            return [(row.EntityType, row.EntityID, row.Action) for row in rows]

    def test_negative_rate_is_rejected_on_create(self):
        headers = self._login()
        response = self.client.post(
            "/api/asset-rentals",
            headers=headers,
            json={
                "assetId": self.asset_id,
                "customerId": self.customer_id,
                "ratePerMonth": -300,
                "fromDate": "2024-01-10",
            },
        )
        self.assertEqual(response.status_code, 400)
        with self.SessionLocal() as db:
            self.assertEqual(db.execute(select(func.count(AssetRental.RentalID))).scalar_one(), 0)

    def test_update_into_another_rental_conflicts(self):
        headers = self._login()
        first_id = self._create_rental(headers, from_date="2024-01-01").json()["id"]
        self.client.patch(f"/api/asset-rentals/{first_id}/return", headers=headers, json={"returnDate": "2024-01-10"})
        second = self._create_rental(headers, from_date="2024-02-01")
        self.assertEqual(second.status_code, 201)
        second_id = second.json()["id"]

        moved = self.client.put(f"/api/asset-rentals/{second_id}", headers=headers, json={"fromDate": "2024-01-05"})
        self.assertEqual(moved.status_code, 409)
        self.assertEqual(
            moved.json()["detail"]["error"],
            "Asset is already rented to Ada Lovelace (2024-01-01 - 2024-01-10)",
        )

        own_range = self.client.put(
            f"/api/asset-rentals/{second_id}",
            headers=headers,
            json={"fromDate": "2024-01-11", "notes": "extended"},
        )
        self.assertEqual(own_range.status_code, 200)
        self.assertEqual(own_range.json()["fromDate"], "2024-01-11")
        self.assertEqual(own_range.json()["notes"], "extended")

    def test_year_only_invoice_number(self):
        headers = self._login()
        rental_id = self._create_rental(headers).json()["id"]
        self.client.patch(f"/api/asset-rentals/{rental_id}/return", headers=headers, json={"returnDate": "2024-01-20"})

        response = self.client.get(
            f"/api/customers/{self.customer_id}/invoice-data",
            headers=headers,
            params={"year": 2024},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["invoiceNumber"], f"INV-{self.customer_id}-2024")
        self.assertEqual(response.json()["invoicePeriod"], "2024")

    def test_create_rental_writes_one_audit_row(self):
        headers = self._login()
        rental_id = self._create_rental(headers).json()["id"]
        self.assertIn(("Rental", rental_id, "CreateRental"), self._audit_actions())

    def test_rental_is_not_saved_when_audit_write_fails(self):
        headers = self._login()
        with mock.patch.object(app_module, "log_audit", side_effect=RuntimeError("audit store down")):
            with self.assertRaises(RuntimeError):
                self._create_rental(headers)
        with self.SessionLocal() as db:
            self.assertEqual(db.execute(select(func.count(AssetRental.RentalID))).scalar_one(), 0)

    def test_catalog_and_condition_changes_are_audited(self):
        headers = self._login()
        manufacturer = self.client.post("/api/manufacturers", headers=headers, json={"description": "Komatsu"})
        self.assertEqual(manufacturer.status_code, 201)
        category = self.client.post("/api/asset-categories", headers=headers, json={"description": "Lifts"})
        self.assertEqual(category.status_code, 201)

        condition = self.client.post("/api/defined-conditions", headers=headers, json={"description": "Damaged"})
        condition_id = condition.json()["id"]
        self.client.put(f"/api/defined-conditions/{condition_id}", headers=headers, json={"description": "Badly damaged"})

        record = self.client.post(
            "/api/asset-current-conditions",
            headers=headers,
            json={"assetId": self.asset_id, "definedConditionId": condition_id, "asOnDate": "2024-03-01"},
        )
        self.assertEqual(record.status_code, 201)
        record_id = record.json()["id"]
        self.client.put(f"/api/asset-current-conditions/{record_id}", headers=headers, json={"asOnDate": "2024-03-02"})
        self.client.delete(f"/api/asset-current-conditions/{record_id}", headers=headers)
        self.assertEqual(self.client.delete(f"/api/defined-conditions/{condition_id}", headers=headers).status_code, 200)

        value = self.client.post(
            "/api/asset-current-values",
            headers=headers,
            json={"assetId": self.asset_id, "theCurrentValue": 42000, "asOnDate": "2024-03-01"},
        )
        self.assertEqual(value.status_code, 201)
        value_id = value.json()["id"]
        self.client.put(f"/api/asset-current-values/{value_id}", headers=headers, json={"theCurrentValue": 41000})
        self.client.delete(f"/api/asset-current-values/{value_id}", headers=headers)

        actions = self._audit_actions()
        expected = [
            ("Manufacturer", manufacturer.json()["id"], "CreateManufacturer"),
            ("AssetCategory", category.json()["id"], "CreateAssetCategory"),
            ("DefinedCondition", condition_id, "CreateDefinedCondition"),
            ("DefinedCondition", condition_id, "UpdateDefinedCondition"),
            ("AssetCondition", record_id, "CreateAssetCondition"),
            ("AssetCondition", record_id, "UpdateAssetCondition"),
            ("AssetCondition", record_id, "DeleteAssetCondition"),
            ("DefinedCondition", condition_id, "DeleteDefinedCondition"),
            ("AssetValue", value_id, "CreateAssetValue"),
            ("AssetValue", value_id, "UpdateAssetValue"),
            ("AssetValue", value_id, "DeleteAssetValue"),
        ]
        for entry in expected:
            self.assertIn(entry, actions)


if __name__ == "__main__":
    unittest.main()
