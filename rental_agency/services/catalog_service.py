from __future__ import annotations

from rental_agency.models.agency_models import (
    Asset,
    AssetCategory,
    AssetCurrentCondition,
    AssetCurrentValue,
    AssetSpec,
    Customer,
    DefinedCondition,
    Manufacturer,
)


def _money(value) -> float | None:
    return float(value) if value is not None else None


def serialize_manufacturer(manufacturer: Manufacturer) -> dict:
    return {"id": manufacturer.ManufacturerID, "description": manufacturer.Description}


def serialize_category(category: AssetCategory) -> dict:
    return {"id": category.AssetCategoryID, "description": category.Description}


def serialize_spec(spec: AssetSpec) -> dict:
    return {
        "id": spec.SpecID,
        "assetCategoryId": spec.AssetCategoryID,
        "manufacturerId": spec.ManufacturerID,
        "yearMake": spec.YearMake,
        "model": spec.Model,
        "description": spec.Description,
        "manufacturer": serialize_manufacturer(spec.Manufacturer) if spec.Manufacturer else None,
        "assetCategory": serialize_category(spec.AssetCategory) if spec.AssetCategory else None,
    }


def serialize_asset(asset: Asset) -> dict:
    return {
        "id": asset.AssetID,
        "specId": asset.SpecID,
        "acquiredDate": asset.AcquiredDate,
        "purchasePrice": _money(asset.PurchasePrice),
        "createdDate": asset.CreatedDate,
        "assetSpec": serialize_spec(asset.AssetSpec) if asset.AssetSpec else None,
    }


def serialize_customer(customer: Customer) -> dict:
    return {
        "id": customer.CustomerID,
        "company": customer.Company,
        "firstName": customer.FirstName,
        "lastName": customer.LastName,
        "emailId": customer.EmailID,
        "jobTitle": customer.JobTitle,
        "businessPhone": customer.BusinessPhone,
        "homePhone": customer.HomePhone,
        "mobilePhone": customer.MobilePhone,
        "address": customer.Address,
        "city": customer.City,
        "stateProvince": customer.StateProvince,
        "zipPostalCode": customer.ZipPostalCode,
        "countryRegion": customer.CountryRegion,
        "webPage": customer.WebPage,
        "createdDate": customer.CreatedDate,
    }


def serialize_defined_condition(condition: DefinedCondition) -> dict:
    return {"id": condition.DefinedConditionID, "description": condition.Description}


def serialize_asset_condition(condition: AssetCurrentCondition) -> dict:
    return {
        "id": condition.ConditionID,
        "assetId": condition.AssetID,
        "definedConditionId": condition.DefinedConditionID,
        "asOnDate": condition.AsOnDate,
        "definedCondition": (
            serialize_defined_condition(condition.DefinedCondition) if condition.DefinedCondition else None
        ),
        "asset": serialize_asset(condition.Asset) if condition.Asset else None,
    }


def serialize_asset_value(value: AssetCurrentValue) -> dict:
    return {
        "id": value.ValueID,
        "assetId": value.AssetID,
        "theCurrentValue": _money(value.TheCurrentValue),
        "asOnDate": value.AsOnDate,
        "asset": serialize_asset(value.Asset) if value.Asset else None,
    }
