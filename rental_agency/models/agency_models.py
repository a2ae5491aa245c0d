from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from rental_agency.db.base import Base


class Agency(Base):
    __tablename__ = "Agencies"

    AgencyID = Column(Integer, primary_key=True)
    Name = Column(String(255), nullable=False)
    ContactEmail = Column(String(255), nullable=False)
    ContactPhone = Column(String(50))
    Address = Column(String(255))
    City = Column(String(100))
    StateProvince = Column(String(100))
    ZipPostalCode = Column(String(20))
    CountryRegion = Column(String(100))
    CreatedDate = Column(DateTime, server_default=func.now())

    Settings = relationship("AgencySettings", back_populates="Agency", uselist=False)
    Users = relationship("AuthUser", back_populates="Agency")
    Customers = relationship("Customer", back_populates="Agency")


class AgencySettings(Base):
    __tablename__ = "AgencySettings"

    SettingsID = Column(Integer, primary_key=True)
    AgencyID = Column(Integer, ForeignKey("Agencies.AgencyID"), nullable=False, unique=True)
    CurrencyCode = Column(String(3), default="USD")
    CurrencySymbol = Column(String(10), default="$")
    CurrencyName = Column(String(100), default="US Dollar")
    DefaultTaxRate = Column(Float, default=0)
    InvoicePrefix = Column(String(20), default="INV")
    UpdatedDate = Column(DateTime, server_default=func.now())

    Agency = relationship("Agency", back_populates="Settings")


class AuthUser(Base):
    __tablename__ = "AuthUsers"

    UserID = Column(Integer, primary_key=True)
    AgencyID = Column(Integer, ForeignKey("Agencies.AgencyID"), nullable=False)
    Email = Column(String(255), nullable=False, unique=True)
    FirstName = Column(String(100), nullable=False)
    LastName = Column(String(100), nullable=False)
    Role = Column(String(50), default="manager")
    IsActive = Column(Boolean, default=True)
    PasswordHash = Column(String(256))
    PasswordSalt = Column(String(64))
    LastLoginAt = Column(DateTime)
    CreatedDate = Column(DateTime, server_default=func.now())

    Agency = relationship("Agency", back_populates="Users")


class Customer(Base):
    __tablename__ = "Customers"
    __table_args__ = (UniqueConstraint("AgencyID", "EmailID"),)

    CustomerID = Column(Integer, primary_key=True)
    AgencyID = Column(Integer, ForeignKey("Agencies.AgencyID"), nullable=False)
    Company = Column(String(255))
    FirstName = Column(String(100), nullable=False)
    LastName = Column(String(100), nullable=False)
    EmailID = Column(String(255), nullable=False)
    JobTitle = Column(String(100))
    BusinessPhone = Column(String(50))
    HomePhone = Column(String(50))
    MobilePhone = Column(String(50), nullable=False)
    Address = Column(String(255), nullable=False)
    City = Column(String(100), nullable=False)
    StateProvince = Column(String(100), nullable=False)
    ZipPostalCode = Column(String(20), nullable=False)
    CountryRegion = Column(String(100), nullable=False)
    WebPage = Column(String(500))
    CreatedDate = Column(DateTime, server_default=func.now())

    Agency = relationship("Agency", back_populates="Customers")
    Rentals = relationship("AssetRental", back_populates="Customer")


class Manufacturer(Base):
    __tablename__ = "Manufacturers"

    ManufacturerID = Column(Integer, primary_key=True)
    Description = Column(String(255), nullable=False)

    AssetSpecs = relationship("AssetSpec", back_populates="Manufacturer")


class AssetCategory(Base):
    __tablename__ = "AssetCategories"

    AssetCategoryID = Column(Integer, primary_key=True)
    Description = Column(String(255), nullable=False)

    AssetSpecs = relationship("AssetSpec", back_populates="AssetCategory")


class AssetSpec(Base):
    __tablename__ = "AssetSpecs"

    SpecID = Column(Integer, primary_key=True)
    AssetCategoryID = Column(Integer, ForeignKey("AssetCategories.AssetCategoryID"), nullable=False)
    ManufacturerID = Column(Integer, ForeignKey("Manufacturers.ManufacturerID"), nullable=False)
    YearMake = Column(Integer, nullable=False)
    Model = Column(String(255), nullable=False)
    Description = Column(String(500), nullable=False)

    AssetCategory = relationship("AssetCategory", back_populates="AssetSpecs")
    Manufacturer = relationship("Manufacturer", back_populates="AssetSpecs")
    Assets = relationship("Asset", back_populates="AssetSpec")


class Asset(Base):
    __tablename__ = "Assets"

    AssetID = Column(Integer, primary_key=True)
    AgencyID = Column(Integer, ForeignKey("Agencies.AgencyID"), nullable=False)
    SpecID = Column(Integer, ForeignKey("AssetSpecs.SpecID"), nullable=False)
    AcquiredDate = Column(Date, nullable=False)
    PurchasePrice = Column(Numeric(12, 2), nullable=False)
    CreatedDate = Column(DateTime, server_default=func.now())

    AssetSpec = relationship("AssetSpec", back_populates="Assets")
    Rentals = relationship("AssetRental", back_populates="Asset")
    Conditions = relationship("AssetCurrentCondition", back_populates="Asset")
    Values = relationship("AssetCurrentValue", back_populates="Asset")


class DefinedCondition(Base):
    __tablename__ = "DefinedConditions"

    DefinedConditionID = Column(Integer, primary_key=True)
    AgencyID = Column(Integer, ForeignKey("Agencies.AgencyID"), nullable=False)
    Description = Column(String(255), nullable=False)

    AssetConditions = relationship("AssetCurrentCondition", back_populates="DefinedCondition")


class AssetCurrentCondition(Base):
    __tablename__ = "AssetCurrentConditions"

    ConditionID = Column(Integer, primary_key=True)
    AssetID = Column(Integer, ForeignKey("Assets.AssetID"), nullable=False)
    DefinedConditionID = Column(Integer, ForeignKey("DefinedConditions.DefinedConditionID"), nullable=False)
    AsOnDate = Column(Date, nullable=False)
    CreatedDate = Column(DateTime, server_default=func.now())

    Asset = relationship("Asset", back_populates="Conditions")
    DefinedCondition = relationship("DefinedCondition", back_populates="AssetConditions")


class AssetCurrentValue(Base):
    __tablename__ = "AssetCurrentValues"

    ValueID = Column(Integer, primary_key=True)
    AssetID = Column(Integer, ForeignKey("Assets.AssetID"), nullable=False)
    TheCurrentValue = Column(Numeric(12, 2), nullable=False)
    AsOnDate = Column(Date, nullable=False)
    CreatedDate = Column(DateTime, server_default=func.now())

    Asset = relationship("Asset", back_populates="Values")


class AssetRental(Base):
    __tablename__ = "AssetRentals"

    RentalID = Column(Integer, primary_key=True)
    AssetID = Column(Integer, ForeignKey("Assets.AssetID"), nullable=False)
    CustomerID = Column(Integer, ForeignKey("Customers.CustomerID"), nullable=False)
    RatePerMonth = Column(Numeric(12, 2), nullable=False)
    DailyRate = Column(Numeric(12, 2))
    FromDate = Column(Date, nullable=False)
    ToDate = Column(Date)
    Notes = Column(String(1000))
    CreatedDate = Column(DateTime, server_default=func.now())
    UpdatedDate = Column(DateTime, server_default=func.now())

    Asset = relationship("Asset", back_populates="Rentals")
    Customer = relationship("Customer", back_populates="Rentals")


class AuditLog(Base):
    __tablename__ = "AuditLogs"

    AuditID = Column(Integer, primary_key=True)
    AgencyID = Column(Integer)
    EntityType = Column(String(50), nullable=False)
    EntityID = Column(Integer, nullable=False)
    Action = Column(String(100), nullable=False)
    Details = Column(String(2000))
    UserID = Column(Integer)
    CreatedAt = Column(DateTime, server_default=func.now())
