from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict


class DescriptionDto(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    description: Optional[str] = None


class AssetSpecCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    assetCategoryId: Optional[int] = None
    manufacturerId: Optional[int] = None
    yearMake: Optional[int] = None
    model: Optional[str] = None
    description: Optional[str] = None


class AssetCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    specId: Optional[int] = None
    acquiredDate: Optional[date] = None
    purchasePrice: Optional[float] = None
