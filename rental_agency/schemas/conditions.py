from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict


class AssetConditionUpsert(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    assetId: Optional[int] = None
    definedConditionId: Optional[int] = None
    asOnDate: Optional[date] = None


class AssetValueUpsert(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    assetId: Optional[int] = None
    theCurrentValue: Optional[float] = None
    asOnDate: Optional[date] = None
