from typing import Optional

from pydantic import BaseModel, ConfigDict


class CustomerUpsert(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    company: Optional[str] = None
    lastName: Optional[str] = None
    firstName: Optional[str] = None
    emailId: Optional[str] = None
    jobTitle: Optional[str] = None
    businessPhone: Optional[str] = None
    homePhone: Optional[str] = None
    mobilePhone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    stateProvince: Optional[str] = None
    zipPostalCode: Optional[str] = None
    countryRegion: Optional[str] = None
    webPage: Optional[str] = None


REQUIRED_CUSTOMER_FIELDS = (
    "lastName",
    "firstName",
    "emailId",
    "mobilePhone",
    "address",
    "city",
    "stateProvince",
    "zipPostalCode",
    "countryRegion",
)
