"""
Pydantic shapes for trader data moving in and out of the service layer.

External payloads use camelCase keys (``lastActivity``, ``ownerName``...);
Python code uses the snake_case field names. Both are accepted on input.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Financial estimates are passed through untouched: numbers stay numbers and
# strings such as "£1.2m" stay strings.
Amount = Optional[Union[int, float, str]]


class TraderStatus(str, Enum):
    NEW_LEAD = "New Lead"
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    CALL_BACK = "Call-Back"

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["TraderStatus"]:
        """Case-insensitive lookup; unknown values give ``None``."""
        if not raw:
            return None
        wanted = str(raw).strip().lower().replace("_", "-")
        for status in cls:
            if status.value.lower() == wanted or status.value.lower().replace(" ", "-") == wanted:
                return status
        if wanted in ("callback", "call back"):
            return cls.CALL_BACK
        return None


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TraderDraft(CamelModel):
    """A trader about to be bulk-inserted (from a CSV row or an API batch)."""

    name: str
    status: Optional[TraderStatus] = None
    last_activity: Optional[str] = None
    call_back_date: Optional[str] = None
    description: Optional[str] = None
    reviews: Amount = None
    rating: Optional[float] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    main_category: Optional[str] = None
    owner_name: Optional[str] = None
    owner_profile_link: Optional[str] = None
    categories: Optional[str] = None
    workday_timing: Optional[str] = None
    temporarily_closed_on: Optional[str] = None
    notes: Optional[str] = None
    total_assets: Amount = None
    estimated_annual_revenue: Amount = None
    estimated_company_value: Amount = None
    employee_count: Amount = None


def _validate_url(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("Please enter a valid URL (including http:// or https://).")
    return value


class TraderForm(CamelModel):
    """Single add/edit payload. On edit, omitted fields keep the stored value
    and fields sent as ``None`` are cleared."""

    name: str = Field(..., min_length=2)
    status: Optional[TraderStatus] = None
    description: Optional[str] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    website: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    main_category: Optional[str] = None
    owner_name: Optional[str] = None
    owner_profile_link: Optional[str] = None
    categories: Optional[str] = None
    workday_timing: Optional[str] = None
    notes: Optional[str] = None
    call_back_date: Optional[datetime] = None
    total_assets: Amount = None
    estimated_annual_revenue: Amount = None
    estimated_company_value: Amount = None
    employee_count: Amount = None

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("website", "owner_profile_link")
    @classmethod
    def _check_url(cls, value):
        return _validate_url(value)


class FinancialUpdate(CamelModel):
    """One row of a financial bulk update, matched to a trader by exact name."""

    name: str
    total_assets: Amount = None
    estimated_annual_revenue: Amount = None
    estimated_company_value: Amount = None
    employee_count: Amount = None

    def changed_fields(self) -> dict:
        fields = {
            "total_assets": self.total_assets,
            "estimated_annual_revenue": self.estimated_annual_revenue,
            "estimated_company_value": self.estimated_company_value,
            "employee_count": self.employee_count,
        }
        return {k: v for k, v in fields.items() if v is not None}


class TaskCreate(CamelModel):
    title: str = Field(..., min_length=1)
    due_date: datetime
    completed: bool = False


class TaskUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1)
    due_date: Optional[datetime] = None
    completed: Optional[bool] = None


class TaskRecord(CamelModel):
    id: str
    trader_id: str
    title: str
    due_date: str
    completed: bool = False


class TraderRecord(CamelModel):
    """The external Trader shape: every key is always present."""

    id: str
    branch_id: str
    name: str
    status: str
    last_activity: str
    call_back_date: Optional[str] = None
    description: Optional[str] = None
    reviews: Amount = None
    rating: Optional[float] = None
    website: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    main_category: Optional[str] = None
    owner_name: Optional[str] = None
    owner_profile_link: Optional[str] = None
    categories: Optional[str] = None
    workday_timing: Optional[str] = None
    temporarily_closed_on: Optional[str] = None
    notes: Optional[str] = None
    total_assets: Amount = None
    estimated_annual_revenue: Amount = None
    estimated_company_value: Amount = None
    employee_count: Amount = None
    tasks: List[TaskRecord] = Field(default_factory=list)
