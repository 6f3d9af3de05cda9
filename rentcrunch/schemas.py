# rentcrunch/schemas.py
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ZillowListing(BaseModel):
    """One item of propertyExtendedSearch `props` (or a single-property response)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    zpid: str | int | None = None
    address: str | None = None
    price: float | None = None
    rent_zestimate: float | None = Field(None, alias="rentZestimate")
    img_src: str | None = Field(None, alias="imgSrc")
    bedrooms: float | None = None
    bathrooms: float | None = None
    living_area: float | None = Field(None, alias="livingArea")
    detail_url: str | None = Field(None, alias="detailUrl")
    days_on_zillow: int | None = Field(None, alias="daysOnZillow")
    latitude: float | None = None
    longitude: float | None = None

    @field_validator("address", mode="before")
    @classmethod
    def _flatten_address(cls, v: Any) -> Any:
        # /property-style payloads nest the address
        if isinstance(v, dict):
            parts = [v.get("streetAddress"), v.get("city"), v.get("state"), v.get("zipcode")]
            return ", ".join(str(p).strip() for p in parts if p and str(p).strip()) or None
        return v

    @field_validator("days_on_zillow", mode="before")
    @classmethod
    def _negative_dom_is_unknown(cls, v: Any) -> Any:
        if v is None or v == "":
            return None
        try:
            n = int(float(v))
        except (TypeError, ValueError):
            return None
        return n if n >= 0 else None


class ZillowSearchPage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    props: list[dict[str, Any]] = Field(default_factory=list)
    total_result_count: int = Field(0, alias="totalResultCount")
    total_pages: int | None = Field(None, alias="totalPages")

    @field_validator("props", mode="before")
    @classmethod
    def _only_dicts(cls, v: Any) -> Any:
        if not isinstance(v, list):
            return []
        return [x for x in v if isinstance(x, dict)]

    @field_validator("total_result_count", mode="before")
    @classmethod
    def _count_or_zero(cls, v: Any) -> Any:
        return v or 0


class RentEstimateOut(BaseModel):
    model_config = ConfigDict(extra="ignore")

    rent: float | None = None


class AnalyzedPropertyOut(BaseModel):
    property_id: str
    address: str
    url: str

    price: float
    rent_estimate: float
    rent_source: str
    price_overridden: bool = False
    rent_overridden: bool = False

    bedrooms: float | None = None
    bathrooms: float | None = None
    sqft: float | None = None
    days_on_market: int | None = None

    ratio: float
    monthly_mortgage: float
    total_monthly_expenses: float
    monthly_cashflow: float
    annual_cashflow: float
    cash_on_cash_return: float
    total_initial_investment: float

    score: int = Field(..., ge=0, le=100)
    explain: str


class SessionStatusOut(BaseModel):
    generation: int
    state: str
    location: str | None = None
    total_count: int = Field(..., ge=0)
    loaded: int = Field(..., ge=0)
    pages_expected: int = Field(..., ge=0)
    pages_settled: int = Field(..., ge=0)
    pages_failed: int = Field(..., ge=0)
    degraded: bool
    is_loading: bool
