# rentcrunch/domain/types.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ..config import settings


class RentSource(str, Enum):
    zillow = "zillow"
    calculated = "calculated"


class SortKey(str, Enum):
    price = "price"
    ratio = "ratio"
    cashflow = "cashflow"
    score = "score"
    rent_estimate = "rent_estimate"
    bedrooms = "bedrooms"
    bathrooms = "bathrooms"
    sqft = "sqft"
    days_on_market = "days_on_market"
    address = "address"


class SortDirection(str, Enum):
    asc = "asc"
    desc = "desc"


class SessionState(str, Enum):
    idle = "idle"
    counting = "counting"
    fetching = "fetching"
    draining = "draining"
    complete = "complete"
    aborted = "aborted"


@dataclass(frozen=True)
class Property:
    property_id: str
    address: str
    price: float
    rent_estimate: float
    bedrooms: float | None = None
    bathrooms: float | None = None
    sqft: float | None = None
    days_on_market: int | None = None
    latitude: float | None = None
    longitude: float | None = None
    url: str = ""
    rent_source: RentSource = RentSource.calculated
    thumbnail: str | None = None

    @property
    def ratio(self) -> float:
        """Monthly rent / price, e.g. 0.008 = 0.8%."""
        if self.price <= 0:
            return 0.0
        return self.rent_estimate / self.price


@dataclass(frozen=True)
class CashflowSettings:
    interest_rate: float = 7.0
    loan_term: float = 30
    down_payment_percent: float = 20.0
    tax_insurance_percent: float = 1.7
    vacancy_percent: float = 5.0
    capex_percent: float = 5.0
    property_management_percent: float = 8.0
    rehab_amount: float = 0.0

    @classmethod
    def from_settings(cls) -> "CashflowSettings":
        return cls(
            interest_rate=settings.DEFAULT_INTEREST_RATE,
            loan_term=settings.DEFAULT_LOAN_TERM,
            down_payment_percent=settings.DEFAULT_DOWN_PAYMENT_PERCENT,
            tax_insurance_percent=settings.DEFAULT_TAX_INSURANCE_PERCENT,
            vacancy_percent=settings.DEFAULT_VACANCY_PERCENT,
            capex_percent=settings.DEFAULT_CAPEX_PERCENT,
            property_management_percent=settings.DEFAULT_PROPERTY_MANAGEMENT_PERCENT,
            rehab_amount=settings.DEFAULT_REHAB_AMOUNT,
        )


@dataclass(frozen=True)
class CashflowResult:
    monthly_mortgage: float
    monthly_tax_insurance: float
    monthly_vacancy: float
    monthly_capex: float
    monthly_property_management: float
    total_monthly_expenses: float
    monthly_cashflow: float
    annual_cashflow: float
    cash_on_cash_return: float  # percent, 8.5 == 8.5%
    down_payment_amount: float
    closing_costs: float
    rehab_amount: float
    total_initial_investment: float


@dataclass(frozen=True)
class SortConfig:
    key: SortKey | None = SortKey.price
    direction: SortDirection = SortDirection.asc


@dataclass(frozen=True)
class SearchFilters:
    """
    Client-side listing filters.

    bedrooms: 5 stands for "5+".
    """
    min_price: float | None = None
    max_price: float | None = None
    bedrooms: tuple[int, ...] = ()
    bathrooms: tuple[float, ...] = ()
    min_ratio: float | None = None
    property_type: str = "Houses"

    def cache_token(self) -> str:
        return (
            f"{self.min_price}|{self.max_price}|{','.join(map(str, self.bedrooms))}|"
            f"{','.join(map(str, self.bathrooms))}|{self.min_ratio}|{self.property_type}"
        )

    def matches(self, prop: Property) -> bool:
        if self.min_price is not None and prop.price < self.min_price:
            return False
        if self.max_price is not None and prop.price > self.max_price:
            return False
        if self.bedrooms:
            beds = prop.bedrooms
            if beds is None:
                return False
            if not (5 in self.bedrooms and beds >= 5) and beds not in self.bedrooms:
                return False
        if self.bathrooms and prop.bathrooms not in self.bathrooms:
            return False
        if self.min_ratio is not None and prop.ratio < self.min_ratio:
            return False
        return True


@dataclass(frozen=True)
class SessionSnapshot:
    generation: int
    state: SessionState
    location: str | None = None
    total_count: int = 0
    pages_expected: int = 0
    pages_settled: int = 0
    pages_failed: int = 0
    degraded: bool = False
    properties: tuple[Property, ...] = field(default_factory=tuple)
    sort: SortConfig = field(default_factory=SortConfig)

    @property
    def is_loading(self) -> bool:
        return self.state in (SessionState.counting, SessionState.fetching, SessionState.draining)
