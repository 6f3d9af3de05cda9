# rentcrunch/domain/projection.py
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..config import settings as app_settings
from .financial import cashflow, loan_amount, monthly_mortgage_payment
from .types import CashflowSettings, Property

if TYPE_CHECKING:
    from .overrides import OverrideStore


@dataclass(frozen=True)
class YearlyProjection:
    year: int
    property_value: float
    annual_rent: float
    yearly_expenses: float
    yearly_cashflow: float
    loan_balance: float
    equity: float
    equity_growth: float  # equity gained since year 0
    roi: float  # cumulative cash flow / initial investment, percent
    roi_with_equity: float  # (cumulative cash flow + equity growth) / initial investment, percent


def _amortize_year(balance: float, payment: float, monthly_rate: float) -> float:
    """Remaining balance after 12 monthly payments."""
    if balance <= 0:
        return 0.0
    if monthly_rate == 0:
        return max(0.0, balance - min(payment * 12, balance))
    for _ in range(12):
        interest = balance * monthly_rate
        principal = min(payment - interest, balance)
        balance -= principal
        if balance <= 0:
            return 0.0
    return max(0.0, balance)


def project_years(
    prop: Property,
    settings: CashflowSettings,
    *,
    years: int | None = None,
    appreciation_percent: float | None = None,
    rent_growth_percent: float | None = None,
    overrides: "OverrideStore | None" = None,
) -> list[YearlyProjection]:
    """
    Year 0..`years` hold-period projection.

    Property value and rent compound yearly; tax+insurance scale with value,
    vacancy/capex/management with rent; the mortgage payment stays fixed and
    the balance is amortized month by month.
    """
    years = app_settings.PROJECTION_YEARS if years is None else years
    if appreciation_percent is None:
        appreciation_percent = app_settings.PROJECTION_APPRECIATION_PERCENT
    if rent_growth_percent is None:
        rent_growth_percent = app_settings.PROJECTION_RENT_GROWTH_PERCENT

    if overrides is not None:
        prop = overrides.effective(prop)

    base = cashflow(prop, settings)
    initial = base.total_initial_investment
    payment = monthly_mortgage_payment(prop.price, settings)
    monthly_rate = settings.interest_rate / 100.0 / 12.0

    value = prop.price
    rent = prop.rent_estimate
    balance = max(0.0, loan_amount(prop.price, settings)) if payment > 0 else 0.0
    equity0 = value - balance

    rent_expense_pct = (
        settings.vacancy_percent + settings.capex_percent + settings.property_management_percent
    ) / 100.0

    out: list[YearlyProjection] = []
    cumulative_cf = 0.0

    for year in range(0, max(0, int(years)) + 1):
        if year > 0:
            value *= 1 + appreciation_percent / 100.0
            rent *= 1 + rent_growth_percent / 100.0
            balance = _amortize_year(balance, payment, monthly_rate)

        annual_rent = rent * 12.0
        expenses = (
            payment * 12.0
            + value * (settings.tax_insurance_percent / 100.0)
            + annual_rent * rent_expense_pct
        )
        yearly_cf = annual_rent - expenses
        if year > 0:
            cumulative_cf += yearly_cf

        equity = value - balance
        growth = equity - equity0
        roi = (cumulative_cf / initial) * 100.0 if initial > 0 else 0.0
        roi_eq = ((cumulative_cf + growth) / initial) * 100.0 if initial > 0 else 0.0

        out.append(
            YearlyProjection(
                year=year,
                property_value=value,
                annual_rent=annual_rent,
                yearly_expenses=expenses,
                yearly_cashflow=yearly_cf,
                loan_balance=balance,
                equity=equity,
                equity_growth=growth,
                roi=roi,
                roi_with_equity=roi_eq,
            )
        )

    return out
