# rentcrunch/domain/financial.py
from __future__ import annotations

from typing import TYPE_CHECKING

from .types import CashflowResult, CashflowSettings, Property

if TYPE_CHECKING:
    from .overrides import OverrideStore


CLOSING_COST_RATE = 0.03  # fixed 3% of price


def loan_amount(price: float, settings: CashflowSettings) -> float:
    return price * (1.0 - settings.down_payment_percent / 100.0)


def monthly_mortgage_payment(price: float, settings: CashflowSettings) -> float:
    """
    Standard fixed-rate amortization (principal & interest).

    Never raises:
      - loan <= 0 (100%+ down, zero price) => 0
      - loan term <= 0 => 0
      - 0% interest (or a nonsensical rate <= -1200%) => straight-line loan / n
      - (1+r)^n overflowing => loan * r (the formula's limit)
    """
    loan = loan_amount(price, settings)
    r = settings.interest_rate / 100.0 / 12.0
    n = settings.loan_term * 12

    if loan <= 0:
        return 0.0
    if n <= 0:
        return 0.0
    if r == 0 or r <= -1:
        return loan / n
    try:
        x = (1 + r) ** n
    except OverflowError:
        return loan * r
    if x == 1:
        return loan / n
    return loan * (r * x) / (x - 1)


def estimated_closing_costs(price: float) -> float:
    return price * CLOSING_COST_RATE


def cashflow(
    prop: Property,
    settings: CashflowSettings,
    overrides: "OverrideStore | None" = None,
) -> CashflowResult:
    """
    Monthly/annual cash flow and cash-on-cash return.

    Uses the effective price/rent (overrides substituted). Pure.
    Cash-on-cash return is a percentage; a non-positive initial investment
    yields 0.0 instead of +/-inf.
    """
    if overrides is not None:
        price = overrides.effective_price(prop)
        rent = overrides.effective_rent(prop)
    else:
        price = prop.price
        rent = prop.rent_estimate

    monthly_mortgage = monthly_mortgage_payment(price, settings)
    monthly_tax_insurance = price * (settings.tax_insurance_percent / 100.0) / 12.0
    monthly_vacancy = rent * (settings.vacancy_percent / 100.0)
    monthly_capex = rent * (settings.capex_percent / 100.0)
    monthly_management = rent * (settings.property_management_percent / 100.0)

    total = monthly_mortgage + monthly_tax_insurance + monthly_vacancy + monthly_capex + monthly_management
    monthly_cf = rent - total
    annual_cf = monthly_cf * 12.0

    down_payment = price * (settings.down_payment_percent / 100.0)
    closing = estimated_closing_costs(price)
    initial = down_payment + closing + settings.rehab_amount

    coc = (annual_cf / initial) * 100.0 if initial > 0 else 0.0

    return CashflowResult(
        monthly_mortgage=monthly_mortgage,
        monthly_tax_insurance=monthly_tax_insurance,
        monthly_vacancy=monthly_vacancy,
        monthly_capex=monthly_capex,
        monthly_property_management=monthly_management,
        total_monthly_expenses=total,
        monthly_cashflow=monthly_cf,
        annual_cashflow=annual_cf,
        cash_on_cash_return=coc,
        down_payment_amount=down_payment,
        closing_costs=closing,
        rehab_amount=settings.rehab_amount,
        total_initial_investment=initial,
    )
