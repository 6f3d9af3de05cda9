# rentcrunch/domain/scoring.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .types import CashflowResult, CashflowSettings, Property

if TYPE_CHECKING:
    from .overrides import OverrideStore


# Weights sum to 1.0; every sub-score is 0..100 so the composite is too.
WEIGHT_COC = 0.35
WEIGHT_CASHFLOW_TO_RENT = 0.25
WEIGHT_RENT_TO_PRICE = 0.20
WEIGHT_DOWN_PAYMENT = 0.05
WEIGHT_DAYS_ON_MARKET = 0.05
WEIGHT_REHAB = 0.10

COC_TARGET_PERCENT = 15.0
CASHFLOW_TO_RENT_RANGE = (-0.10, 0.20)
RENT_TO_PRICE_RANGE = (0.004, 0.010)
DOWN_PAYMENT_RANGE = (20.0, 50.0)
DAYS_ON_MARKET_MAX = 90.0
DAYS_ON_MARKET_BASELINE = 30  # unknown DOM is scored as a typical listing
REHAB_TO_PRICE_MAX = 0.20


def _ramp(x: float, lo: float, hi: float) -> float:
    """Linear map lo..hi -> 0..100, clipped."""
    if x <= lo:
        return 0.0
    if x >= hi:
        return 100.0
    return (x - lo) / (hi - lo) * 100.0


def normalize_coc(cash_on_cash_percent: float) -> float:
    # 0% (or negative) => 0, 15%+ => 100
    return _ramp(cash_on_cash_percent, 0.0, COC_TARGET_PERCENT)


def normalize_cashflow_to_rent(monthly_cashflow: float, rent: float) -> float:
    if rent <= 0:
        return 0.0
    return _ramp(monthly_cashflow / rent, *CASHFLOW_TO_RENT_RANGE)


def normalize_rent_to_price(ratio: float) -> float:
    return _ramp(ratio, *RENT_TO_PRICE_RANGE)


def normalize_down_payment(down_payment_percent: float) -> float:
    return _ramp(down_payment_percent, *DOWN_PAYMENT_RANGE)


def normalize_days_on_market(days_on_market: int | None) -> float:
    dom = DAYS_ON_MARKET_BASELINE if days_on_market is None else days_on_market
    return 100.0 - _ramp(float(dom), 0.0, DAYS_ON_MARKET_MAX)


def normalize_rehab(rehab_amount: float, price: float) -> float:
    if price <= 0:
        return 0.0
    return 100.0 - _ramp(rehab_amount / price, 0.0, REHAB_TO_PRICE_MAX)


@dataclass(frozen=True)
class ScoreBreakdown:
    coc: float
    cashflow_to_rent: float
    rent_to_price: float
    down_payment: float
    days_on_market: float
    rehab: float
    score: int
    blocked_reason: str | None = None


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def score_breakdown(
    prop: Property,
    settings: CashflowSettings,
    cashflow: CashflowResult,
    overrides: "OverrideStore | None" = None,
) -> ScoreBreakdown:
    if overrides is not None:
        price = overrides.effective_price(prop)
        rent = overrides.effective_rent(prop)
    else:
        price = prop.price
        rent = prop.rent_estimate

    if not price > 0 or not rent > 0:
        reason = "non-positive price" if not price > 0 else "non-positive rent"
        return ScoreBreakdown(0.0, 0.0, 0.0, 0.0, 0.0, 0.0, score=0, blocked_reason=reason)

    coc = normalize_coc(cashflow.cash_on_cash_return)
    cf_rent = normalize_cashflow_to_rent(cashflow.monthly_cashflow, rent)
    ratio = normalize_rent_to_price(rent / price)
    dp = normalize_down_payment(settings.down_payment_percent)
    dom = normalize_days_on_market(prop.days_on_market)
    rehab = normalize_rehab(settings.rehab_amount, price)

    raw = (
        coc * WEIGHT_COC
        + cf_rent * WEIGHT_CASHFLOW_TO_RENT
        + ratio * WEIGHT_RENT_TO_PRICE
        + dp * WEIGHT_DOWN_PAYMENT
        + dom * WEIGHT_DAYS_ON_MARKET
        + rehab * WEIGHT_REHAB
    )
    if math.isnan(raw):
        raw = 0.0
    score = _round_half_up(max(0.0, min(100.0, raw)))

    return ScoreBreakdown(
        coc=coc,
        cashflow_to_rent=cf_rent,
        rent_to_price=ratio,
        down_payment=dp,
        days_on_market=dom,
        rehab=rehab,
        score=max(0, min(100, score)),
    )


def crunch_score(
    prop: Property,
    settings: CashflowSettings,
    cashflow: CashflowResult,
    overrides: "OverrideStore | None" = None,
) -> int:
    """Composite desirability score, int in [0, 100]. Recompute on every settings change."""
    return score_breakdown(prop, settings, cashflow, overrides).score


def explain(breakdown: ScoreBreakdown) -> str:
    """
    Human-debuggable explanation string, e.g.

      coc=72 | cf_rent=100 | ratio=50 | down_payment=0 | dom=67 | rehab=100 | score=70
    """
    if breakdown.blocked_reason:
        return f"score=0 | blocked: {breakdown.blocked_reason}"

    bits = [
        f"coc={breakdown.coc:.0f}",
        f"cf_rent={breakdown.cashflow_to_rent:.0f}",
        f"ratio={breakdown.rent_to_price:.0f}",
        f"down_payment={breakdown.down_payment:.0f}",
        f"dom={breakdown.days_on_market:.0f}",
        f"rehab={breakdown.rehab:.0f}",
        f"score={breakdown.score}",
    ]
    return " | ".join(bits)
