# rentcrunch/service_layer/analysis.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..domain import financial, scoring
from ..domain.overrides import OverrideStore
from ..domain.types import CashflowResult, CashflowSettings, Property, SessionSnapshot
from ..schemas import AnalyzedPropertyOut, SessionStatusOut


@dataclass(frozen=True)
class AnalyzedProperty:
    property: Property
    effective: Property  # overrides substituted
    cashflow: CashflowResult
    breakdown: scoring.ScoreBreakdown

    @property
    def score(self) -> int:
        return self.breakdown.score


def compute_cashflow(
    prop: Property,
    settings: CashflowSettings,
    overrides: OverrideStore | None = None,
) -> CashflowResult:
    return financial.cashflow(prop, settings, overrides)


def compute_score(
    prop: Property,
    settings: CashflowSettings,
    cashflow: CashflowResult | None = None,
    overrides: OverrideStore | None = None,
) -> int:
    """
    Score for `prop`. When `cashflow` is given it must have been computed with
    the same settings/overrides; otherwise it is computed here.
    """
    if cashflow is None:
        cashflow = financial.cashflow(prop, settings, overrides)
    return scoring.crunch_score(prop, settings, cashflow, overrides)


def analyze(
    prop: Property,
    settings: CashflowSettings,
    overrides: OverrideStore | None = None,
) -> AnalyzedProperty:
    effective = overrides.effective(prop) if overrides is not None else prop
    cf = financial.cashflow(effective, settings)
    return AnalyzedProperty(
        property=prop,
        effective=effective,
        cashflow=cf,
        breakdown=scoring.score_breakdown(effective, settings, cf),
    )


def analyze_all(
    properties: Iterable[Property],
    settings: CashflowSettings,
    overrides: OverrideStore | None = None,
) -> list[AnalyzedProperty]:
    return [analyze(p, settings, overrides) for p in properties]


def to_out(row: AnalyzedProperty) -> AnalyzedPropertyOut:
    p, eff, cf = row.property, row.effective, row.cashflow
    return AnalyzedPropertyOut(
        property_id=p.property_id,
        address=p.address,
        url=p.url,
        price=eff.price,
        rent_estimate=eff.rent_estimate,
        rent_source=p.rent_source.value,
        price_overridden=eff.price != p.price,
        rent_overridden=eff.rent_estimate != p.rent_estimate,
        bedrooms=p.bedrooms,
        bathrooms=p.bathrooms,
        sqft=p.sqft,
        days_on_market=p.days_on_market,
        ratio=eff.ratio,
        monthly_mortgage=cf.monthly_mortgage,
        total_monthly_expenses=cf.total_monthly_expenses,
        monthly_cashflow=cf.monthly_cashflow,
        annual_cashflow=cf.annual_cashflow,
        cash_on_cash_return=cf.cash_on_cash_return,
        total_initial_investment=cf.total_initial_investment,
        score=row.score,
        explain=scoring.explain(row.breakdown),
    )


def status_out(snap: SessionSnapshot) -> SessionStatusOut:
    return SessionStatusOut(
        generation=snap.generation,
        state=snap.state.value,
        location=snap.location,
        total_count=snap.total_count,
        loaded=len(snap.properties),
        pages_expected=snap.pages_expected,
        pages_settled=snap.pages_settled,
        pages_failed=snap.pages_failed,
        degraded=snap.degraded,
        is_loading=snap.is_loading,
    )
