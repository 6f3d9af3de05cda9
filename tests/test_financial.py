# tests/test_financial.py
import pytest

from rentcrunch.domain.financial import cashflow, loan_amount, monthly_mortgage_payment
from rentcrunch.domain.overrides import OverrideStore
from rentcrunch.domain.types import CashflowSettings


def test_zero_interest_is_straight_line():
    for price in (1.0, 95_000.0, 312_345.67, 2_500_000.0):
        s = CashflowSettings(interest_rate=0.0, loan_term=30, down_payment_percent=20.0)
        assert monthly_mortgage_payment(price, s) == loan_amount(price, s) / (30 * 12)


def test_standard_amortization_scenario():
    s = CashflowSettings(interest_rate=6.0, loan_term=30, down_payment_percent=20.0)
    assert loan_amount(300_000.0, s) == pytest.approx(240_000.0)
    assert monthly_mortgage_payment(300_000.0, s) == pytest.approx(1438.92, abs=0.01)


@pytest.mark.parametrize(
    "kw",
    [
        {"down_payment_percent": 100.0},
        {"down_payment_percent": 120.0},
        {"loan_term": 0},
        {"loan_term": -5},
    ],
)
def test_degenerate_loans_have_no_payment(kw):
    assert monthly_mortgage_payment(250_000.0, CashflowSettings(**kw)) == 0.0


def test_absurd_rates_do_not_raise():
    huge = monthly_mortgage_payment(200_000.0, CashflowSettings(interest_rate=1e9, loan_term=30))
    assert huge > 0
    negative = monthly_mortgage_payment(200_000.0, CashflowSettings(interest_rate=-2_000.0, loan_term=30))
    assert negative == pytest.approx(160_000.0 / 360)


def test_expenses_are_sum_of_components(make_property):
    s = CashflowSettings(rehab_amount=15_000.0)
    cf = cashflow(make_property("p1", price=180_000.0, rent=1_650.0), s)

    parts = (
        cf.monthly_mortgage
        + cf.monthly_tax_insurance
        + cf.monthly_vacancy
        + cf.monthly_capex
        + cf.monthly_property_management
    )
    assert cf.total_monthly_expenses == pytest.approx(parts)
    assert cf.monthly_cashflow == pytest.approx(1_650.0 - parts)
    assert cf.annual_cashflow == pytest.approx(cf.monthly_cashflow * 12)
    assert cf.total_initial_investment == pytest.approx(36_000.0 + 5_400.0 + 15_000.0)
    assert cf.cash_on_cash_return == pytest.approx(cf.annual_cashflow / cf.total_initial_investment * 100)


def test_zero_initial_investment_falls_back_to_zero_coc(make_property):
    s = CashflowSettings(down_payment_percent=0.0)
    cf = cashflow(make_property("free", price=0.0, rent=1_000.0), s)
    assert cf.total_initial_investment == 0.0
    assert cf.cash_on_cash_return == 0.0


def test_override_round_trip_restores_baseline(make_property):
    s = CashflowSettings()
    prop = make_property("p1", price=150_000.0, rent=1_300.0)
    store = OverrideStore()
    baseline = cashflow(prop, s, store)

    store.set_price("p1", "120000")
    store.set_rent("p1", 1_500)
    changed = cashflow(prop, s, store)
    assert changed.monthly_mortgage < baseline.monthly_mortgage
    assert changed.monthly_vacancy > baseline.monthly_vacancy

    store.set_price("p1", None)
    store.set_rent("p1", "")
    assert cashflow(prop, s, store) == baseline
