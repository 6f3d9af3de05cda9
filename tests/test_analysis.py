# tests/test_analysis.py
from rentcrunch.domain.overrides import OverrideStore
from rentcrunch.domain.types import CashflowSettings, SessionSnapshot, SessionState
from rentcrunch.service_layer.analysis import analyze, analyze_all, compute_cashflow, compute_score, status_out, to_out


def test_analysis_matches_direct_computation(make_property):
    s = CashflowSettings()
    prop = make_property("p1", price=110_000.0, rent=1_250.0, days_on_market=14)

    row = analyze(prop, s)
    cf = compute_cashflow(prop, s)
    assert row.cashflow == cf
    assert row.score == compute_score(prop, s, cf)
    assert row.score == compute_score(prop, s)


def test_overrides_flow_into_output(make_property):
    s = CashflowSettings()
    prop = make_property("p1", price=110_000.0, rent=1_250.0)
    store = OverrideStore()
    store.set_rent("p1", "1,400")

    out = to_out(analyze(prop, s, store))
    assert out.rent_estimate == 1_400.0
    assert out.rent_overridden is True
    assert out.price_overridden is False
    assert out.ratio == 1_400.0 / 110_000.0
    assert out.score == compute_score(prop, s, overrides=store)
    assert out.explain.endswith(f"score={out.score}")


def test_blocked_property_still_renders(make_property):
    rows = analyze_all([make_property("free", price=0.0, rent=0.0)], CashflowSettings())
    out = to_out(rows[0])
    assert out.score == 0
    assert out.explain == "score=0 | blocked: non-positive price"


def test_status_reflects_snapshot(make_property):
    snap = SessionSnapshot(
        generation=3,
        state=SessionState.draining,
        location="Detroit, MI",
        total_count=5,
        pages_expected=1,
        pages_settled=1,
        properties=(make_property("a"), make_property("b")),
    )
    out = status_out(snap)
    assert out.generation == 3
    assert out.state == "draining"
    assert out.loaded == 2
    assert out.is_loading is True
    assert out.degraded is False

    done = status_out(SessionSnapshot(generation=3, state=SessionState.complete, total_count=5, pages_failed=1, degraded=True))
    assert done.is_loading is False
    assert done.degraded is True
    assert done.loaded == 0
