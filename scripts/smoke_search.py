# scripts/smoke_search.py
from __future__ import annotations

import asyncio
import logging
import os

from rentcrunch.domain.parsing import build_filters
from rentcrunch.domain.projection import project_years
from rentcrunch.domain.types import CashflowSettings, SortConfig, SortDirection, SortKey
from rentcrunch.service_layer.analysis import status_out, to_out
from rentcrunch.service_layer.use_cases.search import run_search


def _quiet_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(levelname)s:%(name)s:%(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


async def main() -> None:
    _quiet_logging()

    filters = build_filters(
        min_price=os.environ.get("MIN_PRICE"),
        max_price=os.environ.get("MAX_PRICE"),
        min_ratio=os.environ.get("MIN_RATIO"),
    )
    sort = SortConfig(SortKey(os.environ.get("SORT", "score")), SortDirection(os.environ.get("DIRECTION", "desc")))

    cf_settings = CashflowSettings.from_settings()
    report = await run_search(
        os.environ.get("LOCATION", "Detroit, MI"),
        filters=filters,
        sort=sort,
        cashflow_settings=cf_settings,
    )
    print(status_out(report.snapshot).model_dump())

    for row in report.rows[: int(os.environ.get("LIMIT", "10"))]:
        out = to_out(row)
        print(out.property_id, out.address, out.price, round(out.rent_estimate), out.rent_source,
              round(out.monthly_cashflow, 2), f"{out.cash_on_cash_return:.1f}%", out.score, out.explain)

    if report.rows:
        best = report.rows[0]
        print(f"\n10-year outlook for {best.property.address}:")
        for y in project_years(best.effective, cf_settings, years=10)[::5]:
            print(y.year, round(y.property_value), round(y.yearly_cashflow), round(y.equity), f"{y.roi_with_equity:.1f}%")


if __name__ == "__main__":
    asyncio.run(main())
