#!/usr/bin/env python3
"""Propagate recurring budgets and print the yearly summary."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from budget_planner import compute_yearly_summary, ensure_recurring_budgets_for_year
from budget_planner.db import BudgetStore
from budget_planner.recurrence import created_periods, propagate_range, propagate_recurring


def _parse_period(value: str):
    year, month = value.split('-')
    return int(year), int(month)


def main(
    year: int,
    month: int,
    through: Optional[str] = None,
    ensure_year: bool = False,
    summary: bool = False,
    db_path: Optional[str] = None,
) -> None:
    store = BudgetStore(db_path)

    if ensure_year:
        created = ensure_recurring_budgets_for_year(year, store=store)
    elif through:
        created = propagate_range((year, month), _parse_period(through), store=store)
    else:
        created = propagate_recurring(year, month, store=store)

    print(f"Created {len(created)} budget(s)")
    for period_year, period_month in created_periods(created):
        print(f"  {period_year}-{period_month:02d}")

    if summary:
        yearly = compute_yearly_summary(
            store.fetch_transactions(year=year),
            store.fetch_budgets(year=year),
            store.fetch_categories(),
            year,
            date.today(),
        )
        print()
        print(yearly.to_frame().to_string(index=False))


if __name__ == '__main__':
    today = date.today()
    parser = argparse.ArgumentParser(description='Propagate recurring budgets into a month.')
    parser.add_argument('--year', type=int, default=today.year, help='Target year')
    parser.add_argument('--month', type=int, default=today.month, help='Target month (1-12)')
    parser.add_argument('--through', help='Propagate every month up to this YYYY-MM')
    parser.add_argument('--ensure-year', action='store_true',
                        help='Extend every recurring chain through December of --year')
    parser.add_argument('--summary', action='store_true', help='Print the yearly summary afterwards')
    parser.add_argument('--db', dest='db_path', help='SQLite database path')
    parser.add_argument('-v', '--verbose', action='store_true', help='Log at DEBUG level')
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    main(
        year=args.year,
        month=args.month,
        through=args.through,
        ensure_year=args.ensure_year,
        summary=args.summary,
        db_path=args.db_path,
    )
