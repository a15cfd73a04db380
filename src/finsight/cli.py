# FinSight - Financial Dashboard & Analysis application for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Command-Line Interface (CLI) for FinSight.

The CLI is intentionally thin: it does not implement any financial logic
itself. It loads the configuration, opens the record store, builds a
normalized snapshot and hands it to the calculators, then prints the result
tables.


Configuration
-------------

By default, the CLI reads its configuration from ``finsight_config.toml`` in
the current working directory. You can override this path using:

    --config PATH

The configuration provides the database location, the exchange-rate table,
the organization defaults (bank balance, retention) and the cash-flow
tunables. See ``config.load_app_config()``.


Period selection
----------------

Reports that work on a period accept:

    --period {this-month,last-month,this-quarter,last-quarter,ytd,last-year}
    --from-date YYYY-MM-DD --to-date YYYY-MM-DD

A predefined period wins over custom dates; without either, the current
month is used.


Commands
--------

    pnl                  Business P&L (transactions + contractors + payroll).
                         --view {simplified,regular,detailed}
                         --monthly: one row per month of the period.
    cashflow             Cash-flow statement, accrual vs cash comparison,
                         AR/AP aging and upcoming cash events.
                         --monthly: chained month-by-month statements.
    contractors          Contractor margins, rollups, projection and expiring
                         contracts. --month YYYY-MM | --quarter Q --year YYYY
    generate-timesheets  Draft the missing timesheets of a month.
    subscriptions        Monthly/annual totals and upcoming bills.
    distribute           Profit distribution waterfall for the period.
                         --retention PCT overrides the configured retention;
                         --record stores one distribution per partner.
    pipeline             Recruitment funnel, KPIs, attention items and CRM
                         deal pipeline.
    forecast             Six-month forecast (local fallback model).
    import CSV_PATH      Import ledger transactions from a CSV file.


Examples
--------

    finsight --config finsight_config.toml pnl --period ytd --view detailed
    finsight cashflow --from-date 2025-01-01 --to-date 2025-03-31 --monthly
    finsight distribute --period last-quarter --retention 20 --record
    finsight import data/transactions.csv

Output goes to stdout. ``--verbose`` turns on debug logging on stderr.
"""

import argparse
import logging
from pathlib import Path
from typing import Optional

from . import __version__
from .config import AppConfig, load_app_config
from .contractors import (
    contractor_metrics,
    expiring_contracts,
    metrics_by_contractor,
    metrics_by_customer,
    project_future_revenue,
)
from .errors import BulkResult, FinSightError
from .forecast import generate_forecast
from .multi_periods import cash_flow_multi_period, pnl_multi_period
from .periods import PRESETS, Period, determine_period_from_args, split_into_months
from .pipeline import (
    attention_items,
    funnel_metrics,
    pipeline_metrics,
    recruitment_kpis,
)
from .repository import Repository, open_repository
from .services import (
    Snapshot,
    cash_flow_for_period,
    distribution_plan_for_period,
    generate_timesheets,
    import_transactions,
    load_snapshot,
    organization_for,
    pnl_for_period,
    record_distribution,
)
from .subscriptions import subscription_metrics
from .views import (
    aging_view,
    cash_flow_view,
    comparison_view,
    events_view,
    funnel_view,
    pnl_view,
    records_view,
    waterfall_view,
)

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the CLI."""
    ap = argparse.ArgumentParser(
        prog="finsight",
        description=(
            "FinSight - Financial Dashboard & Analysis application for SMBs. "
            "Aggregates ledger, contractor, payroll and subscription records "
            "into P&L, cash-flow and distribution reports."
        ),
    )

    # Generic options
    ap.add_argument(
        "--version",
        action="store_true",
        help="Show the installed version of finsight and exit.",
    )
    ap.add_argument(
        "--config",
        dest="config_path",
        help=(
            "Path to the main TOML configuration file. "
            "If omitted, 'finsight_config.toml' in the current directory is used."
        ),
    )
    ap.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging (overrides logging.level from config).",
    )

    # Period selection (shared by the period-based commands)
    period_options = argparse.ArgumentParser(add_help=False)
    period_options.add_argument(
        "--period",
        choices=sorted(PRESETS),
        help="Predefined reporting period. Defaults to the current month.",
    )
    period_options.add_argument(
        "--from-date",
        dest="from_date",
        help="Custom period start date (YYYY-MM-DD).",
    )
    period_options.add_argument(
        "--to-date",
        dest="to_date",
        help="Custom period end date (YYYY-MM-DD).",
    )

    subparsers = ap.add_subparsers(dest="command", metavar="command")

    pnl = subparsers.add_parser(
        "pnl", parents=[period_options], help="Business P&L for a period."
    )
    pnl.add_argument(
        "--view",
        choices=["simplified", "regular", "detailed"],
        default="regular",
        help="Level of detail of the P&L statement.",
    )
    pnl.add_argument(
        "--monthly",
        action="store_true",
        help="Show one row per calendar month of the period.",
    )

    cashflow = subparsers.add_parser(
        "cashflow", parents=[period_options], help="Cash-flow statement for a period."
    )
    cashflow.add_argument(
        "--monthly",
        action="store_true",
        help="Chain one statement per calendar month of the period.",
    )

    contractors = subparsers.add_parser("contractors", help="Contractor margins.")
    contractors.add_argument("--month", help="Restrict to one month (YYYY-MM).")
    contractors.add_argument("--quarter", type=int, choices=[1, 2, 3, 4])
    contractors.add_argument("--year", type=int)

    generate = subparsers.add_parser(
        "generate-timesheets", help="Draft the missing timesheets of a month."
    )
    generate.add_argument("month", help="Month to generate (YYYY-MM).")

    subparsers.add_parser("subscriptions", help="Subscription costs and upcoming bills.")

    distribute = subparsers.add_parser(
        "distribute",
        parents=[period_options],
        help="Profit distribution waterfall for a period.",
    )
    distribute.add_argument(
        "--retention",
        type=float,
        help="Retention percentage (0-100). Defaults to the organization setting.",
    )
    distribute.add_argument(
        "--record",
        action="store_true",
        help="Record one pending distribution per active partner.",
    )

    subparsers.add_parser("pipeline", help="Recruitment funnel and deal pipeline.")

    forecast = subparsers.add_parser("forecast", help="Revenue/expense forecast.")
    forecast.add_argument(
        "--months", type=int, help="Number of months to forecast (default from config)."
    )

    import_parser = subparsers.add_parser(
        "import", help="Import ledger transactions from a CSV file."
    )
    import_parser.add_argument("csv_path", metavar="CSV_PATH")

    return ap


def _print_table(title: str, df) -> None:
    print()
    print(f"=== {title} ===")
    if df.empty:
        print("(none)")
    else:
        print(df.to_string(index=False))


def _print_period(period: Period) -> None:
    print(
        f"Applied period: {period.label} "
        f"({period.start.isoformat()} → {period.end.isoformat()})"
    )


def _print_record_errors(snapshot: Snapshot) -> None:
    if snapshot.errors:
        print(f"Warning: {len(snapshot.errors)} malformed record(s) ignored.")


def _print_degraded(result: BulkResult) -> None:
    if result.degraded:
        print("Warning: the activity log could not be updated.")


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _handle_pnl(args: argparse.Namespace, config: AppConfig, repo: Repository) -> None:
    period = determine_period_from_args(args)
    snapshot = load_snapshot(repo)
    _print_period(period)
    _print_record_errors(snapshot)

    if args.monthly:
        table = pnl_multi_period(
            split_into_months(period),
            snapshot.transactions,
            snapshot.timesheets,
            snapshot.payroll,
            config.rates,
        )
        _print_table("Monthly P&L", table)
        return

    pnl = pnl_for_period(snapshot, period, config.rates)
    _print_table("Profit & Loss", pnl_view(pnl, args.view))


def _handle_cashflow(
    args: argparse.Namespace, config: AppConfig, repo: Repository
) -> None:
    period = determine_period_from_args(args)
    snapshot = load_snapshot(repo)
    _print_period(period)
    _print_record_errors(snapshot)

    if args.monthly:
        result = cash_flow_multi_period(
            organization_for(snapshot, config.organization),
            split_into_months(period),
            transactions=snapshot.transactions,
            timesheets=snapshot.timesheets,
            payroll=snapshot.payroll,
            distributions=snapshot.distributions,
            subscriptions=snapshot.subscriptions,
            rates=config.rates,
            burn_window_months=config.cash_flow.burn_window_months,
        )
        _print_table("Monthly cash flow", result.summary)
        return

    statement = cash_flow_for_period(snapshot, period, config)
    metrics = statement.metrics

    _print_table("Cash-flow statement", cash_flow_view(statement))
    _print_table("Accrual vs cash", comparison_view(statement))
    _print_table("Accounts receivable aging", aging_view(statement.accounts_receivable))
    _print_table("Accounts payable aging", aging_view(statement.accounts_payable))
    _print_table("Upcoming inflows", events_view(statement.upcoming_inflows))
    _print_table("Upcoming outflows", events_view(statement.upcoming_outflows))

    runway = (
        "Profitable" if metrics.is_profitable else f"{metrics.cash_runway:.1f} months"
    )
    print()
    print(f"Cash position: {metrics.cash_position:,.2f}")
    print(f"Monthly burn rate: {metrics.monthly_burn_rate:,.2f}")
    print(f"DSO: {metrics.days_sales_outstanding:.1f} days")
    print(f"Cash runway: {runway}")


def _handle_contractors(
    args: argparse.Namespace, config: AppConfig, repo: Repository
) -> None:
    snapshot = load_snapshot(repo)
    _print_record_errors(snapshot)

    metrics = contractor_metrics(
        snapshot.timesheets,
        snapshot.assignments,
        month=args.month,
        quarter=args.quarter,
        year=args.year,
    )
    print(
        f"Revenue: {metrics.total_revenue:,.2f} | Cost: {metrics.total_cost:,.2f} | "
        f"Profit: {metrics.total_profit:,.2f} | Margin: {metrics.profit_margin:.1f}%"
    )
    print(
        f"Active contractors: {metrics.active_contractors} | "
        f"Active customers: {metrics.active_customers} | "
        f"Active assignments: {metrics.active_assignments}"
    )

    _print_table(
        "By contractor", records_view(metrics_by_contractor(snapshot.timesheets, args.month))
    )
    _print_table(
        "By customer", records_view(metrics_by_customer(snapshot.timesheets, args.month))
    )
    _print_table(
        "Projected revenue",
        records_view(
            project_future_revenue(
                snapshot.assignments,
                config.cash_flow.forecast_months,
                rates=config.rates,
            )
        ),
    )

    expiring = expiring_contracts(
        snapshot.assignments, config.cash_flow.expiring_contract_days
    )
    print()
    print("=== Expiring contracts ===")
    if not expiring:
        print("(none)")
    for e in expiring:
        a = e.assignment
        print(
            f"{a.contractor_name or a.contractor_id} @ {a.customer_name or a.customer_id}: "
            f"ends {a.end_date.isoformat()} ({e.days_left} days left)"
        )


def _handle_generate_timesheets(
    args: argparse.Namespace, config: AppConfig, repo: Repository
) -> None:
    result = generate_timesheets(repo, args.month, config.rates)
    print(f"Generated {len(result.created)} timesheet(s) for {args.month}.")
    _print_degraded(result)
    for err in result.errors:
        print(f"  skipped {err.record_id}: {err.message}")


def _handle_subscriptions(
    args: argparse.Namespace, config: AppConfig, repo: Repository
) -> None:
    snapshot = load_snapshot(repo, ["subscriptions"])
    metrics = subscription_metrics(
        snapshot.subscriptions, window_days=config.cash_flow.upcoming_bills_days
    )
    print(f"Active subscriptions: {metrics.active_count}")
    print(f"Monthly total: {metrics.monthly_total:,.2f}")
    print(f"Annual total: {metrics.annual_total:,.2f}")
    print(f"Potential savings: {metrics.potential_savings:,.2f}")
    print()
    print("=== Upcoming bills ===")
    if not metrics.upcoming_bills:
        print("(none)")
    for s in metrics.upcoming_bills:
        print(f"{s.next_billing_date.isoformat()}  {s.vendor}  {s.cost:,.2f} ({s.billing_cycle})")


def _handle_distribute(
    args: argparse.Namespace, config: AppConfig, repo: Repository
) -> None:
    period = determine_period_from_args(args)
    snapshot = load_snapshot(repo)
    _print_period(period)

    plan = distribution_plan_for_period(snapshot, period, config, args.retention)
    _print_table("Distribution waterfall", waterfall_view(plan))

    if args.record:
        result = record_distribution(repo, plan)
        print()
        print(f"Recorded {len(result.created)} pending distribution(s).")
        _print_degraded(result)


def _handle_pipeline(
    args: argparse.Namespace, config: AppConfig, repo: Repository
) -> None:
    snapshot = load_snapshot(repo)
    _print_record_errors(snapshot)

    kpis = recruitment_kpis(snapshot.submissions, snapshot.job_roles, snapshot.recruiters)
    print(
        f"Active submissions: {kpis.active_submissions} | "
        f"Interviews this week: {kpis.interviews_this_week} | "
        f"Pending offers: {kpis.pending_offers} | "
        f"Placements this quarter: {kpis.placements_this_quarter} | "
        f"Open roles: {kpis.open_roles}"
    )
    _print_table("Recruitment funnel", funnel_view(funnel_metrics(snapshot.submissions)))
    _print_table(
        "Needs attention",
        records_view(attention_items(snapshot.submissions, snapshot.job_roles)),
    )

    deals = pipeline_metrics(snapshot.deals)
    print()
    print("=== Deal pipeline ===")
    print(
        f"Open deals: {deals.open_deals} | Pipeline: {deals.total_pipeline_value:,.2f} | "
        f"Weighted: {deals.weighted_pipeline_value:,.2f} | Win rate: {deals.win_rate:.1f}%"
    )


def _handle_forecast(
    args: argparse.Namespace, config: AppConfig, repo: Repository
) -> None:
    snapshot = load_snapshot(repo, ["transactions"])
    months = args.months or config.cash_flow.forecast_months
    result = generate_forecast(snapshot.transactions, months)

    for title, points in (
        ("Base case", result.base_case),
        ("Optimistic", result.optimistic),
        ("Conservative", result.conservative),
    ):
        _print_table(title, records_view(points))
    print()
    print("Insights:")
    for line in result.insights:
        print(f"  - {line}")
    print("Recommendations:")
    for line in result.recommendations:
        print(f"  - {line}")


def _handle_import(
    args: argparse.Namespace, config: AppConfig, repo: Repository
) -> None:
    csv_path = Path(args.csv_path)
    if not csv_path.is_file():
        raise SystemExit(f"CSV file for import not found: {csv_path}")

    print(f"Importing transactions from {csv_path} into the database...")
    result = import_transactions(repo, str(csv_path))
    print(f"Imported {len(result.created)} transaction(s), rejected {len(result.errors)}.")
    _print_degraded(result)
    for err in result.errors:
        print(f"  {err.record_id}: {err.message}")


HANDLERS = {
    "pnl": _handle_pnl,
    "cashflow": _handle_cashflow,
    "contractors": _handle_contractors,
    "generate-timesheets": _handle_generate_timesheets,
    "subscriptions": _handle_subscriptions,
    "distribute": _handle_distribute,
    "pipeline": _handle_pipeline,
    "forecast": _handle_forecast,
    "import": _handle_import,
}


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the FinSight CLI.

    Parses command-line arguments, loads the configuration, configures
    logging, opens the record store and dispatches to the command handler.
    Domain errors are printed and turned into exit code 1.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    # --version: short-circuit and exit early.
    if args.version:
        print(f"finsight version {__version__}")
        return 0

    if not args.command:
        parser.print_help()
        return 0

    try:
        config = load_app_config(args.config_path)
    except (FileNotFoundError, ValueError) as exc:
        parser.error(str(exc))

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )
    logger.debug("Using database %s", config.database.path)

    try:
        repo = open_repository(config.database)
        HANDLERS[args.command](args, config, repo)
    except (FinSightError, ValueError) as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
