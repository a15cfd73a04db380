# FinSight - Financial Dashboard & Analysis application for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
FinSight
--------

A Python financial aggregation and cash-flow reconciliation engine for
Small and Medium-sized Businesses (SMBs) running a contractor-staffing or
consulting business.

Main capabilities:
- ledger aggregation into P&L summaries, daily and monthly series,
- multi-currency contractor timesheet margins, rollups and projections,
- subscription cost normalization and upcoming bills,
- cash-flow statements reconciling accrual (P&L) and cash figures, with
  AR/AP aging, burn rate, DSO and runway,
- a profit distribution waterfall (retention, partner shares, append-only
  distribution ledger),
- recruitment funnel and CRM deal pipeline metrics,
- a record store interface (in-memory and SQLite) with snapshot fan-in.

Calculators are pure functions over normalized record snapshots; the record
store, configuration (TOML) and presentation (CLI) are kept separate.


Version: 0.1.0

Usage:
    finsight --help
"""

__all__ = ["cashflow", "contractors", "distribution", "ledger", "pipeline"]

__version__ = "0.1.0"
