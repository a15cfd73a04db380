# FinSight - Financial Dashboard & Analysis application for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Guarded ratio helpers shared by every calculator.

A ratio whose denominator is zero is reported as 0.0, never NaN or
infinity. Margins, conversion rates, win rates and DSO all go through these
helpers so that the guard is applied uniformly.
"""

import math


def safe_divide(numerator: float, denominator: float) -> float:
    """Return numerator / denominator, or 0.0 when the result is undefined."""
    if denominator == 0:
        return 0.0
    value = numerator / denominator
    if math.isnan(value) or math.isinf(value):
        return 0.0
    return value


def percentage(part: float, whole: float) -> float:
    """Return part / whole * 100, or 0.0 when ``whole`` is zero."""
    return safe_divide(part, whole) * 100.0


def margin_pct(profit: float, revenue: float) -> float:
    """
    Profit margin in percent.

    Only positive revenue yields a margin; zero (or negative) revenue yields
    0.0.
    """
    if revenue <= 0:
        return 0.0
    return percentage(profit, revenue)


def conversion_rate(stage_count: float, previous_stage_count: float) -> float:
    """Conversion rate between two consecutive funnel stages, in percent."""
    return percentage(stage_count, previous_stage_count)
