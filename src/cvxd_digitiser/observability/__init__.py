"""
Observability Module
====================

Analytics for the CVXD digitiser.

DESIGN RULES:
    - Derived from pipeline outputs only
    - Never influences digitisation
"""

from cvxd_digitiser.observability.analytics import AnalyticsComputer, DigitizationAnalytics


__all__ = [
    "AnalyticsComputer",
    "DigitizationAnalytics",
]
