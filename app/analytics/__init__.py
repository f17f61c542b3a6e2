"""
Analytics module for the dashboard and the revenue forecast.
"""

from app.analytics.dashboard import DashboardAnalytics
from app.analytics.forecast import ForecastProjector

__all__ = ["DashboardAnalytics", "ForecastProjector"]
