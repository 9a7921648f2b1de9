"""Performance analytics."""

from cryptopulse.analytics.reporter import AnalyticsReporter, PerformanceSummary, format_summary

__all__ = ["AnalyticsReporter", "PerformanceSummary", "format_summary"]
