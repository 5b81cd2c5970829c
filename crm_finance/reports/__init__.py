"""Report composition package."""

from crm_finance.reports.composer import ReportComposer

__all__ = ["ReportComposer"]
