"""Services layer."""

from leadscout.services.summary_service import LeadSummary, SummaryService

__all__ = ["LeadSummary", "SummaryService"]
