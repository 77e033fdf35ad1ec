"""Analysis, correlation, briefing and insight generation."""

from inbox_agent.analysis.briefing import FALLBACK_TOPICS, BriefingGenerator
from inbox_agent.analysis.correlation import CorrelationEngine, calculate_similarity
from inbox_agent.analysis.deadlines import extract_deadline
from inbox_agent.analysis.insights import InsightsGenerator
from inbox_agent.analysis.pipeline import EmailAnalysisService

__all__ = [
    "FALLBACK_TOPICS",
    "BriefingGenerator",
    "CorrelationEngine",
    "EmailAnalysisService",
    "InsightsGenerator",
    "calculate_similarity",
    "extract_deadline",
]
