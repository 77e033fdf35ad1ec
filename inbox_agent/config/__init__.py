"""Configuration for inbox-agent."""

from inbox_agent.config.settings import (
    DEFAULT_URGENT_KEYWORDS,
    AnalysisConfig,
    AssistantConfig,
    CalendarConfig,
    GoogleAuthConfig,
    LLMConfig,
    MicrosoftAuthConfig,
)

__all__ = [
    "DEFAULT_URGENT_KEYWORDS",
    "AnalysisConfig",
    "AssistantConfig",
    "CalendarConfig",
    "GoogleAuthConfig",
    "LLMConfig",
    "MicrosoftAuthConfig",
]
