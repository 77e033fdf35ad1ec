"""
inbox-agent: multi-provider email, calendar and notes assistant.

Aggregates Microsoft Graph and Google Workspace accounts behind one data
model and runs LLM-backed analysis, note correlation, meeting briefings and
proactive insights on top.
"""

__version__ = "0.1.0"
