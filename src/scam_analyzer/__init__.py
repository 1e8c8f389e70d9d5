"""Scam analysis with resilient LLM request orchestration."""

__version__ = "0.1.0"
