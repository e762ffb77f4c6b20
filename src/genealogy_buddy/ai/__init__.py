"""AI provider integration for the genealogy tools."""

from genealogy_buddy.ai.provider import AIProvider, AIResult, AnalysisKind

__all__ = ["AIProvider", "AIResult", "AnalysisKind"]
