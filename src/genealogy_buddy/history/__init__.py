"""Saved tool results of signed-in users."""

from genealogy_buddy.history.service import AnalysisHistory, AnalysisPage

__all__ = ["AnalysisHistory", "AnalysisPage"]
