"""Analysis orchestration."""

from opslens.analyst.analyzer import AnalysisError, Analyzer

__all__ = ["AnalysisError", "Analyzer"]
