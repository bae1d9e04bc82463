"""Interpretation of analyzer responses."""

from screen_assistant.analysis.parser import (
    AnalysisResult,
    extract_keywords,
    parse_analysis,
)

__all__ = ["AnalysisResult", "extract_keywords", "parse_analysis"]
