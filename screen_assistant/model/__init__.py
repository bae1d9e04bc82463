"""Analyzer client and failure classification."""

from screen_assistant.model.errors import build_model_error_alert, classify_model_error
from screen_assistant.model.manager import ModelManager

__all__ = ["ModelManager", "build_model_error_alert", "classify_model_error"]
