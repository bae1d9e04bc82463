"""Screen assistant: periodic screen analysis with alerting and tiered history."""

__version__ = "0.3.0"
