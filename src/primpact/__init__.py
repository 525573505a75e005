"""Primpact - pull request impact analysis with AI test scenarios and code review."""

__version__ = "0.1.0"
