"""Prompt builders and the AI generation steps built on them."""
