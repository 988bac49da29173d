"""Tap Farm progression and rewards service."""
