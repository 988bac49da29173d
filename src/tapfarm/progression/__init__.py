"""Progression and rewards engine."""
