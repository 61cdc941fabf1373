"""Scorers that turn provider responses into scores in [0, 1]."""
