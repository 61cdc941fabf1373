"""Decay curves, weighting policies and the weighting engine."""
