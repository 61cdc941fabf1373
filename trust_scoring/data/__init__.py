"""Submission validation, loading and record extraction."""
