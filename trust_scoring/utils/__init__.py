"""Logging and reporting helpers."""
