"""Shared constants, exceptions and record types."""
