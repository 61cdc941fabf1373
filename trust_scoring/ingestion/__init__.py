"""Append-only submission log and the ingestor that writes to it."""
