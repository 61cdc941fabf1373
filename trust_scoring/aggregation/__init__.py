"""Leaderboard aggregation and queries."""
