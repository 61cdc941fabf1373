"""Helpers shared by the peerBench CLI."""
