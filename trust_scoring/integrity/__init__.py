"""Content identifiers and ed25519 signatures."""
