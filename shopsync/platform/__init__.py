"""Platform utilities shared across services (credential handling, redaction)."""
