"""Configuration, HTTP client, state persistence and health tracking."""
