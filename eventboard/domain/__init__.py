"""Audience classification, validation, caching and display status."""
