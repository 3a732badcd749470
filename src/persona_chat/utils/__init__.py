"""Validation, identifier and client factory utilities."""
