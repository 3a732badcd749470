"""Persona instructions."""
