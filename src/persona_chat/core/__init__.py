"""Core conversation models, context assembly and errors."""
