"""
Persona Chat: conversational session manager for chat-completion providers.
"""

__version__ = "0.1.0"
