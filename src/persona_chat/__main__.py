"""
Entry point for running Persona Chat as a module.

This allows users to run: python -m persona_chat
"""

from persona_chat.cli.main import app

if __name__ == "__main__":
    app()
