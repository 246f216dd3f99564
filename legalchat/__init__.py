"""LegalChat: AI legal-assistant chat client with remote session sync."""

__version__ = "0.1.0"
