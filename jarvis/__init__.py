"""Jarvis — WhatsApp group automation bot."""

__version__ = "0.3.0"
