"""Messaging channels."""

from .whatsapp import WhatsAppBridge

__all__ = ["WhatsAppBridge"]
