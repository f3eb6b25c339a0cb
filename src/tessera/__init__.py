"""Tessera: a chat assistant with per-user semantic memory."""

__version__ = "0.1.0"
