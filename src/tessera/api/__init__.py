"""HTTP API for memories and chat."""

from .app import create_app, default_agent_factory

__all__ = ["create_app", "default_agent_factory"]
