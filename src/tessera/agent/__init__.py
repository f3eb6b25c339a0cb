"""Agent loop and prompt construction."""

from .loop import DEFAULT_USER_ID, AgentConfig, AgentLoop, AgentResult, StopReason
from .prompt import build_system_prompt

__all__ = [
    "DEFAULT_USER_ID",
    "AgentConfig",
    "AgentLoop",
    "AgentResult",
    "StopReason",
    "build_system_prompt",
]
