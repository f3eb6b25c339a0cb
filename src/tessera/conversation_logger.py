"""Conversation transcripts for later analysis.

Each conversation gets its own JSONL file, one line per event: user and
assistant messages, LLM calls, tool calls and the memories injected into
each turn.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

MAX_LOGGED_OUTPUT = 2000


class ConversationLogger:
    """Writes per-conversation transcripts."""

    def __init__(self, log_dir: Path | str | None = None) -> None:
        """Initialize the conversation logger.

        Args:
            log_dir: Directory for transcripts. Defaults to
                ~/.tessera/conversations.
        """
        if log_dir is None:
            log_dir = Path.home() / ".tessera" / "conversations"
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def transcript_path(self, conversation_id: str) -> Path:
        """Transcript file for a conversation, one per day."""
        date_str = datetime.now().strftime("%Y-%m-%d")
        return self.log_dir / f"{date_str}_{conversation_id}.jsonl"

    def _write(self, conversation_id: str, event: str, **fields: Any) -> None:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "conversation_id": conversation_id,
            "event": event,
            **{k: v for k, v in fields.items() if v is not None},
        }
        with open(self.transcript_path(conversation_id), "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, ensure_ascii=False) + "\n")

    def log_user_message(self, conversation_id: str, content: str, user_id: str | None = None) -> None:
        """Log a user message."""
        self._write(conversation_id, "user_message", role="user", content=content, user_id=user_id)

    def log_assistant_message(self, conversation_id: str, content: str) -> None:
        """Log the final assistant response of a turn."""
        self._write(conversation_id, "assistant_message", role="assistant", content=content)

    def log_memory_context(
        self,
        conversation_id: str,
        memory_ids: list[int],
    ) -> None:
        """Log which memories were injected into the system prompt."""
        self._write(
            conversation_id,
            "memory_context",
            count=len(memory_ids),
            memory_ids=memory_ids,
        )

    def log_llm_request(
        self,
        conversation_id: str,
        model: str,
        messages_count: int,
        has_tools: bool,
    ) -> None:
        """Log an LLM API request."""
        self._write(
            conversation_id,
            "llm_request",
            model=model,
            messages_count=messages_count,
            has_tools=has_tools,
        )

    def log_llm_response(
        self,
        conversation_id: str,
        has_content: bool,
        tool_calls_count: int,
        finish_reason: str | None = None,
    ) -> None:
        """Log an LLM API response."""
        self._write(
            conversation_id,
            "llm_response",
            has_content=has_content,
            tool_calls_count=tool_calls_count,
            finish_reason=finish_reason,
        )

    def log_tool_call(
        self,
        conversation_id: str,
        tool_name: str,
        tool_args: dict[str, Any],
        tool_call_id: str | None = None,
    ) -> None:
        """Log a tool call from the LLM."""
        self._write(
            conversation_id,
            "tool_call",
            tool_name=tool_name,
            tool_args=tool_args,
            tool_call_id=tool_call_id,
        )

    def log_tool_result(
        self,
        conversation_id: str,
        tool_name: str,
        success: bool,
        output: str,
        error: str | None = None,
        tool_call_id: str | None = None,
        duration_ms: float | None = None,
    ) -> None:
        """Log the result of a tool execution."""
        self._write(
            conversation_id,
            "tool_result",
            tool_name=tool_name,
            success=success,
            output=output[:MAX_LOGGED_OUTPUT] if output else "",
            error=error,
            tool_call_id=tool_call_id,
            duration_ms=duration_ms,
        )

    def log_error(self, conversation_id: str, error: str, context: str | None = None) -> None:
        """Log an error."""
        self._write(conversation_id, "error", error=error, context=context)

    def log_session_start(self, conversation_id: str, user_id: str | None = None) -> None:
        """Log session start."""
        self._write(conversation_id, "session_start", user_id=user_id)

    def log_session_end(self, conversation_id: str, reason: str = "normal") -> None:
        """Log session end."""
        self._write(conversation_id, "session_end", reason=reason)

    def log_agent_stop(
        self,
        conversation_id: str,
        stop_reason: str,
        turns: int,
        tool_calls_total: int,
    ) -> None:
        """Log when agent loop stops."""
        self._write(
            conversation_id,
            "agent_stop",
            stop_reason=stop_reason,
            turns=turns,
            tool_calls_total=tool_calls_total,
        )


# Global instance
_conversation_logger: ConversationLogger | None = None


def get_conversation_logger(log_dir: Path | str | None = None) -> ConversationLogger:
    """Get or create the global conversation logger."""
    global _conversation_logger
    if _conversation_logger is None:
        _conversation_logger = ConversationLogger(log_dir=log_dir)
    return _conversation_logger


def reset_conversation_logger() -> None:
    """Reset the global conversation logger (for testing)."""
    global _conversation_logger
    _conversation_logger = None
