"""Structured JSONL event log.

One JSON object per line in ``logs.jsonl`` under the log directory. The
file is rotated to ``logs_<timestamp>.jsonl`` once it grows past the size
limit. Memory events carry the user and memory ids as top-level fields so
they can be filtered without parsing ``extra``.
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class LogEntry:
    """One line of the event log."""

    timestamp: str
    event: str
    chat_id: str | None = None
    user_id: str | None = None
    memory_id: int | None = None
    duration_ms: float | None = None
    stopped_reason: str | None = None
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Fields that carry a value; unset fields and empty extras are dropped."""
        return {key: value for key, value in asdict(self).items() if value not in (None, {})}


class JSONLLogger:
    """Appends ``LogEntry`` records to a size-rotated JSONL file."""

    def __init__(
        self,
        log_dir: str | Path | None = None,
        filename: str = "logs.jsonl",
        max_size_mb: float = 10.0,
    ) -> None:
        self.log_dir = Path(log_dir) if log_dir is not None else Path.home() / ".tessera" / "logs"
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.filename = filename
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)
        self._current_chat_id: str | None = None

    @property
    def log_path(self) -> Path:
        return self.log_dir / self.filename

    def set_chat_id(self, chat_id: str | None) -> None:
        """Default chat_id for entries logged without one."""
        self._current_chat_id = chat_id

    def _rotate_if_needed(self) -> None:
        path = self.log_path
        if not path.exists() or path.stat().st_size < self.max_size_bytes:
            return
        # microseconds keep two rotations in the same second apart
        stamp = _utc_now().strftime("%Y%m%d_%H%M%S_%f")
        path.rename(self.log_dir / f"{path.stem}_{stamp}.jsonl")

    def _write(self, entry: LogEntry) -> None:
        self._rotate_if_needed()
        line = json.dumps(entry.to_dict(), ensure_ascii=False)
        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(line + "\n")

    def log(
        self,
        event: str,
        *,
        chat_id: str | None = None,
        user_id: str | None = None,
        memory_id: int | None = None,
        duration_ms: float | None = None,
        stopped_reason: str | None = None,
        error: str | None = None,
        **extra: Any,
    ) -> None:
        """Record an event. Keyword arguments beyond the known fields go to ``extra``."""
        self._write(
            LogEntry(
                timestamp=_utc_now().isoformat(),
                event=event,
                chat_id=chat_id or self._current_chat_id,
                user_id=user_id,
                memory_id=memory_id,
                duration_ms=duration_ms,
                stopped_reason=stopped_reason,
                error=error,
                extra=extra,
            )
        )

    # Memory events

    def log_memory_created(
        self,
        user_id: str,
        memory_id: int,
        importance: int,
        *,
        has_embedding: bool,
        source: str,
        duration_ms: float | None = None,
    ) -> None:
        self.log(
            "memory_created",
            user_id=user_id,
            memory_id=memory_id,
            duration_ms=duration_ms,
            importance=importance,
            has_embedding=has_embedding,
            source=source,
        )

    def log_memory_failure(
        self,
        event: str,
        error: str,
        *,
        user_id: str | None = None,
        chat_id: str | None = None,
    ) -> None:
        """Record a memory failure that was swallowed to keep a turn alive."""
        self.log(event, user_id=user_id, chat_id=chat_id, error=error)

    def log_memory_context(
        self,
        user_id: str,
        count: int,
        *,
        mode: str,
        degraded: bool,
        chat_id: str | None = None,
        duration_ms: float | None = None,
    ) -> None:
        """Record how many memories were injected into a turn."""
        self.log(
            "memory_context",
            chat_id=chat_id,
            user_id=user_id,
            duration_ms=duration_ms,
            count=count,
            mode=mode,
            degraded=degraded,
        )

    def log_agent_stop(
        self,
        reason: str,
        *,
        chat_id: str | None = None,
        turns: int | None = None,
    ) -> None:
        self.log("agent_stop", chat_id=chat_id, stopped_reason=reason, turns=turns)


_logger: JSONLLogger | None = None


def get_logger() -> JSONLLogger:
    """The process-wide event logger, created on first use."""
    global _logger
    if _logger is None:
        _logger = JSONLLogger()
    return _logger


def configure_logger(log_dir: str | Path | None = None, max_size_mb: float = 10.0) -> JSONLLogger:
    """Replace the process-wide event logger."""
    global _logger
    _logger = JSONLLogger(log_dir=log_dir, max_size_mb=max_size_mb)
    return _logger
