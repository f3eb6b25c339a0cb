"""Agent loop implementation."""

from __future__ import annotations

import json
import os
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from groq import AsyncGroq

from ..conversation_logger import ConversationLogger, get_conversation_logger
from ..tools import ToolRegistry, ToolResult
from .prompt import build_system_prompt, format_tool_result

if TYPE_CHECKING:
    from ..memory import MemoryManager

DEFAULT_USER_ID = "default_user"


class StopReason(Enum):
    """Reasons for stopping the agent loop."""

    COMPLETE = "complete"
    MAX_TURNS = "max_turns"
    REPEATED_CALL = "repeated_call"
    CONSECUTIVE_ERRORS = "consecutive_errors"


@dataclass
class AgentConfig:
    """Configuration for the agent loop."""

    model: str = "llama-3.1-70b-versatile"
    max_turns: int = 10
    max_consecutive_errors: int = 3
    max_repeated_calls: int = 2
    remember_exchanges: bool = True


@dataclass
class AgentResult:
    """Result from running the agent loop."""

    response: str
    stop_reason: StopReason
    turns: int
    tool_calls: list[dict[str, Any]] = field(default_factory=list)
    memories_used: int = 0


class AgentLoop:
    """Main agent loop: recall → think → act → observe → remember.

    Before the first model call the latest user message is used to pull
    relevant memories into the system prompt. Once the model answers, the
    exchange is handed to the memory manager as a background write so the
    reply is never held up by embedding or storage.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        config: AgentConfig | None = None,
        groq_client: AsyncGroq | None = None,
        memory: MemoryManager | None = None,
        conversation_logger: ConversationLogger | None = None,
        user_id: str = DEFAULT_USER_ID,
    ) -> None:
        self.registry = registry
        self.config = config or AgentConfig()
        self.client = groq_client or AsyncGroq(api_key=os.getenv("GROQ_API_KEY"))
        self.memory = memory
        self.conv_logger = conversation_logger or get_conversation_logger()
        self.user_id = user_id
        self._last_tool_call: str | None = None
        self._repeated_count: int = 0
        self._consecutive_errors: int = 0

    def _reset_state(self) -> None:
        """Reset loop state for a new run."""
        self._last_tool_call = None
        self._repeated_count = 0
        self._consecutive_errors = 0

    def _check_repeated_call(self, tool_call: dict[str, Any]) -> bool:
        """Check if this is a repeated tool call."""
        call_sig = json.dumps(tool_call, sort_keys=True)
        if call_sig == self._last_tool_call:
            self._repeated_count += 1
            return self._repeated_count >= self.config.max_repeated_calls
        self._last_tool_call = call_sig
        self._repeated_count = 1
        return False

    async def build_instructions(
        self, message: str, chat_id: str | None = None
    ) -> tuple[str, int]:
        """System prompt for a turn and the number of memories in it."""
        base_prompt = build_system_prompt(self.registry.get_tools_schema())
        if not self.memory:
            return base_prompt, 0

        instructions, memories = await self.memory.augment(
            base_prompt, message, self.user_id, chat_id=chat_id
        )
        if chat_id and memories:
            self.conv_logger.log_memory_context(chat_id, [m.id for m in memories])
        return instructions, len(memories)

    def _remember(self, message: str, response: str, chat_id: str | None) -> None:
        if self.memory and self.config.remember_exchanges and response:
            self.memory.schedule_remember(
                self.user_id, message, response, conversation_id=chat_id
            )

    async def _call_model(
        self,
        messages: list[dict[str, Any]],
        tools_schema: list[dict[str, Any]],
        chat_id: str | None,
    ) -> Any:
        """One chat completion; returns the assistant message."""
        if chat_id:
            self.conv_logger.log_llm_request(
                chat_id,
                model=self.config.model,
                messages_count=len(messages),
                has_tools=bool(tools_schema),
            )

        response = await self.client.chat.completions.create(
            model=self.config.model,
            messages=messages,
            tools=tools_schema or None,
            tool_choice="auto" if tools_schema else None,
        )
        choice = response.choices[0]

        if chat_id:
            self.conv_logger.log_llm_response(
                chat_id,
                has_content=bool(choice.message.content),
                tool_calls_count=len(choice.message.tool_calls or []),
                finish_reason=choice.finish_reason,
            )
        return choice.message

    async def _run_tool(
        self, tool_call: Any, tool_args: dict[str, Any], chat_id: str | None
    ) -> ToolResult:
        """Dispatch one tool call and log its outcome."""
        start = time.perf_counter()
        result = await self.registry.dispatch(tool_call.function.name, tool_args)
        duration_ms = (time.perf_counter() - start) * 1000

        if chat_id:
            self.conv_logger.log_tool_result(
                chat_id,
                tool_name=tool_call.function.name,
                success=result.success,
                output=result.output,
                error=result.error,
                tool_call_id=tool_call.id,
                duration_ms=duration_ms,
            )
        return result

    async def run(
        self,
        message: str,
        chat_id: str | None = None,
        history: list[dict[str, Any]] | None = None,
    ) -> AgentResult:
        """Answer one user message.

        Args:
            message: The current user message.
            chat_id: Conversation id; transcripts are only written with one.
            history: Earlier user/assistant messages, placed between the
                system prompt and ``message``.

        Returns:
            AgentResult with the reply, why the loop stopped, and how many
            memories were in the prompt.
        """
        self._reset_state()

        instructions, memories_used = await self.build_instructions(message, chat_id)
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": instructions},
            *(history or []),
            {"role": "user", "content": message},
        ]

        if chat_id:
            self.conv_logger.log_user_message(chat_id, message, user_id=self.user_id)

        calls: list[dict[str, Any]] = []
        tools_schema = self.registry.get_tools_schema()

        def stop(response: str, reason: StopReason, turns: int) -> AgentResult:
            return self._stop(response, reason, turns, calls, memories_used, chat_id)

        for turn in range(1, self.config.max_turns + 1):
            reply = await self._call_model(messages, tools_schema, chat_id)

            if not reply.tool_calls:
                final_response = reply.content or ""
                if chat_id:
                    self.conv_logger.log_assistant_message(chat_id, final_response)
                # Remember after the reply is ready; the write runs in the background
                self._remember(message, final_response, chat_id)
                return stop(final_response, StopReason.COMPLETE, turn)

            # Only fields accepted by the Groq API
            messages.append({
                "role": reply.role,
                "content": reply.content,
                "tool_calls": [
                    {
                        "id": tc.id,
                        "type": tc.type,
                        "function": {"name": tc.function.name, "arguments": tc.function.arguments},
                    }
                    for tc in reply.tool_calls
                ],
            })

            for tool_call in reply.tool_calls:
                try:
                    tool_args = json.loads(tool_call.function.arguments)
                except json.JSONDecodeError:
                    tool_args = {}

                call_record = {"name": tool_call.function.name, "args": tool_args}
                calls.append(call_record)
                if chat_id:
                    self.conv_logger.log_tool_call(
                        chat_id,
                        tool_name=tool_call.function.name,
                        tool_args=tool_args,
                        tool_call_id=tool_call.id,
                    )

                if self._check_repeated_call(call_record):
                    return stop(
                        "Stopped: repeated tool call detected", StopReason.REPEATED_CALL, turn
                    )

                result = await self._run_tool(tool_call, tool_args, chat_id)

                self._consecutive_errors = 0 if result.success else self._consecutive_errors + 1
                if self._consecutive_errors >= self.config.max_consecutive_errors:
                    return stop(
                        f"Stopped: {self.config.max_consecutive_errors} consecutive errors",
                        StopReason.CONSECUTIVE_ERRORS,
                        turn,
                    )

                messages.append({
                    "role": "tool",
                    "tool_call_id": tool_call.id,
                    "content": format_tool_result(
                        tool_call.function.name, result.success, result.output, result.error
                    ),
                })

        return stop("Max turns reached", StopReason.MAX_TURNS, self.config.max_turns)

    def _stop(
        self,
        response: str,
        reason: StopReason,
        turns: int,
        tool_calls: list[dict[str, Any]],
        memories_used: int,
        chat_id: str | None,
    ) -> AgentResult:
        if chat_id:
            self.conv_logger.log_agent_stop(
                chat_id,
                stop_reason=reason.value,
                turns=turns,
                tool_calls_total=len(tool_calls),
            )
        return AgentResult(
            response=response,
            stop_reason=reason,
            turns=turns,
            tool_calls=tool_calls,
            memories_used=memories_used,
        )

    async def on_session_end(self) -> None:
        """Hook called when a session ends: finish pending memory writes.

        This should be called when:
        - CLI: user exits the REPL (Ctrl+C, '/exit', etc.)
        - CLI: /reset starts a new conversation
        """
        if self.memory:
            await self.memory.drain()
