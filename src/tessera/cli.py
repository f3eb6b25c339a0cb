"""CLI interface for Tessera."""

import os
import uuid
from collections.abc import Sequence

from groq import AsyncGroq

from .agent import AgentLoop, StopReason
from .config import Settings, build_memory_manager, load_config
from .logging import configure_logger, get_logger
from .memory import MemoryManager, MemoryServiceError, SemanticMemory, memory_tools
from .tools import ToolRegistry

BANNER = """
╔══════════════════════════════════════════╗
║             Tessera v0.1.0               ║
║     Assistant with semantic memory       ║
╚══════════════════════════════════════════╝

Commands:
  /memories     - List what I remember about you
  /search <q>   - Search your memories
  /forget <id>  - Delete a memory
  /reset        - Start a new conversation
  /help         - Show this help
  /exit, /quit  - Exit the CLI

Type your message and press Enter.
"""


def format_memories(memories: Sequence[SemanticMemory], scores: Sequence[float | None] = ()) -> str:
    """Render memories as numbered lines for the terminal."""
    if not memories:
        return "No memories yet."
    lines = []
    for index, memory in enumerate(memories):
        line = f"  [{memory.id}] {memory.display_text} (importance {memory.importance})"
        score = scores[index] if index < len(scores) else None
        if score is not None:
            line += f" score={score:.3f}"
        lines.append(line)
    return "\n".join(lines)


class CLI:
    """Interactive command-line interface for Tessera."""

    def __init__(
        self,
        settings: Settings | None = None,
        memory: MemoryManager | None = None,
        groq_client: AsyncGroq | None = None,
        user_id: str | None = None,
    ) -> None:
        self.settings = settings or load_config()
        self.memory = memory or build_memory_manager(self.settings)
        self.user_id = user_id or self.settings.default_user
        self.groq_client = groq_client
        self.registry = ToolRegistry(memory_tools(self.memory, self.user_id))
        self.chat_id = self._new_chat_id()
        self.agent: AgentLoop | None = None
        self.logger = get_logger()
        self._history: list[dict[str, str]] = []

    def _new_chat_id(self) -> str:
        """Generate a new conversation ID."""
        return f"cli-{uuid.uuid4().hex[:8]}"

    def _init_agent(self) -> None:
        """Initialize or reinitialize the agent."""
        self.agent = AgentLoop(
            self.registry,
            self.settings.agent,
            groq_client=self.groq_client,
            memory=self.memory,
            user_id=self.user_id,
        )
        self.logger.set_chat_id(self.chat_id)
        self.logger.log("session_start", chat_id=self.chat_id, user_id=self.user_id)
        self._history = []

    async def _reset(self) -> None:
        """Start a new conversation. Memories are kept."""
        old_chat_id = self.chat_id
        if self.agent:
            await self.agent.on_session_end()

        self.chat_id = self._new_chat_id()
        self._init_agent()
        self.logger.log("session_reset", old_chat_id=old_chat_id, chat_id=self.chat_id)
        print(f"\n✓ New conversation: {self.chat_id}")

    def _format_response(self, response: str, stop_reason: StopReason, turns: int) -> str:
        """Format the agent's response for display."""
        output = ["\n" + "─" * 40]
        output.append(response)
        output.append("─" * 40)

        if stop_reason != StopReason.COMPLETE:
            output.append(f"⚠ Stopped: {stop_reason.value} (turns: {turns})")

        return "\n".join(output)

    async def _process_message(self, message: str) -> None:
        """Process a user message through the agent."""
        if self.agent is None:
            self._init_agent()

        assert self.agent is not None

        try:
            result = await self.agent.run(message, chat_id=self.chat_id, history=self._history)
        except Exception as e:
            print(f"\n❌ Error: {e}")
            self.logger.log("error", chat_id=self.chat_id, error=str(e))
            return

        self._history.append({"role": "user", "content": message})
        self._history.append({"role": "assistant", "content": result.response})

        print(self._format_response(result.response, result.stop_reason, result.turns))
        self.logger.log_agent_stop(
            result.stop_reason.value,
            chat_id=self.chat_id,
            turns=result.turns,
        )

    async def _show_memories(self) -> None:
        memories = await self.memory.list_memories(self.user_id)
        print(f"\n🧠 {len(memories)} memor{'y' if len(memories) == 1 else 'ies'}:")
        print(format_memories(memories))

    async def _search(self, query: str) -> None:
        result = await self.memory.search(query, self.user_id)
        if result.degraded:
            print("\n⚠ Embeddings unavailable, showing text matches")
        print(f"\n🔎 {len(result)} result(s):")
        print(format_memories(result.memories, result.scores))

    async def _forget(self, argument: str) -> None:
        try:
            memory_id = int(argument)
        except ValueError:
            print("\nUsage: /forget <id>")
            return
        memory = await self.memory.delete(self.user_id, memory_id)
        print(f"\n🗑 Forgot: {memory.display_text}")

    async def _handle_command(self, command: str) -> bool:
        """Handle a special command. Returns True if should continue, False to exit."""
        name, _, argument = command.strip().partition(" ")
        name = name.lower()
        argument = argument.strip()

        if name in ("/exit", "/quit", "exit", "quit"):
            if self.agent:
                await self.agent.on_session_end()
            print("\n👋 Goodbye!")
            self.logger.log("session_end", chat_id=self.chat_id)
            return False

        try:
            if name == "/reset":
                await self._reset()
            elif name == "/help":
                print(BANNER)
            elif name == "/memories":
                await self._show_memories()
            elif name == "/search":
                if not argument:
                    print("\nUsage: /search <query>")
                else:
                    await self._search(argument)
            elif name == "/forget":
                await self._forget(argument)
            else:
                print(f"\nUnknown command: {name}. Type /help for the list.")
        except MemoryServiceError as e:
            print(f"\n❌ Error: {e.message}")
            self.logger.log("error", chat_id=self.chat_id, error=e.message, command=name)

        return True

    async def run(self) -> None:
        """Run the interactive CLI."""
        print(BANNER)
        print(f"Session: {self.chat_id} (user: {self.user_id})\n")

        self._init_agent()

        try:
            while True:
                try:
                    user_input = input("you> ").strip()

                    if not user_input:
                        continue

                    if user_input.startswith("/") or user_input.lower() in ("exit", "quit"):
                        if not await self._handle_command(user_input):
                            break
                        continue

                    await self._process_message(user_input)

                except KeyboardInterrupt:
                    print("\n\n⚡ Interrupted")
                    try:
                        confirm = input("Exit? (y/n): ").strip().lower()
                        if confirm in ("y", "yes"):
                            print("👋 Goodbye!")
                            self.logger.log("session_interrupt", chat_id=self.chat_id)
                            break
                    except (KeyboardInterrupt, EOFError):
                        print("\n👋 Goodbye!")
                        break

                except EOFError:
                    print("\n👋 Goodbye!")
                    break
        finally:
            # Let background memory writes land before closing the store
            await self.memory.drain()
            self.memory.store.close()


async def run_cli(user_id: str | None = None) -> None:
    """Run the CLI with configuration from the environment."""
    settings = load_config()
    configure_logger(settings.home / "logs")

    if not os.getenv("GROQ_API_KEY"):
        print("❌ Error: GROQ_API_KEY environment variable not set")
        print("Please set it in your .env file or environment")
        return

    cli = CLI(settings=settings, user_id=user_id)
    await cli.run()
