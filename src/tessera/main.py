"""Tessera entry point."""

import argparse
import asyncio
import sys

from dotenv import find_dotenv, load_dotenv

from .cli import run_cli


def create_parser() -> argparse.ArgumentParser:
    """Create the top-level argument parser."""
    parser = argparse.ArgumentParser(
        prog="tessera",
        description="Chat assistant with per-user semantic memory",
    )

    subparsers = parser.add_subparsers(dest="command", help="Sub-command help")

    # chat command (default)
    chat_parser = subparsers.add_parser("chat", help="Start the interactive chat")
    chat_parser.add_argument("-u", "--user", help="User id to chat as")

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", help="Bind address (default TESSERA_HOST)")
    serve_parser.add_argument("--port", type=int, help="Port (default TESSERA_PORT)")

    return parser


def serve(host: str | None = None, port: int | None = None) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from .api import create_app, default_agent_factory
    from .config import build_memory_manager, load_config
    from .logging import configure_logger

    settings = load_config()
    configure_logger(settings.home / "logs")
    memory = build_memory_manager(settings)
    app = create_app(
        memory,
        agent_factory=default_agent_factory(memory, settings.agent),
        default_user=settings.default_user,
    )
    uvicorn.run(app, host=host or settings.host, port=port or settings.port)


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    load_dotenv(find_dotenv(usecwd=True))

    args = create_parser().parse_args(argv)

    try:
        if args.command == "serve":
            serve(args.host, args.port)
            return

        asyncio.run(run_cli(user_id=getattr(args, "user", None)))
    except ValueError as e:
        # Malformed numeric environment variable
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
