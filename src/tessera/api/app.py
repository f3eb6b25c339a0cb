"""FastAPI application exposing memories and chat over HTTP.

Run with:
    tessera serve --host 127.0.0.1 --port 8000
"""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from groq import AsyncGroq

from ..agent import DEFAULT_USER_ID, AgentConfig, AgentLoop
from ..memory import MemoryManager, MemoryServiceError, memory_tools
from ..tools import ToolRegistry
from . import routes

logger = logging.getLogger(__name__)

AgentFactory = Callable[[str], AgentLoop]


def default_agent_factory(
    memory: MemoryManager,
    config: AgentConfig | None = None,
    groq_client: AsyncGroq | None = None,
) -> AgentFactory:
    """Build agents whose memory tools are bound to the requesting user."""

    def factory(user_id: str) -> AgentLoop:
        registry = ToolRegistry(memory_tools(memory, user_id))
        return AgentLoop(
            registry,
            config,
            groq_client=groq_client,
            memory=memory,
            user_id=user_id,
        )

    return factory


def create_app(
    memory: MemoryManager,
    agent_factory: AgentFactory | None = None,
    default_user: str = DEFAULT_USER_ID,
) -> FastAPI:
    """Create the API application.

    Args:
        memory: Memory manager shared by all requests.
        agent_factory: Builds the agent for a user; by default a Groq
            agent with the memory tools.
        default_user: Identity used when a request has no ``x-user-id``.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        # Let background memory writes land before closing the store
        await memory.drain()
        memory.store.close()

    app = FastAPI(
        title="Tessera API",
        description="Chat assistant with per-user semantic memory",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.memory = memory
    app.state.default_user = default_user
    app.state.agent_factory = agent_factory or default_agent_factory(memory)

    @app.exception_handler(MemoryServiceError)
    async def memory_error_handler(request: Request, exc: MemoryServiceError) -> JSONResponse:
        if exc.status >= 500:
            logger.warning(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return JSONResponse(status_code=400, content={"error": message})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"error": "Internal error"})

    app.include_router(routes.router)
    return app
