"""Main FastAPI application: catalog, generation and A2A endpoints."""

import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import Body, FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from . import __version__
from .a2a import (
    A2AMessage,
    A2UIAgentExecutor,
    QueueEventBus,
    RequestContext,
    build_agent_card,
)
from .catalog_cache import CatalogCache, InMemoryCatalogCache
from .catalog_store import SqliteCatalogCache
from .config import Settings, settings
from .engines import AnthropicEngine, GenerationEngine
from .exceptions import BridgeError, InputError, InvalidSessionError
from .generator import UiGenerator
from .logging_config import setup_logging
from .models.conversation import GenerateUiRequest
from .schema_converter import convert_schema

# Setup logging
setup_logging(level=settings.LOG_LEVEL, debug=settings.DEBUG)
logger = logging.getLogger(__name__)

# JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602


def create_catalog_cache(config: Settings) -> CatalogCache:
    if config.CATALOG_BACKEND == "sqlite":
        logger.info(f"Using SQLite catalog store at {config.CATALOG_DB_PATH}")
        return SqliteCatalogCache(config.CATALOG_DB_PATH, ttl_minutes=config.CATALOG_TTL_MINUTES)
    return InMemoryCatalogCache(
        ttl_minutes=config.CATALOG_TTL_MINUTES,
        max_sessions=config.CATALOG_MAX_SESSIONS,
    )


def create_engine(config: Settings) -> GenerationEngine:
    return AnthropicEngine(
        api_key=config.ANTHROPIC_API_KEY,
        model=config.MODEL,
        max_tokens=config.MAX_TOKENS,
        max_tool_rounds=config.MAX_TOOL_ROUNDS,
    )


def error_status(error: BridgeError) -> int:
    if isinstance(error, InvalidSessionError):
        return 404
    if isinstance(error, InputError) or error.code == "unsupported_schema":
        return 400
    return 500


def jsonrpc_error(request_id: Any, code: int, message: str) -> JSONResponse:
    return JSONResponse({
        "jsonrpc": "2.0",
        "id": request_id,
        "error": {"code": code, "message": message},
    })


def sse_event(request_id: Any, result: Dict[str, Any]) -> str:
    payload = {"jsonrpc": "2.0", "id": request_id, "result": result}
    return f"data: {json.dumps(payload)}\n\n"


def create_app(
    config: Optional[Settings] = None,
    engine: Optional[GenerationEngine] = None,
    catalog_cache: Optional[CatalogCache] = None,
) -> FastAPI:
    """
    Build the application.

    The engine and catalog cache are created from settings unless given.
    """
    config = config or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan: startup and shutdown."""
        logger.info(f"Starting {config.PROJECT_NAME}...")

        cache = catalog_cache or create_catalog_cache(config)
        gen_engine = engine or create_engine(config)
        generator = UiGenerator(
            gen_engine,
            catalog_cache=cache,
            translation_mode=config.TRANSLATION_MODE,
            forward_final_text=config.FORWARD_FINAL_TEXT,
            include_catalog_in_prompt=config.INCLUDE_CATALOG_IN_PROMPT,
            schema_max_depth=config.SCHEMA_MAX_DEPTH,
        )

        app.state.catalog_cache = cache
        app.state.engine = gen_engine
        app.state.generator = generator
        app.state.executor = A2UIAgentExecutor(generator)

        cache.start_cleanup_task(config.CATALOG_CLEANUP_INTERVAL_SECONDS)
        logger.info(f"Translation mode: {config.TRANSLATION_MODE}")
        logger.info(f"{config.PROJECT_NAME} started successfully")

        yield

        logger.info("Shutting down gracefully...")
        await cache.close()
        await gen_engine.shutdown()
        logger.info("Shutdown complete")

    app = FastAPI(
        title=config.PROJECT_NAME,
        version=__version__,
        lifespan=lifespan,
    )

    @app.exception_handler(BridgeError)
    async def bridge_error_handler(request: Request, exc: BridgeError):
        return JSONResponse(status_code=error_status(exc), content={"error": exc.to_dict()})

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint."""
        return {
            "status": "ok",
            "service": config.PROJECT_NAME,
            "active_sessions": await request.app.state.catalog_cache.count(),
            "active_tasks": len(request.app.state.executor.tasks.list_active_tasks()),
        }

    @app.put("/sessions/{session_id}/catalog")
    async def put_catalog(request: Request, session_id: str, catalog: Dict[str, Any] = Body(...)):
        """
        Store the widget catalog for a session.

        The catalog is converted once up front so an unsupported schema is
        rejected here rather than at generation time.
        """
        convert_schema(catalog, name="Widget", max_depth=config.SCHEMA_MAX_DEPTH)
        await request.app.state.catalog_cache.put(session_id, catalog)
        logger.info(f"Stored catalog for session {session_id}")
        return {"sessionId": session_id, "status": "stored"}

    @app.delete("/sessions/{session_id}/catalog")
    async def delete_catalog(request: Request, session_id: str):
        await request.app.state.catalog_cache.delete(session_id)
        return {"sessionId": session_id, "status": "deleted"}

    @app.post("/generate")
    async def generate(request: Request, body: GenerateUiRequest):
        """
        Stream A2UI messages as NDJSON.

        Each line is ``{"message": ...}``; the last line is ``{"result": ...}``
        or ``{"error": ...}`` if generation failed mid-stream.
        """
        generator: UiGenerator = request.app.state.generator
        prepared = await generator.prepare(body)
        channel = generator.stream(prepared)

        async def lines() -> AsyncIterator[str]:
            try:
                async for message in channel:
                    yield json.dumps({"message": message}) + "\n"
            except BridgeError as e:
                yield json.dumps({"error": e.to_dict()}) + "\n"
                return
            except Exception as e:
                yield json.dumps({"error": {"code": "generation_failed", "message": str(e)}}) + "\n"
                return

            response = channel.response
            yield json.dumps({"result": response.model_dump() if response else None}) + "\n"

        return StreamingResponse(lines(), media_type="application/x-ndjson")

    @app.get("/.well-known/agent-card.json")
    async def agent_card():
        url = config.AGENT_URL or f"http://{config.HOST}:{config.PORT}/a2a"
        return build_agent_card(config.PROJECT_NAME, url, __version__)

    @app.post("/a2a")
    async def a2a_endpoint(request: Request):
        """JSON-RPC entry point: ``message/stream`` and ``tasks/cancel``."""
        try:
            body = await request.json()
        except ValueError as e:
            logger.error(f"Failed to parse request body: {e}")
            return jsonrpc_error(None, PARSE_ERROR, "Parse error")

        if not isinstance(body, dict):
            return jsonrpc_error(None, INVALID_REQUEST, "Invalid request")

        request_id = body.get("id")
        method = body.get("method", "")
        params = body.get("params") or {}
        executor: A2UIAgentExecutor = request.app.state.executor

        if method == "tasks/cancel":
            task_id = params.get("id")
            if not task_id:
                return jsonrpc_error(request_id, INVALID_PARAMS, "Missing task id")
            await executor.cancel_task(task_id, QueueEventBus())
            return JSONResponse({
                "jsonrpc": "2.0",
                "id": request_id,
                "result": {"id": task_id, "kind": "task", "status": {"state": "canceled"}},
            })

        if method != "message/stream":
            return jsonrpc_error(request_id, METHOD_NOT_FOUND, f"Method not found: {method}")

        try:
            message = A2AMessage.model_validate(params.get("message") or {})
        except ValidationError as e:
            return jsonrpc_error(request_id, INVALID_PARAMS, str(e))

        context = RequestContext(
            task_id=message.taskId or str(uuid.uuid4()),
            context_id=message.contextId or str(uuid.uuid4()),
            message=message,
        )
        bus = QueueEventBus()

        async def events() -> AsyncIterator[str]:
            task = asyncio.create_task(executor.execute(context, bus))
            try:
                async for event in bus.events():
                    yield sse_event(request_id, event)

                state = await task
                yield sse_event(request_id, {
                    "kind": "status-update",
                    "taskId": context.task_id,
                    "contextId": context.context_id,
                    "status": {"state": state},
                    "final": True,
                })
            finally:
                if not task.done():
                    await executor.cancel_task(context.task_id, bus)
                    task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        return StreamingResponse(events(), media_type="text/event-stream")

    return app


# Create FastAPI app
app = create_app()
