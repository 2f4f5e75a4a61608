from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend import build_gateway
from constants import AUTH_MODE, LOG_FILE, LOG_LEVEL, MAX_BODY_BYTES
from errors import ChatError, PayloadTooLarge
from logging_config import get_logger, setup_logging
from routers.auth import auth_router
from routers.calls import calls_router
from routers.messages import messages_router
from routers.rooms import rooms_router
from routers.users import users_router
from store import ChatStore

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)

AUTH_MODES = ("password", "guest")


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers={"Cache-Control": "no-store"})


class BodySizeLimitMiddleware:
    """Buffers the request body, answering 413 as soon as it grows past the limit.

    Bytes are counted as they arrive, so chunked uploads without a
    Content-Length are capped as well.
    """

    def __init__(self, app, max_body_bytes: int = MAX_BODY_BYTES):
        self.app = app
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        content_length = dict(scope.get("headers") or []).get(b"content-length", b"")
        if content_length.isdigit() and int(content_length) > self.max_body_bytes:
            await self._reject(scope, receive, send, int(content_length))
            return

        chunks = []
        received = 0
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] == "http.disconnect":
                return
            body = message.get("body", b"")
            received += len(body)
            if received > self.max_body_bytes:
                await self._reject(scope, receive, send, received)
                return
            chunks.append(body)
            more_body = message.get("more_body", False)

        buffered = {"type": "http.request", "body": b"".join(chunks), "more_body": False}
        replayed = False

        async def replay():
            nonlocal replayed
            if not replayed:
                replayed = True
                return buffered
            return await receive()

        await self.app(scope, replay, send)

    async def _reject(self, scope, receive, send, size: int):
        logger.warning(f"Rejected {scope.get('method')} {scope.get('path')}: body reached {size} bytes, limit {self.max_body_bytes}")
        response = error_response(PayloadTooLarge.status_code, "Body too large")
        await response(scope, receive, send)


def create_app(auth_mode: Optional[str] = None, gateway=None) -> FastAPI:
    """Build the API. `gateway` defaults to the one selected by KOVERS_STORAGE."""
    auth_mode = auth_mode or AUTH_MODE
    if auth_mode not in AUTH_MODES:
        raise ValueError(f"Unknown auth mode: {auth_mode!r}")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # A corrupt store raises here and the server never starts.
        store = ChatStore(gateway if gateway is not None else build_gateway())
        store.load()
        app.state.store = store
        logger.info(f"Kovers API ready, auth mode: {auth_mode}")
        yield

    app = FastAPI(title="Kovers Chat API", lifespan=lifespan)
    app.state.auth_mode = auth_mode

    async def catch_unexpected_errors(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unexpected error on {request.method} {request.url.path}: {e}", exc_info=True)
            return error_response(500, "Server error")

    # Last added runs first. CORS wraps everything so error responses carry its headers too.
    app.add_middleware(BaseHTTPMiddleware, dispatch=catch_unexpected_errors)
    app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=MAX_BODY_BYTES)

    # Configure CORS to allow all origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ChatError)
    async def chat_error_handler(request: Request, exc: ChatError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc)
        else:
            logger.debug(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = "Invalid request"
        if errors:
            first = errors[0]
            location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
        logger.warning(f"Invalid request to {request.url.path}: {message}")
        return error_response(400, message)

    @app.get("/api/health")
    def health():
        return {"service": "Kovers Chat API", "status": "ok"}

    for router in (auth_router, users_router, rooms_router, messages_router, calls_router):
        app.include_router(router, prefix="/api")

    logger.info("FastAPI application initialized")
    return app


app = create_app()
