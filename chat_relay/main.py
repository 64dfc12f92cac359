import logging

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from chat_relay import llm
from chat_relay.config import Settings
from chat_relay.errors import BadRequestError, RelayError, UpstreamError
from chat_relay.observability import RequestLoggingMiddleware, configure_logging
from chat_relay.schemas import (
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    HealthResponse,
    UploadResponse,
)
from chat_relay.uploads import staged_upload

logger = logging.getLogger("chat_relay.main")

DEFAULT_UPLOAD_PROMPT = "Generate an image based on the uploaded file."
UPLOAD_ACK = "Image generated successfully."
CHAT_FAILURE = "Error communicating with OpenAI"
UPLOAD_FAILURE = "Error processing the image upload"
NO_FILE = "No file uploaded."
INVALID_CHAT_BODY = "Invalid request: 'messages' must be a list of {role, content} entries."

_FAILURE_BY_PATH = {"/api/chat": CHAT_FAILURE, "/api/upload": UPLOAD_FAILURE}

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    settings.require_credential()
    configure_logging(settings)

    app = FastAPI(title="Chat Relay", version="0.1.0")
    app.state.settings = settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    _register_error_handlers(app)

    @app.get("/health", response_model=HealthResponse)
    def health(settings: Settings = Depends(get_settings)) -> HealthResponse:
        return HealthResponse(status="ok", model=settings.chat_model)

    @app.post("/api/chat", response_model=ChatResponse, responses=_ERROR_RESPONSES)
    async def chat(
        request: ChatRequest,
        settings: Settings = Depends(get_settings),
    ) -> ChatResponse:
        try:
            reply = await llm.create_chat_completion(settings, request.messages)
        except UpstreamError as exc:
            logger.error("chat_upstream_failed", extra={"upstream_cause": exc.cause})
            raise RelayError(CHAT_FAILURE) from exc
        return ChatResponse(reply=reply)

    @app.post(
        "/api/upload",
        response_model=UploadResponse,
        responses={**_ERROR_RESPONSES, 413: {"model": ErrorResponse}},
    )
    async def upload(
        file: UploadFile | None = File(None),
        text: str | None = Form(None),
        settings: Settings = Depends(get_settings),
    ) -> UploadResponse:
        if file is None or not file.filename:
            raise BadRequestError(NO_FILE)

        prompt = text or DEFAULT_UPLOAD_PROMPT
        async with staged_upload(file, settings.upload_dir, settings.max_upload_bytes):
            try:
                image_url = await llm.generate_image(settings, prompt)
            except UpstreamError as exc:
                logger.error("upload_upstream_failed", extra={"upstream_cause": exc.cause})
                raise RelayError(UPLOAD_FAILURE) from exc
        return UploadResponse(reply=UPLOAD_ACK, image_url=image_url)

    return app


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RelayError)
    async def relay_error_handler(_: Request, exc: RelayError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("request_rejected", extra={"path": request.url.path})
        message = NO_FILE if request.url.path == "/api/upload" else INVALID_CHAT_BODY
        return JSONResponse(status_code=400, content={"error": message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_error", extra={"path": request.url.path})
        message = _FAILURE_BY_PATH.get(request.url.path, "Internal server error")
        return JSONResponse(status_code=500, content={"error": message})
