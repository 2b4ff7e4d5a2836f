import logging
import sys
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from pydantic_core import _pydantic_core
from sqlalchemy import text
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request

from api.shared.exceptions import RecordsAssistantError
from core.logging import configure_logging
from core.settings import SETTINGS
from di.container import ApplicationContainer as DependencyContainer

configure_logging(SETTINGS.APP)

logger = logging.getLogger("records")


class CustomFastAPI(FastAPI):
    container: DependencyContainer


@asynccontextmanager
async def lifespan(_app: CustomFastAPI):
    logger.info("Starting application initialization...")
    start_time = time.time()

    try:
        logger.info("Initializing database connection...")
        db_start = time.time()
        db_resource = _app.container.infrastructure.database()
        await db_resource.init()
        async with db_resource.engine.begin() as _conn:
            await _conn.execute(text("SET statement_timeout = '8s'"))
            await _conn.execute(text("SELECT 1"))
            logger.info(
                f"✅ Database connection established in {time.time() - db_start:.2f}s"
            )

        model_state = (
            "configured"
            if _app.container.infrastructure.llm() is not None
            else "disabled (fallback answers only)"
        )
        logger.info(f"Chat model {SETTINGS.OPENAI.OPENAI_MODEL}: {model_state}")

        logger.info(
            f"✅ Application startup completed in {time.time() - start_time:.2f}s"
        )
    except Exception as e:
        logger.exception(f"❌ Failed to initialize application: {str(e)}")
        raise

    yield

    try:
        pipeline = _app.container.services.query_pipeline()
        await pipeline.wait_for_pending()
        db_resource = _app.container.infrastructure.database()
        if db_resource:
            await db_resource.shutdown()
        logger.info("Application shutdown complete")
    except Exception as e:
        logger.exception(f"Error during shutdown: {e}")


def create_fastapi_app() -> CustomFastAPI:
    origins = {
        "*",
        "http://localhost",
        "http://localhost:3000",
        "http://localhost:8000",
    }

    _app = CustomFastAPI(
        title="Records Assistant API",
        description="Natural-language questions over the congregation records store",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    _app.container = DependencyContainer()
    _app.container.wire(modules=[sys.modules[__name__]])
    _app.container.init_resources()

    _app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    from api.features.chatbot.router import router as chatbot_router

    _app.include_router(chatbot_router, prefix="/api/v1/chatbot", tags=["Chatbot"])

    return _app


app = create_fastapi_app()


@app.get("/")
async def root():
    return {"message": "Records Assistant API is running", "status": "ok"}


@app.get("/health")
async def health():
    return {"status": "ok"}


def _error_response(status_code: int, error: str, detail, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "detail": detail, "status_code": status_code, **extra},
    )


@app.exception_handler(404)
async def not_found_handler(request: Request, exc: HTTPException):
    return _error_response(404, "Not Found", f"{exc.detail} : {request.url}")


async def validation_exception_handler(request: Request, exc: Exception):
    return _error_response(422, "Validation Error", str(exc))


app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(_pydantic_core.ValidationError, validation_exception_handler)


@app.exception_handler(RecordsAssistantError)
async def records_assistant_error_handler(request: Request, exc: RecordsAssistantError):
    status_code = 400 if exc.error_code == "VALIDATION_ERROR" else 500
    return _error_response(status_code, exc.error_code, exc.message, details=exc.details)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled exception on {request.url.path}: {exc}")
    return _error_response(500, "Internal Server Error", "An unexpected error occurred")
