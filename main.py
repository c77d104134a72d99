"""
Ask AI Bridge - FastAPI application that lets an editor ask an AI about selected text.
Streams answers from any OpenAI-compatible chat completion endpoint and keeps
per-session conversation history for follow-up questions.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from auth import APIKeyMiddleware
from config import Config
from routes import ask_stream, sessions_route, settings_route, text_route
from utils.http_client import HTTPClientManager
from utils.logger import app_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    yield
    await HTTPClientManager.close_all()

app = FastAPI(title=Config.APP_TITLE, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors with user-friendly messages"""
    errors = exc.errors()
    app_logger.error(f"Validation error for {request.url}")
    app_logger.error(f"Errors: {errors}")

    if errors:
        first_error = errors[0]
        error_type = first_error.get('type', '')
        field = first_error.get('loc', [])[-1] if first_error.get('loc') else 'field'

        if error_type == 'string_too_long':
            max_length = first_error.get('ctx', {}).get('max_length', 'unknown')
            current_length = len(first_error.get('input', ''))
            message = f"Field '{field}' exceeds maximum length of {max_length} characters (current: {current_length})"
        elif error_type == 'string_too_short':
            message = f"Field '{field}' must not be empty"
        else:
            message = first_error.get('msg', 'Validation error')
            message = f"{field}: {message}"

        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "detail": [{
                    "msg": message,
                    "type": error_type,
                    "loc": list(first_error.get('loc', []))
                }]
            },
        )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.errors()},
    )


app.add_middleware(APIKeyMiddleware)

@app.get("/")
async def root():
    """Root endpoint - health check."""
    return {"message": "Ask AI Bridge is running"}

app.include_router(ask_stream.router, tags=["ask"])
app.include_router(sessions_route.router, tags=["sessions"])
app.include_router(settings_route.router, tags=["settings"])
app.include_router(text_route.router, tags=["text"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
