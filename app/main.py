from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import video
from app.config import get_settings
from app.core.exceptions import global_exception_handler, http_exception_handler, infrastructure_failure_handler, request_validation_exception_handler, store_error_handler
from app.core.lifespan import lifespan
from app.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from app.video.errors import InfrastructureFailure, StoreError

settings = get_settings()

app = FastAPI(title="Escalation Video Engine", lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.allowed_origins,
  allow_credentials=True,
  allow_methods=["GET", "POST", "OPTIONS"],
  allow_headers=["content-type", "authorization", "x-video-task-secret", "x-caller-id", "x-caller-role"],
  expose_headers=["content-length", "x-request-id"],
)

app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
app.add_exception_handler(InfrastructureFailure, infrastructure_failure_handler)
app.add_exception_handler(StoreError, store_error_handler)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": "0.1.0"}


app.include_router(video.router, prefix="/v1", tags=["video"])
