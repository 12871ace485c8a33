from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from blockforge.api.routes import artifacts, compile, generate, jobs
from blockforge.config import get_settings
from blockforge.core.errors import BlockForgeError
from blockforge.core.exceptions import blockforge_exception_handler, global_exception_handler, http_exception_handler, request_validation_exception_handler
from blockforge.core.lifespan import lifespan
from blockforge.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware

settings = get_settings()

app = FastAPI(title="blockforge", lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url="/openapi.json" if settings.debug else None)

app.add_middleware(CORSMiddleware, allow_origins=settings.allowed_origins, allow_credentials=True, allow_methods=["GET", "POST", "OPTIONS"], allow_headers=["content-type", "x-request-id"], expose_headers=["content-length", "x-request-id"])

app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(BlockForgeError, blockforge_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": "0.1.0"}


app.include_router(compile.router, prefix="/v1/compile", tags=["compile"])
app.include_router(jobs.router, prefix="/v1/jobs", tags=["jobs"])
app.include_router(artifacts.router, prefix="/v1/artifacts", tags=["artifacts"])
app.include_router(generate.router, prefix="/v1", tags=["generate"])
