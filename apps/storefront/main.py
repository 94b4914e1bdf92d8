import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from .routers import catalog

logging.basicConfig(
    level=getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI(title="Course Storefront API", version="1.0.0")

# Allow the storefront frontend (local dev or deployed) to call the API.
_cors_origins = os.environ.get(
    "CORS_ALLOW_ORIGINS",
    "http://localhost:3000,http://127.0.0.1:3000",
)
allow_origins = [o.strip() for o in _cors_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
)


@app.get("/")
def root() -> dict[str, str]:
    """Provide a friendly landing response for the API root."""
    return {
        "message": "Course Storefront API is running. Visit /docs for the OpenAPI UI.",
        "health": "/healthz",
    }


@app.get("/favicon.ico", include_in_schema=False)
def favicon() -> Response:
    """Return an empty response to suppress missing favicon errors in development."""
    return Response(status_code=204)


app.include_router(catalog.router, prefix="/api", tags=["catalog"])


@app.get("/healthz")
def healthcheck() -> dict[str, str]:
    """Basic healthcheck endpoint for orchestration and tests."""
    return {"status": "ok"}
