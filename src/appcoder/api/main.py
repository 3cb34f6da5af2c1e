from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from dotenv import load_dotenv
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from .routers.catalog import router as catalog_router
from .routers.session import router as session_router
from ..observability.metrics import metrics_middleware_factory
from ..services.session_service import close_session_service

load_dotenv()  # APPCODER_COMPLETION_URL, APPCODER_PUBLISH_URL, ... from .env if present


@asynccontextmanager
async def lifespan(_app: FastAPI):
    yield
    await close_session_service()


app = FastAPI(title="AppCoder API", version="0.1.0", lifespan=lifespan)

# Observability: request latency histogram
app.middleware("http")(metrics_middleware_factory())

app.include_router(session_router)
app.include_router(catalog_router)

# Also expose the same routers under /api for the web client
app.include_router(session_router, prefix="/api")
app.include_router(catalog_router, prefix="/api")

# CORS (for the Next.js dev server on localhost:3000)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def root():
    return {"name": "AppCoder API", "version": "0.1.0"}


@app.get("/health")
def health():
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
    }


@app.get("/metrics")
def metrics() -> Response:
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
