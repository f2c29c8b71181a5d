# ==============================
# FastAPI App Factory
# ==============================
from __future__ import annotations

from fastapi import FastAPI

from gateway.api.routes import router as operations_router


def create_app() -> FastAPI:
    app = FastAPI(title="toolbroker", version="0.1.0")
    app.include_router(operations_router, prefix="/api")
    return app
