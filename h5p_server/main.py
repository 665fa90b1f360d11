from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from h5p_server.api.router import api_router
from h5p_server.core.config import settings
from h5p_server.core.otel import init_otel
from h5p_server.db.session import init_db

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title=settings.api_name, lifespan=lifespan)

app.include_router(api_router)

init_otel(app)
