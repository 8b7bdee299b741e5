from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI

from sci.config import settings
from sci.context import SciContext
from sci.middleware import LoggingMiddleware
from sci.routes import webhooks_router


def create_app(context: SciContext) -> FastAPI:
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            traces_sample_rate=0.1,
            profiles_sample_rate=0.1,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await context.queue.stop()

    app = FastAPI(lifespan=lifespan)
    app.state.sci = context
    app.add_middleware(LoggingMiddleware)

    @app.get("/", tags=["health"])
    async def read_root():
        return {"status": "ok"}

    app.include_router(webhooks_router)
    return app
