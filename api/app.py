"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.codes import create_codes_router
from api.errors import register_error_handlers
from api.live import create_live_router
from api.middleware import RequestIDMiddleware
from api.notes import create_notes_router
from core.broadcast import LiveBroadcaster
from core.config import StoreConfig, load_store_config
from core.storage import get_store
from core.storage.base import NoteStore
from core.sweeper import ExpirySweeper

logger = logging.getLogger(__name__)


def create_app(
    config: StoreConfig | None = None,
    store: NoteStore | None = None,
    broadcaster: LiveBroadcaster | None = None,
) -> FastAPI:
    """
    Wire store, broadcaster and sweeper into an app.

    Anything not passed in is built from config: the shared store from the
    facade and a fresh broadcaster. The sweeper runs for the app's lifespan
    on backends without native expiry.
    """
    config = config or load_store_config()
    store = store or get_store(config)
    broadcaster = broadcaster or LiveBroadcaster(queue_size=config.subscriber_queue_size)

    interval = config.sweep_interval_seconds()
    sweeper = ExpirySweeper(store, interval) if interval and not store.native_expiry else None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if sweeper is not None:
            sweeper.start()
        try:
            yield
        finally:
            if sweeper is not None:
                sweeper.stop()

    app = FastAPI(title="pingnote", lifespan=lifespan)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_notes_router(store, config), prefix="/api")
    app.include_router(create_codes_router(store), prefix="/api")
    app.include_router(
        create_live_router(store, broadcaster, keepalive_seconds=config.live_keepalive_seconds),
        prefix="/api",
    )

    app.state.store = store
    app.state.broadcaster = broadcaster
    app.state.sweeper = sweeper

    logger.info(f"App created with {store.name} store")
    return app
