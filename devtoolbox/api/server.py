"""FastAPI application factory for the snippet service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..exception_handler import configure_logging, install_exception_handlers
from ..identity import IdentityProvider, KVIdentityProvider
from ..kv import KVStore, MemoryKVStore, RedisKVStore
from ..snippet import SnippetRepository
from .route import router
from .service import ApiSettings, SnippetService

logger = logging.getLogger("devtoolbox")


def build_kv_store(settings: ApiSettings) -> KVStore:
    if settings.kv_backend == "memory":
        logger.warning("Using the in-memory KV store; snippets are lost on restart")
        return MemoryKVStore()
    if settings.kv_backend != "redis":
        raise ValueError(f"Unknown KV backend: {settings.kv_backend}")
    return RedisKVStore.from_url(settings.redis_url, namespace=settings.kv_namespace)


def create_app(
    settings: ApiSettings | None = None,
    *,
    kv: KVStore | None = None,
    identity: IdentityProvider | None = None,
    repository: SnippetRepository | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators not passed in are built from ``settings``; tests inject an
    in-memory store and a fixed clock this way.
    """

    settings = settings or ApiSettings.from_env()
    configure_logging(settings.log_level)

    owns_kv = kv is None
    kv = kv or build_kv_store(settings)
    repository = repository or SnippetRepository(kv)
    identity = identity or KVIdentityProvider(
        kv,
        secret_key=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        token_ttl=timedelta(minutes=settings.access_token_expire_minutes),
    )
    service = SnippetService(repository, identity, settings)

    mcp_app = None
    if settings.mcp_enabled:
        from ..mcpserver import create_server

        mcp_app = create_server(service).http_app("/")

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            if mcp_app is not None:
                async with mcp_app.lifespan(app):
                    yield
            else:
                yield
        finally:
            if owns_kv:
                await kv.close()
                logger.info("Closed KV store")

    app = FastAPI(
        title="DevToolbox Snippet API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.service = service
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_exception_handlers(app)
    app.include_router(router)

    if mcp_app is not None:
        app.mount("/mcp", mcp_app)

    return app


__all__ = ["build_kv_store", "create_app"]
