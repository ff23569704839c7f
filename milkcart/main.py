from contextlib import asynccontextmanager
from fastapi import FastAPI
from milkcart.api.routers import public_routers,admin_routers
from milkcart.common.custom_exceptions import register_all_exceptions
from milkcart.common.logging_setup import setup_logging, shutdown_logging
from milkcart.middlewares.auth_middleware import AuthenticationMiddleware
from milkcart.middlewares.request_id_middleware import RequestIdMiddleware
from milkcart.db.connection import async_engine,async_session
from milkcart.api.__init__ import version_prefix,cur_version
from milkcart.config.admin_config import admin_config
from metrics.custom_instrumentator import instrumentator


@asynccontextmanager
async def app_lifespan(app: FastAPI):
    setup_logging()

    try:
        yield
    finally:
        # new requests are no longer accepted at this point
        await async_engine.dispose()
        shutdown_logging()


def create_app():
    app=FastAPI(
        title="MilkCart",
        version=cur_version,
        lifespan=app_lifespan)

    app.include_router(public_routers)

    if admin_config.ENABLE_ADMIN:
        app.include_router(admin_routers)      # mounts /api/v1/admin

    app.add_middleware(AuthenticationMiddleware,session_maker=async_session,
                       paths=[f"{version_prefix}/health",
                              "/metrics",
                              "/docs",
                              "/openapi.json"],
                       public_get_paths=[f"{version_prefix}/products",
                                         f"{version_prefix}/subscription-plans",
                                         f"{version_prefix}/delivery/slots"])
    app.add_middleware(RequestIdMiddleware)
    register_all_exceptions(app)

    if admin_config.ENABLE_METRICS:
        instrumentator.instrument(app).expose(app, endpoint="/metrics")

    return app

app=create_app()
