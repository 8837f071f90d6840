import logging
from time import time
from typing import Optional

import aiohttp
import redis.asyncio as redis
import sentry_sdk
from aiohttp import web
from sentry_sdk.integrations.aiohttp import AioHttpIntegration

from social.graze.wormhole.app.config import (
    CacheAppKey,
    MetricsClientAppKey,
    RedisClientAppKey,
    SessionAppKey,
    Settings,
    SettingsAppKey,
    WormholeAppKey,
)
from social.graze.wormhole.app.handlers.internal import (
    handle_internal_alive,
    handle_internal_cache_clear,
    handle_internal_cache_stats,
    handle_internal_resolve,
)
from social.graze.wormhole.app.metrics import TelegrafCompatibilityClient, create_metrics_client
from social.graze.wormhole.app.orchestrator import create_wormhole
from social.graze.wormhole.cache.store import (
    NoOpSnapshotStore,
    RedisSnapshotStore,
    SnapshotStore,
)

logger = logging.getLogger(__name__)


async def background_tasks(app):
    logger.info("Starting up")
    settings: Settings = app[SettingsAppKey]

    trace_config = aiohttp.TraceConfig()

    if settings.debug:

        async def on_request_start(
            session, trace_config_ctx, params: aiohttp.TraceRequestStartParams
        ):
            logging.info("Starting request: %s", params)

        async def on_request_end(session, trace_config_ctx, params):
            logging.info("Ending request: %s", params)

        trace_config.on_request_start.append(on_request_start)
        trace_config.on_request_end.append(on_request_end)

    app[SessionAppKey] = aiohttp.ClientSession(trace_configs=[trace_config])

    store: SnapshotStore = NoOpSnapshotStore()
    if settings.redis_dsn is not None:
        app[RedisClientAppKey] = redis.Redis(
            connection_pool=redis.ConnectionPool.from_url(str(settings.redis_dsn))
        )
        store = RedisSnapshotStore(app[RedisClientAppKey], settings.cache_snapshot_key)

    metrics_client = create_metrics_client(
        settings.metrics_backend,
        host=settings.statsd_host,
        port=settings.statsd_port,
        debug=settings.debug,
    )
    if isinstance(metrics_client, TelegrafCompatibilityClient):
        await metrics_client.connect()
    app[MetricsClientAppKey] = metrics_client

    wormhole = create_wormhole(
        settings, app[SessionAppKey], store=store, metrics_client=metrics_client
    )
    await wormhole.startup()
    app[WormholeAppKey] = wormhole
    app[CacheAppKey] = wormhole.cache

    logger.info("Startup complete")

    yield

    logger.info("Shutting down")

    await app[CacheAppKey].flush()
    await app[SessionAppKey].close()
    if RedisClientAppKey in app:
        await app[RedisClientAppKey].aclose()
    await app[MetricsClientAppKey].close()


@web.middleware
async def sentry_middleware(request: web.Request, handler):
    try:
        response = await handler(request)
        return response
    except web.HTTPException:
        raise
    except Exception as e:
        sentry_sdk.capture_exception(e)
        raise e


@web.middleware
async def statsd_middleware(request: web.Request, handler):
    metrics_client = request.app[MetricsClientAppKey]
    request_method: str = request.method
    request_path = request.path

    start_time: float = time()
    response_status_code = 0

    try:
        response = await handler(request)
        response_status_code = response.status
        return response
    except web.HTTPException as e:
        response_status_code = e.status
        raise
    except Exception as e:
        metrics_client.increment(
            "wormhole.server.request.exception",
            1,
            tag_dict={
                "exception": type(e).__name__,
                "path": request_path,
                "method": request_method,
            },
        )
        raise e
    finally:
        metrics_client.timer(
            "wormhole.server.request.time",
            time() - start_time,
            tag_dict={"path": request_path, "method": request_method},
        )
        metrics_client.increment(
            "wormhole.server.request.count",
            1,
            tag_dict={
                "path": request_path,
                "method": request_method,
                "status": response_status_code,
            },
        )


async def start_web_server(settings: Optional[Settings] = None):

    if settings is None:
        settings = Settings()  # type: ignore
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            send_default_pii=True,
            integrations=[AioHttpIntegration()],
        )
    app = web.Application(middlewares=[statsd_middleware, sentry_middleware])

    app[SettingsAppKey] = settings

    app.add_routes(
        [
            web.get("/internal/alive", handle_internal_alive),
            web.get("/internal/api/resolve", handle_internal_resolve),
            web.get("/internal/api/cache", handle_internal_cache_stats),
            web.delete("/internal/api/cache", handle_internal_cache_clear),
        ]
    )

    app.cleanup_ctx.append(background_tasks)

    return app
