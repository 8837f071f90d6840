import json
import logging

from aiohttp import web

from social.graze.wormhole.app.config import CacheAppKey, WormholeAppKey
from social.graze.wormhole.resolve.errors import ResolverException

logger = logging.getLogger(__name__)


async def handle_internal_alive(request: web.Request):
    return web.Response(status=200)


async def handle_internal_resolve(request: web.Request):
    raw = request.query.get("input", "").strip()
    if len(raw) == 0:
        raise web.HTTPBadRequest(
            body=json.dumps({"error": "Missing input"}),
            content_type="application/json",
        )

    wormhole = request.app[WormholeAppKey]

    try:
        record = await wormhole.resolve_input(raw)
    except ResolverException as e:
        logger.warning("Resolution failed for %r: %s", raw, e)
        raise web.HTTPBadGateway(
            body=json.dumps({"error": str(e), "error_type": type(e).__name__}),
            content_type="application/json",
        )

    if record is None:
        raise web.HTTPNotFound(
            body=json.dumps({"error": "Nothing to resolve"}),
            content_type="application/json",
        )

    return web.json_response(
        {
            "record": record.model_dump(mode="json"),
            "destinations": [
                destination.model_dump(mode="json")
                for destination in wormhole.destinations(record)
            ],
        }
    )


async def handle_internal_cache_stats(request: web.Request):
    cache = request.app[CacheAppKey]
    return web.json_response(cache.stats().model_dump())


async def handle_internal_cache_clear(request: web.Request):
    cache = request.app[CacheAppKey]
    await cache.clear()
    logger.info("Cache cleared")
    return web.Response(status=204)
