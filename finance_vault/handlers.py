"""
Dashboard routes: the monitoring surface over HTTP (aiohttp).

    GET    /api/security/events   security log, most recent first
    DELETE /api/security/events   clear the security log
    GET    /api/security/summary  event counts over the trailing 24 hours
    GET    /api/security/session  {"expired": bool}
    DELETE /api/security/session  clear the session key
"""
import logging
from typing import Any

import orjson
from aiohttp import web

from .store import AppStore

logger = logging.getLogger("finance.handlers")

STORE_KEY = web.AppKey("finance_vault_store", AppStore)


def _dumps(obj: Any) -> str:
    return orjson.dumps(obj).decode("utf-8")


def _json(data: Any, status: int = 200) -> web.Response:
    return web.json_response(data, status=status, dumps=_dumps)


async def get_events(request: web.Request) -> web.Response:
    store = request.app[STORE_KEY]
    return _json([event.to_wire() for event in store.security_log()])


async def clear_events(request: web.Request) -> web.Response:
    store = request.app[STORE_KEY]
    store.clear_security_log()
    return web.Response(status=204)


async def get_summary(request: web.Request) -> web.Response:
    store = request.app[STORE_KEY]
    summary = store.security_summary()
    payload = summary.model_dump(mode="json", exclude={"last_event"})
    payload["last_event"] = (
        summary.last_event.to_wire() if summary.last_event else None
    )
    return _json(payload)


async def get_session(request: web.Request) -> web.Response:
    store = request.app[STORE_KEY]
    return _json({"expired": store.session_expired()})


async def clear_session(request: web.Request) -> web.Response:
    store = request.app[STORE_KEY]
    store.clear_session()
    logger.info("Session key cleared from dashboard")
    return web.Response(status=204)


def setup_security_routes(app: web.Application, store: AppStore) -> None:
    """Register the dashboard routes on ``app`` bound to ``store``."""
    app[STORE_KEY] = store
    app.router.add_get("/api/security/events", get_events)
    app.router.add_delete("/api/security/events", clear_events)
    app.router.add_get("/api/security/summary", get_summary)
    app.router.add_get("/api/security/session", get_session)
    app.router.add_delete("/api/security/session", clear_session)
