"""HTTP and websocket front end for the greeter actor.

Translates requests on ``/``, ``/greeting``, ``/name`` and ``/ws`` into
messages for the one greeter registered under the configured name. The
actor system and the ``GreeterDirectory`` live on the application and
follow its startup and cleanup.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable

import aiohttp_cors
from aiohttp import WSMsgType, web
from aiohttp.typedefs import Handler

from greeter.config import GreeterConfig, Variant
from greeter.connection import Connection
from greeter.core.system import ActorSystem
from greeter.directory import Greeter, GreeterDirectory
from greeter.errors import GreeterError, StoreUnavailableError, UnsupportedOperationError
from greeter.payloads import BinaryMessage, TextMessage
from greeter.store import StateStore, open_store

log = logging.getLogger(__name__)

SYSTEM = web.AppKey("system", ActorSystem)
DIRECTORY = web.AppKey("directory", GreeterDirectory)

ROUTER_DEFAULT_NAME = "world"


class WebSocketTransport:
    """Adapts an aiohttp ``WebSocketResponse`` to ``StreamTransport``."""

    def __init__(self, ws: web.WebSocketResponse) -> None:
        self._ws = ws

    @property
    def closed(self) -> bool:
        return self._ws.closed

    async def send_text(self, data: str) -> None:
        await self._ws.send_str(data)

    async def close(self, code: int, reason: str) -> None:
        await self._ws.close(code=code, message=reason.encode())


@web.middleware
async def error_middleware(
    request: web.Request,
    handler: Handler,
) -> web.StreamResponse:
    """Map greeter failures to HTTP statuses."""
    try:
        return await handler(request)
    except StoreUnavailableError as exc:
        log.error("Store unavailable", extra={"fields": {"path": request.path, "error": str(exc)}})
        return web.Response(status=503, text=str(exc))
    except UnsupportedOperationError as exc:
        return web.Response(status=400, text=str(exc))
    except TimeoutError:
        log.warning("Greeter did not reply", extra={"fields": {"path": request.path}})
        return web.Response(status=504, text="Request timeout")


class HttpGateway:
    """Request handlers bound to one greeter name."""

    def __init__(self, name: str, variant: Variant) -> None:
        self._name = name
        self._variant = variant

    def _greeter(self, request: web.Request) -> Greeter:
        return request.app[DIRECTORY].get(self._name)

    async def handle_ws(self, request: web.Request) -> web.StreamResponse:
        """GET /ws - Upgrade to a greeter stream."""
        if request.headers.get("Upgrade", "").lower() != "websocket":
            return web.Response(status=426, text="Expected websocket request")

        greeter = self._greeter(request)
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        connection = Connection(WebSocketTransport(ws))
        try:
            await greeter.accept(connection)
        except (GreeterError, TimeoutError) as exc:
            log.error("Stream not accepted: %s", exc, extra={"fields": {"connection": connection.id}})
            await ws.close(code=1011, message=b"Greeter unavailable")
            # The accept may still be queued; unregister whatever it adds.
            greeter.stream_closed(connection, 1011, "", was_clean=False)
            return ws

        async for msg in ws:
            match msg.type:
                case WSMsgType.TEXT:
                    greeter.stream_message(connection, TextMessage(msg.data))
                case WSMsgType.BINARY:
                    greeter.stream_message(connection, BinaryMessage(msg.data))
                case WSMsgType.ERROR:
                    log.warning(
                        "Stream error",
                        extra={"fields": {"connection": connection.id, "error": repr(ws.exception())}},
                    )
                    break

        greeter.stream_closed(
            connection,
            ws.close_code,
            "",
            was_clean=ws.exception() is None,
        )
        return ws

    async def handle_compose(self, request: web.Request) -> web.Response:
        """GET / - Compose the greeting."""
        if self._variant is Variant.presence:
            name = request.query.get("name")
        else:
            name = ROUTER_DEFAULT_NAME
        return web.Response(text=await self._greeter(request).compose_greeting(name))

    async def handle_get_greeting(self, request: web.Request) -> web.Response:
        """GET /greeting - Read the greeting."""
        return web.Response(text=await self._greeter(request).get_greeting())

    async def handle_set_greeting(self, request: web.Request) -> web.Response:
        """POST /greeting - Replace the greeting and notify every stream."""
        greeting = await request.text()
        await self._greeter(request).set_greeting(greeting)
        return web.Response(text=f'Set greeting to "{greeting}"')

    async def handle_set_name(self, request: web.Request) -> web.Response:
        """POST /name - Replace the name and notify every stream."""
        name = await request.text()
        await self._greeter(request).set_name(name)
        return web.Response(text=f'Set name to "{name}"')


def create_app(
    config: GreeterConfig | None = None,
    *,
    store_for: Callable[[str], StateStore] | None = None,
) -> web.Application:
    """Build the aiohttp application.

    Parameters
    ----------
    config : GreeterConfig | None
        Service configuration. Defaults to ``GreeterConfig()``.
    store_for : Callable[[str], StateStore] | None
        Opens the store for a greeter name. Defaults to the store
        described by ``config.store``.

    Examples
    --------
    >>> app = create_app(GreeterConfig(store=StoreConfig(backend="memory")))
    >>> web.run_app(app, port=8787)
    """
    config = config or GreeterConfig()
    open_for = store_for or (lambda name: open_store(config.store, name))

    app = web.Application(middlewares=[error_middleware])

    async def actors(app: web.Application) -> AsyncIterator[None]:
        system = ActorSystem(config.system_name)
        app[SYSTEM] = system
        app[DIRECTORY] = GreeterDirectory(system, store_for=open_for, settings=config.actor)
        yield
        await system.shutdown()
        app[DIRECTORY].close()

    async def close_streams(app: web.Application) -> None:
        await app[SYSTEM].shutdown()

    app.cleanup_ctx.append(actors)
    app.on_shutdown.append(close_streams)

    gateway = HttpGateway(config.actor.name, config.actor.variant)
    app.router.add_get("/ws", gateway.handle_ws)
    routes = [
        app.router.add_get("/", gateway.handle_compose),
        app.router.add_get("/greeting", gateway.handle_get_greeting),
        app.router.add_post("/greeting", gateway.handle_set_greeting),
    ]
    if config.actor.variant is Variant.presence:
        routes.append(app.router.add_post("/name", gateway.handle_set_name))

    cors = config.cors
    options = aiohttp_cors.ResourceOptions(
        allow_credentials=cors.allow_credentials,
        allow_headers=cors.allow_headers,
        allow_methods=cors.allow_methods,
    )
    policy = aiohttp_cors.setup(app, defaults={origin: options for origin in cors.origins})
    for route in routes:
        policy.add(route)

    return app
