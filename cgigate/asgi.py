#
# This file is part of cgigate released under the MIT license.
# See the NOTICE for more information.

"""
ASGI embedding of the gateway.

``CGIApplication`` is an ASGI 3 application, so any ASGI server can host
CGI programs::

    from cgigate.asgi import CGIApplication
    app = CGIApplication(resolve)

    $ gunicorn -k asgi myapp:app
"""

import asyncio

from cgigate.config import Config
from cgigate.errors import ClientDisconnected
from cgigate.gateway import Gateway
from cgigate.glogging import Logger
from cgigate.http import Request, Response
from cgigate.util import bytes_to_str


class ASGIRequest(Request):
    """Request backed by an ASGI ``http`` scope and its receive channel."""

    def __init__(self, scope, receive):
        super().__init__()
        self.scope = scope
        self._receive = receive
        self._buf = bytearray()
        self._more_body = True
        self._listener = None

        self.method = scope["method"]
        self.path = scope.get("path", "/")
        self.query = bytes_to_str(scope.get("query_string", b""))
        self.version = scope.get("http_version", "1.1")
        self.scheme = scope.get("scheme", "http")
        self.headers = [(bytes_to_str(name), bytes_to_str(value))
                        for name, value in scope.get("headers", [])]

        client = scope.get("client")
        self.remote_addr = client[0] if client else None
        server = scope.get("server")
        self.server = tuple(server[:2]) if server else None

        user = scope.get("user")
        if isinstance(user, str):
            self.remote_user = user
        elif user is not None:
            self.remote_user = getattr(user, "display_name", None)
        self.auth_type = scope.get("auth_type")

    async def read(self, size=-1):
        while self._more_body and (size < 0 or len(self._buf) < size):
            message = await self._receive()
            if message["type"] == "http.disconnect":
                self._more_body = False
                self.aborted.set()
                raise ClientDisconnected()
            self._buf.extend(message.get("body", b""))
            self._more_body = message.get("more_body", False)
            if not self._more_body:
                self.listen_for_disconnect()

        if size < 0 or size >= len(self._buf):
            data = bytes(self._buf)
            self._buf.clear()
        else:
            data = bytes(self._buf[:size])
            del self._buf[:size]
        return data

    def listen_for_disconnect(self):
        """Watch the receive channel once the body has been consumed."""
        if self._listener is None:
            self._listener = asyncio.ensure_future(self._wait_disconnect())

    async def _wait_disconnect(self):
        while True:
            message = await self._receive()
            if message["type"] == "http.disconnect":
                self.aborted.set()
                return

    async def close(self):
        if self._listener is not None and not self._listener.done():
            self._listener.cancel()
            await asyncio.gather(self._listener, return_exceptions=True)


class ASGIResponse(Response):
    """Response written through an ASGI send channel."""

    def __init__(self, send):
        super().__init__()
        self._send = send

    async def send_headers(self):
        await self._send({
            "type": "http.response.start",
            "status": self.status,
            "headers": [(name.lower().encode("latin-1"), value.encode("latin-1"))
                        for name, value in self.headers],
        })

    async def send_body(self, data):
        await self._send({
            "type": "http.response.body",
            "body": data,
            "more_body": True,
        })

    async def send_end(self):
        await self._send({
            "type": "http.response.body",
            "body": b"",
            "more_body": False,
        })


class CGIApplication(object):
    """ASGI application running CGI programs through a :class:`Gateway`."""

    def __init__(self, resolver, cfg=None, log=None):
        self.cfg = cfg or Config()
        self.log = log or Logger(self.cfg)
        self.gateway = Gateway(resolver, self.cfg, self.log)

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http":
            await self.handle_http(scope, receive, send)
        elif scope["type"] == "lifespan":
            await self.handle_lifespan(scope, receive, send)
        else:
            raise ValueError("Unsupported ASGI scope type: %r" % scope["type"])

    async def handle_http(self, scope, receive, send):
        request = ASGIRequest(scope, receive)
        response = ASGIResponse(send)
        try:
            await self.gateway.handle(request, response)
        finally:
            await request.close()

    async def handle_lifespan(self, scope, receive, send):
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                self.log.info("CGI gateway starting (%s)", self.cfg.server_software)
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return
