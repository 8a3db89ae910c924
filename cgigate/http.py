#
# This file is part of cgigate released under the MIT license.
# See the NOTICE for more information.

"""
Request and response interface between the gateway and the HTTP server
hosting it.

The gateway only ever talks to these two classes. Each embedding server
provides one subclass of both (see ``cgigate.asgi``).
"""

import asyncio

from cgigate.errors import ResponseStarted


class Request(object):
    """Inbound HTTP request as seen by the gateway.

    Subclasses fill in the attributes and implement :meth:`read`.

    Attributes:
        method: request method, e.g. ``"GET"``
        path: decoded URL path
        query: raw query string, without the leading ``?``
        version: protocol version, e.g. ``"1.1"``
        scheme: ``"http"`` or ``"https"``
        headers: list of ``(name, value)`` tuples in arrival order,
            repeated names kept as separate entries
        remote_addr: client address or None
        server: ``(host, port)`` the connection was accepted on, or None
        remote_user: authenticated user name or None
        auth_type: authentication scheme of ``remote_user`` or None
        aborted: event set by the host once the client is gone
    """

    def __init__(self):
        self.method = "GET"
        self.path = "/"
        self.query = ""
        self.version = "1.1"
        self.scheme = "http"
        self.headers = []
        self.remote_addr = None
        self.server = None
        self.remote_user = None
        self.auth_type = None
        self.aborted = asyncio.Event()

    def get_header(self, name, default=None):
        """Return the last value of header ``name`` (case insensitive)."""
        name = name.lower()
        value = default
        for hname, hvalue in self.headers:
            if hname.lower() == name:
                value = hvalue
        return value

    async def read(self, size=-1):
        """Read up to ``size`` bytes of the body, b"" once it is exhausted."""
        raise NotImplementedError()


class Response(object):
    """Outbound HTTP response sink.

    Status and headers may be changed until :meth:`start` is called.
    """

    def __init__(self):
        self._status = 200
        self._headers = []
        self.started = False
        self.finished = False
        self.bytes_sent = 0

    @property
    def status(self):
        return self._status

    @status.setter
    def status(self, status):
        if self.started:
            raise ResponseStarted("status")
        self._status = int(status)

    @property
    def headers(self):
        return list(self._headers)

    def append_header(self, name, value):
        if self.started:
            raise ResponseStarted("header %r" % name)
        self._headers.append((name, value))

    def set_header(self, name, value):
        """Replace every header called ``name`` by a single one."""
        if self.started:
            raise ResponseStarted("header %r" % name)
        lname = name.lower()
        self._headers = [(n, v) for n, v in self._headers
                         if n.lower() != lname]
        self._headers.append((name, value))

    async def start(self):
        """Commit status and headers to the client."""
        self.started = True
        await self.send_headers()

    async def write(self, data):
        if not self.started:
            await self.start()
        if not data:
            return
        self.bytes_sent += len(data)
        await self.send_body(data)

    async def finish(self):
        """Signal the end of the body."""
        if self.finished:
            return
        if not self.started:
            await self.start()
        self.finished = True
        await self.send_end()

    async def send_headers(self):
        raise NotImplementedError()

    async def send_body(self, data):
        raise NotImplementedError()

    async def send_end(self):
        raise NotImplementedError()
