#
# This file is part of cgigate released under the MIT license.
# See the NOTICE for more information.

"""
Per request control flow of the CGI gateway.

A request goes through these states::

    resolving -> executing -> streaming -> completed
         \\           \\            \\
          +-----------+------------+--> failed

Failures before the response started are turned into a 500 page. Once
the status line has been sent they can only be logged.
"""

import html
import traceback
from datetime import datetime

from cgigate import environ as cgienv
from cgigate.config import Config
from cgigate.deadline import Deadline
from cgigate.errors import (
    ClientDisconnected, ParseException, ProcessFailed, UnsupportedDirective,
)
from cgigate.glogging import Logger
from cgigate.parser import HeaderParser
from cgigate.process import CGIProcess
from cgigate.util import maybe_await

RESOLVING = "resolving"
EXECUTING = "executing"
STREAMING = "streaming"
COMPLETED = "completed"
FAILED = "failed"


class RequestState(object):
    """What the gateway knows about one request, for logging."""

    def __init__(self):
        self.state = RESOLVING
        self.descriptor = None
        self.environ = {}
        self.process = None
        self.error = None


class Gateway(object):
    """Runs the CGI program ``resolver`` picks for each request.

    ``resolver`` is called once per request with the request object and
    returns an :class:`~cgigate.script.ExecutionDescriptor`, or None when
    nothing handles the request. It may be a coroutine function.
    """

    def __init__(self, resolver, cfg=None, log=None):
        self.resolver = resolver
        self.cfg = cfg or Config()
        self.log = log or Logger(self.cfg)

    async def handle(self, request, response):
        self.log.debug("Start processing %s", request.path)
        start = datetime.now()
        st = RequestState()
        deadline = Deadline(self.cfg.timeout, request.aborted)

        try:
            await deadline.run(self.process_request(request, response, st))
        except ClientDisconnected:
            st.state = FAILED
            self.log.debug("Client went away while processing %s", request.path)
        except Exception as e:
            st.state = FAILED
            st.error = e
            await self.handle_error(request, response, st, e)
        finally:
            request_time = datetime.now() - start
            self.log.access(response, request, st.environ, request_time)

        self.log.debug("Done processing %s", request.path)
        return st

    async def process_request(self, request, response, st):
        st.descriptor = await maybe_await(self.resolver(request))
        if st.descriptor is None:
            await self.not_found(response)
            st.state = COMPLETED
            return

        st.state = EXECUTING
        st.environ = cgienv.create(request, st.descriptor, self.cfg)
        st.process = proc = CGIProcess(st.descriptor, st.environ, self.cfg, self.log)
        try:
            await proc.spawn(request)
            try:
                headers = await HeaderParser(self.cfg, self.log).parse(proc.stdout)
            except ParseException:
                # a program dying early explains itself on stderr
                await proc.settle(self.cfg.kill_timeout)
                raise

            if headers.location is not None:
                raise UnsupportedDirective("Location", headers.location)

            st.state = STREAMING
            response.status = headers.status or 200
            for name, value in headers.headers:
                response.append_header(name, value)
            if headers.content_type is not None:
                response.set_header("Content-Type", headers.content_type)

            await response.start()
            await proc.copy_to(response)

            try:
                await proc.wait()
            except ProcessFailed:
                # the body is complete, only the exit status is wrong
                await response.finish()
                raise
            await response.finish()
            st.state = COMPLETED
        finally:
            await proc.close()

    async def handle_error(self, request, response, st, exc):
        if response.started:
            self.log.error("Error handling %s after the response started: %s",
                           request.path, exc)
            return

        if request.aborted.is_set():
            self.log.debug("Error handling %s, client is gone: %s",
                           request.path, exc)
            return

        self.log.exception("Error handling %s", request.path)
        await self.server_error(response, self.describe_error(exc, st))

    def describe_error(self, exc, st=None):
        if self.cfg.debug:
            msg = "".join(traceback.format_exception(
                type(exc), exc, exc.__traceback__)).rstrip("\n")
        else:
            msg = "%s: %s" % (exc.__class__.__name__, exc)

        if isinstance(exc, ProcessFailed):
            stderr = exc.stderr
        elif st is not None and st.process is not None:
            stderr = bytes(st.process.stderr)
        else:
            stderr = b""
        if stderr:
            msg = "%s\n\n%s" % (msg, stderr.decode("utf-8", "replace"))
        return msg

    async def not_found(self, response):
        body = (
            "<body>\n"
            "    <h1>Status: 404</h1>\n"
            "    <h2>Not Found</h2>\n"
            "</body>\n"
        )
        await self.send_page(response, 404, body)

    async def server_error(self, response, info=""):
        body = (
            "<body>\n"
            "    <h1>Status: 500</h1>\n"
            "    <h2>Error</h2>\n"
            "    <pre>%s</pre>\n"
            "</body>\n"
        ) % html.escape(info)
        await self.send_page(response, 500, body)

    async def send_page(self, response, status, body):
        body = body.encode("utf-8")
        response.status = status
        response.set_header("Content-Type", "text/html; charset=utf-8")
        response.set_header("Content-Length", str(len(body)))
        await response.write(body)
        await response.finish()
