#
# This file is part of cgigate released under the MIT license.
# See the NOTICE for more information.

"""
Parser for the header block a CGI program writes before its body.

The block is a list of lines ended by an empty line. Three lines are
directives to the gateway (``Content-Type``, ``Status`` and ``Location``),
each allowed once; every other line is an HTTP header passed to the client.
"""

import asyncio

from cgigate.errors import (
    DuplicateHeader, InvalidHeader, InvalidHeaderName, InvalidStatus,
    LimitHeaderLine, LimitHeaders, NoHeaderTerminator,
)
from cgigate.util import bytes_to_str, is_token

READING = "reading"
DONE = "done"

CONTENT_TYPE = "Content-Type:"
STATUS = "Status:"
LOCATION = "Location:"


class CGIHeaders(object):
    """Result of parsing a CGI header block."""

    def __init__(self):
        self.content_type = None
        self.status = None
        self.location = None
        self.headers = []

    def __repr__(self):
        return "<CGIHeaders status=%r content_type=%r location=%r headers=%r>" % (
            self.status, self.content_type, self.location, self.headers)


class HeaderParser(object):

    def __init__(self, cfg, log=None):
        self.log = log
        self.limit_fields = cfg.limit_header_fields
        self.limit_field_size = cfg.limit_header_field_size
        self.state = READING
        self.result = CGIHeaders()
        self.nfields = 0

    def feed(self, line):
        """Process one line, without its line terminator.

        Returns True once the empty line ending the block has been seen.
        """
        if self.state == DONE:
            raise RuntimeError("CGI headers already parsed")

        line = bytes_to_str(line)
        if line.endswith("\r"):
            line = line[:-1]

        if not line:
            self.state = DONE
            return True

        self.nfields += 1
        if self.nfields > self.limit_fields:
            raise LimitHeaders(self.limit_fields)

        if not self.parse_directive(line):
            self.parse_header(line)
        return False

    def parse_directive(self, line):
        res = self.result
        if line.startswith(CONTENT_TYPE):
            if res.content_type is not None:
                raise DuplicateHeader("Content-Type")
            res.content_type = line[len(CONTENT_TYPE):].lstrip()
            self._trace("Content-Type", res.content_type)
        elif line.startswith(LOCATION):
            if res.location is not None:
                raise DuplicateHeader("Location")
            res.location = line[len(LOCATION):].lstrip()
            self._trace("Location", res.location)
        elif line.startswith(STATUS):
            if res.status is not None:
                raise DuplicateHeader("Status")
            res.status = self.parse_status(line)
            self._trace("Status", res.status)
        else:
            return False
        return True

    def parse_status(self, line):
        bits = line[len(STATUS):].split(None, 1)
        if not bits:
            raise InvalidStatus(line)
        try:
            status = int(bits[0])
        except ValueError:
            raise InvalidStatus(line)
        if not 100 <= status <= 999:
            raise InvalidStatus(line)
        return status

    def parse_header(self, line):
        if ":" not in line:
            raise InvalidHeader(line)

        name, value = line.split(":", 1)
        if not is_token(name):
            raise InvalidHeaderName(name)

        value = value.strip()
        self.result.headers.append((name, value))
        self._trace(name, value)

    async def parse(self, reader):
        """Read the header block from ``reader``, an asyncio.StreamReader.

        Stops right after the empty line, the body is left in ``reader``.
        """
        while self.state == READING:
            try:
                line = await reader.readline()
            except (asyncio.LimitOverrunError, ValueError):
                raise LimitHeaderLine(self.limit_field_size)

            if not line.endswith(b"\n"):
                raise NoHeaderTerminator(line)
            if len(line) > self.limit_field_size + 2:
                raise LimitHeaderLine(self.limit_field_size)

            self.feed(line[:-1])

        return self.result

    def _trace(self, name, value):
        if self.log is not None:
            self.log.debug("CGI header: %r : %r", name, value)


async def parse_headers(reader, cfg, log=None):
    return await HeaderParser(cfg, log).parse(reader)
