#
# This file is part of cgigate released under the MIT license.
# See the NOTICE for more information.

# We don't need to call super() in __init__ methods of our
# BaseException and Exception classes because we also define
# our own __str__ methods so there is no need to pass 'message'
# to the base class to get a meaningful output from 'str(exc)'.
# pylint: disable=super-init-not-called


class CGIError(Exception):
    """Base exception for everything raised by the gateway."""


class ParseException(CGIError):
    """Base exception for malformed CGI program output."""


class NoHeaderTerminator(ParseException):
    def __init__(self, buf=None):
        self.buf = buf

    def __str__(self):
        return "CGI headers not followed by an empty line, got: %r" % self.buf


class InvalidHeader(ParseException):
    def __init__(self, hdr):
        self.hdr = hdr

    def __str__(self):
        return "Invalid CGI header: %r" % self.hdr


class InvalidHeaderName(ParseException):
    def __init__(self, hdr):
        self.hdr = hdr

    def __str__(self):
        return "Invalid CGI header name: %r" % self.hdr


class DuplicateHeader(ParseException):
    def __init__(self, name):
        self.name = name

    def __str__(self):
        return "%s already present in CGI response" % self.name


class InvalidStatus(ParseException):
    def __init__(self, line):
        self.line = line

    def __str__(self):
        return "Invalid CGI status line: %r" % self.line


class LimitHeaderLine(ParseException):
    def __init__(self, max_size):
        self.max_size = max_size

    def __str__(self):
        return "CGI header line is too large (> %d)" % self.max_size


class LimitHeaders(ParseException):
    def __init__(self, max_fields):
        self.max_fields = max_fields

    def __str__(self):
        return "Too many CGI headers (> %d)" % self.max_fields


class UnsupportedDirective(CGIError):
    def __init__(self, name, value=None):
        self.name = name
        self.value = value

    def __str__(self):
        return "%s is not supported (got %r)" % (self.name, self.value)


class SpawnError(CGIError):
    def __init__(self, command, error):
        self.command = command
        self.error = error

    def __str__(self):
        return "Cannot execute %r: %s" % (self.command, self.error)


class ProcessFailed(CGIError):
    def __init__(self, command, returncode, stderr=b""):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr

    def __str__(self):
        return "CGI program %r exited with non-zero (%d)" % (
            self.command, self.returncode)


class GatewayTimeout(CGIError):
    def __init__(self, timeout):
        self.timeout = timeout

    def __str__(self):
        return "CGI request timed out after %ss" % self.timeout


class ClientDisconnected(CGIError):
    def __str__(self):
        return "Client disconnected"


class ResponseStarted(CGIError):
    def __init__(self, what):
        self.what = what

    def __str__(self):
        return "Cannot change %s, response already started" % self.what
