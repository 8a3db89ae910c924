#
# This file is part of cgigate released under the MIT license.
# See the NOTICE for more information.

import inspect
import re


# RFC9110 5.6.2 token characters
TOKEN_RE = re.compile(r"[%s0-9a-zA-Z]+" % re.escape(r"!#$%&'*+-.^_`|~"))


def is_token(value):
    return TOKEN_RE.fullmatch(value) is not None


def bytes_to_str(b):
    if isinstance(b, str):
        return b
    return str(b, 'latin1')


async def maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value


def parse_host(host, scheme="http"):
    """Split a Host header value into (name, port).

    IPv6 literals are returned without their brackets. A missing port is
    replaced by the default port of ``scheme``.
    """
    if '[' in host and ']' in host:
        name = host.split(']')[0][1:].lower()
        rest = host.split(']')[-1]
        port = rest[1:] if rest.startswith(':') else ''
    elif ':' in host and host.count(':') == 1:
        name, port = host.split(':', 1)
        name = name.lower()
    else:
        name, port = host.lower(), ''

    if not port:
        port = {"http": "80", "https": "443"}.get(scheme, '')
    return name, port


def check_is_writeable(path):
    try:
        with open(path, 'a') as f:
            f.close()
    except OSError as e:
        raise RuntimeError("Error: '%s' isn't writable [%r]" % (path, e))
