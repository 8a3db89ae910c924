#
# This file is part of cgigate released under the MIT license.
# See the NOTICE for more information.

from cgigate import util

CGI_VERSION = "CGI/1.1"


def default_environ(req, descriptor, cfg):
    return {
        "GATEWAY_INTERFACE": CGI_VERSION,
        "SERVER_PROTOCOL": "HTTP/%s" % req.version,
        "SERVER_SOFTWARE": cfg.server_software or "",
        "SERVER_NAME": "",
        "SERVER_PORT": "",
        "REMOTE_ADDR": req.remote_addr or "",
        "REMOTE_HOST": "",
        "REMOTE_IDENT": "",
        "REMOTE_USER": req.remote_user or "",
        "AUTH_TYPE": req.auth_type or "",
        "REQUEST_METHOD": req.method,
        "SCRIPT_NAME": descriptor.script_name,
        "PATH_INFO": descriptor.path_info,
        "PATH_TRANSLATED": "",
        "QUERY_STRING": req.query or "",
        "CONTENT_TYPE": "",
        "CONTENT_LENGTH": "",
    }


def create(req, descriptor, cfg):
    """Build the CGI/1.1 environment of ``descriptor`` run for ``req``.

    Every request header becomes an ``HTTP_*`` variable. Values of a
    repeated header are joined with a comma in the order they arrived.
    ``descriptor.environment_update`` is applied last.
    """
    environ = default_environ(req, descriptor, cfg)

    # authors should be aware that REMOTE_HOST and REMOTE_ADDR
    # may not qualify the remote addr:
    # http://www.ietf.org/rfc/rfc3875
    server = req.server
    host = None

    for hdr_name, hdr_value in req.headers:
        name = hdr_name.upper()
        if name == "HOST":
            host = hdr_value
        elif name == "CONTENT-TYPE":
            environ['CONTENT_TYPE'] = hdr_value
        elif name == "CONTENT-LENGTH":
            environ['CONTENT_LENGTH'] = hdr_value

        key = 'HTTP_' + name.replace('-', '_')
        if key in environ:
            hdr_value = "%s,%s" % (environ[key], hdr_value)
        environ[key] = hdr_value

    if host:
        environ['SERVER_NAME'], environ['SERVER_PORT'] = \
            util.parse_host(host, req.scheme)
    elif server:
        environ['SERVER_NAME'] = str(server[0])
        environ['SERVER_PORT'] = str(server[1]) if server[1] is not None else ""

    environ.update(descriptor.environment_update)

    return environ
