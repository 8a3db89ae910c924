#
# This file is part of cgigate released under the MIT license.
# See the NOTICE for more information.

import os
import sys
from unittest import mock

from cgigate.config import Config
from cgigate.http import Request, Response
from cgigate.script import ExecutionDescriptor

CGI_BIN = os.path.join(os.path.dirname(os.path.abspath(__file__)), "cgi-bin")


def script(name, *args, script_name=None, path_info="", env=None):
    """Descriptor running ``tests/cgi-bin/<name>.py`` with the test python."""
    return ExecutionDescriptor(
        script_name=script_name or "%s.py" % name,
        path_info=path_info,
        command_path=sys.executable,
        command_args=[os.path.join(CGI_BIN, "%s.py" % name)] + list(args),
        environment_update=env,
    )


def raw(output, exit_code=0):
    """Descriptor of a program writing ``output`` verbatim."""
    return script("raw", output, str(exit_code))


def make_cfg(**kwargs):
    kwargs.setdefault("timeout", 10)
    return Config(**kwargs)


def make_log():
    return mock.Mock()


class FakeRequest(Request):

    def __init__(self, method="GET", path="/", query="", headers=None,
                 body=b"", remote_addr="127.0.0.1", server=("127.0.0.1", 8000),
                 version="1.1", remote_user=None, auth_type=None):
        super().__init__()
        self.method = method
        self.path = path
        self.query = query
        self.headers = list(headers or [])
        self.body = body
        self.remote_addr = remote_addr
        self.server = server
        self.version = version
        self.remote_user = remote_user
        self.auth_type = auth_type
        self.offset = 0

    async def read(self, size=-1):
        if size < 0:
            size = len(self.body) - self.offset
        data = self.body[self.offset:self.offset + size]
        self.offset += len(data)
        return data


class FakeResponse(Response):

    def __init__(self):
        super().__init__()
        self.events = []
        self.body = bytearray()

    async def send_headers(self):
        self.events.append(("start", self.status, self.headers))

    async def send_body(self, data):
        self.events.append(("body", len(data)))
        self.body.extend(data)

    async def send_end(self):
        self.events.append(("end",))

    def get_header(self, name):
        for hname, value in self.headers:
            if hname.lower() == name.lower():
                return value
        return None
