#
# This file is part of cgigate released under the MIT license.
# See the NOTICE for more information.

"""
CGI gateway serving the programs in ``examples/cgi-bin``.

Run with:
    gunicorn -k asgi --bind 127.0.0.1:5001 examples.cgiapp:app

Test with:
    curl http://127.0.0.1:5001/env.sh
    curl http://127.0.0.1:5001/env.py/some/path?x=1
    curl -X POST http://127.0.0.1:5001/env.py -d "test data"
"""

import os
import sys

from cgigate.asgi import CGIApplication
from cgigate.config import Config
from cgigate.script import ExecutionDescriptor

CGI_BIN = os.path.join(os.path.dirname(os.path.abspath(__file__)), "cgi-bin")


def resolve(request):
    if request.path == "/env.sh":
        return ExecutionDescriptor(
            script_name="env.sh",
            path_info="",
            command_path=os.path.join(CGI_BIN, "env.sh"),
        )

    prefix = "/env.py"
    if request.path == prefix or request.path.startswith(prefix + "/"):
        return ExecutionDescriptor(
            script_name="env.py",
            path_info=request.path[len(prefix):],
            command_path=sys.executable,
            command_args=[os.path.join(CGI_BIN, "env.py")],
            environment_update={"FOO": "BAR"},
        )

    return None


app = CGIApplication(resolve, Config(log_stderr=True, loglevel="debug",
                                     accesslog="-"))
