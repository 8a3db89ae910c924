#
# This file is part of cgigate released under the MIT license.
# See the NOTICE for more information.

import asyncio
import json
import os
from unittest import mock

import pytest

from cgigate import gateway
from cgigate.errors import (
    DuplicateHeader, GatewayTimeout, InvalidHeader, NoHeaderTerminator,
    ProcessFailed, UnsupportedDirective,
)
from cgigate.gateway import Gateway

from support import FakeRequest, FakeResponse, make_cfg, make_log, raw, script


async def handle(resolver, request=None, **cfg):
    log = make_log()
    gw = Gateway(resolver, make_cfg(**cfg), log)
    response = FakeResponse()
    st = await gw.handle(request or FakeRequest(), response)
    return st, response, log


def always(descriptor):
    return lambda req: descriptor


@pytest.mark.asyncio
async def test_plain_response():
    st, resp, log = await handle(always(raw("Content-Type: text/plain\n\nHELLO")))

    assert st.state == gateway.COMPLETED
    assert resp.status == 200
    assert resp.headers == [("Content-Type", "text/plain")]
    assert bytes(resp.body) == b"HELLO"
    assert resp.finished
    assert resp.events[0] == ("start", 200, [("Content-Type", "text/plain")])
    assert resp.events[-1] == ("end",)
    log.access.assert_called_once()


@pytest.mark.asyncio
async def test_status_without_body():
    st, resp, _ = await handle(always(raw("Status: 302 Found\n\n")))

    assert st.state == gateway.COMPLETED
    assert resp.status == 302
    assert bytes(resp.body) == b""
    assert resp.finished


@pytest.mark.asyncio
async def test_location_is_not_redirected():
    st, resp, log = await handle(
        always(raw("Status: 302 Found\nLocation: /x\n\n")))

    assert st.state == gateway.FAILED
    assert isinstance(st.error, UnsupportedDirective)
    assert resp.status == 500
    assert resp.get_header("Location") is None
    assert b"UnsupportedDirective" in resp.body
    log.exception.assert_called_once()


@pytest.mark.asyncio
async def test_non_zero_exit_after_body():
    st, resp, log = await handle(
        always(raw("Content-Type: text/plain\n\npartial", exit_code=1)))

    assert st.state == gateway.FAILED
    assert isinstance(st.error, ProcessFailed)
    assert resp.status == 200
    assert bytes(resp.body) == b"partial"
    assert resp.finished
    log.error.assert_called_once()
    log.exception.assert_not_called()


@pytest.mark.asyncio
async def test_not_found_does_not_spawn():
    with mock.patch("asyncio.create_subprocess_exec") as spawn:
        st, resp, _ = await handle(lambda req: None)

    spawn.assert_not_called()
    assert st.state == gateway.COMPLETED
    assert st.process is None
    assert resp.status == 404
    assert resp.get_header("Content-Type") == "text/html; charset=utf-8"
    assert resp.get_header("Content-Length") == str(len(resp.body))
    assert b"Not Found" in resp.body


@pytest.mark.asyncio
async def test_async_resolver():
    calls = []

    async def resolve(req):
        calls.append(req.path)
        return raw("Content-Type: text/plain\n\nasync")

    st, resp, _ = await handle(resolve, FakeRequest(path="/async"))
    assert calls == ["/async"]
    assert bytes(resp.body) == b"async"


@pytest.mark.asyncio
async def test_resolver_error():
    def resolve(req):
        raise KeyError("no such script")

    st, resp, log = await handle(resolve)
    assert st.state == gateway.FAILED
    assert resp.status == 500
    assert b"KeyError" in resp.body
    log.exception.assert_called_once()


@pytest.mark.asyncio
@pytest.mark.parametrize("output, error", [
    ("Content-Type: a\nContent-Type: b\n\nbody", DuplicateHeader),
    ("Status: 200\nStatus: 201\n\nbody", DuplicateHeader),
    ("Content-Type: text/plain\nno colon here\n\nbody", InvalidHeader),
    ("Content-Type: text/plain\n", NoHeaderTerminator),
])
async def test_protocol_violation_before_body(output, error):
    st, resp, _ = await handle(always(raw(output)))

    assert isinstance(st.error, error)
    assert resp.status == 500
    assert resp.events[0][1] == 500


@pytest.mark.asyncio
async def test_passthrough_headers():
    output = ("Set-Cookie: a=1\nContent-Type: text/plain\n"
              "Set-Cookie: b=2\nStatus: 201 Created\n\n")
    _, resp, _ = await handle(always(raw(output)))

    assert resp.status == 201
    assert resp.headers == [
        ("Set-Cookie", "a=1"),
        ("Set-Cookie", "b=2"),
        ("Content-Type", "text/plain"),
    ]


@pytest.mark.asyncio
async def test_request_headers_reach_program():
    req = FakeRequest(method="POST", query="q=1", headers=[
        ("Host", "example.org:8080"), ("X-Foo", "bar")])
    st, resp, _ = await handle(
        always(script("env", path_info="/extra", env={"FOO": "BAR"})), req)

    env = json.loads(bytes(resp.body))
    assert resp.get_header("Content-Type") == "application/json"
    assert env["HTTP_X_FOO"] == "bar"
    assert env["REQUEST_METHOD"] == "POST"
    assert env["QUERY_STRING"] == "q=1"
    assert env["SERVER_NAME"] == "example.org"
    assert env["SERVER_PORT"] == "8080"
    assert env["PATH_INFO"] == "/extra"
    assert env["SCRIPT_NAME"] == "env.py"
    assert env["FOO"] == "BAR"
    assert st.environ["FOO"] == "BAR"


@pytest.mark.asyncio
async def test_request_body_reaches_program():
    body = b"a=1&b=2" * 1000
    req = FakeRequest(method="POST", body=body,
                      headers=[("Content-Length", str(len(body)))])
    _, resp, _ = await handle(always(script("echo")), req)

    assert resp.get_header("X-Length") == str(len(body))
    assert bytes(resp.body) == body


@pytest.mark.asyncio
async def test_large_output_before_reading_body():
    size = 1024 * 1024
    req = FakeRequest(method="POST", body=b"y" * size)
    st, resp, _ = await handle(always(script("chatty", str(size))), req)

    assert st.state == gateway.COMPLETED
    assert resp.body.endswith(b"read %d\n" % size)


@pytest.mark.asyncio
async def test_timeout_terminates_program(tmp_path):
    pidfile = tmp_path / "pid"
    st, resp, log = await handle(always(script("sleep", str(pidfile))),
                                 timeout=0.5, kill_timeout=0.5)

    assert isinstance(st.error, GatewayTimeout)
    assert resp.status == 500
    assert b"GatewayTimeout" in resp.body
    assert st.process.returncode is not None
    if pidfile.exists() and pidfile.read_text():
        with pytest.raises(ProcessLookupError):
            os.kill(int(pidfile.read_text()), 0)


@pytest.mark.asyncio
async def test_client_abort_terminates_program(tmp_path):
    pidfile = tmp_path / "pid"
    req = FakeRequest()
    log = make_log()
    gw = Gateway(always(script("sleep", str(pidfile))), make_cfg(), log)
    resp = FakeResponse()

    task = asyncio.ensure_future(gw.handle(req, resp))
    for _ in range(100):
        if pidfile.exists() and pidfile.read_text():
            break
        await asyncio.sleep(0.05)
    req.aborted.set()
    st = await asyncio.wait_for(task, 10)

    assert st.state == gateway.FAILED
    assert st.error is None
    assert not resp.started
    assert st.process.returncode is not None
    log.exception.assert_not_called()


@pytest.mark.asyncio
async def test_program_dying_before_headers():
    st, resp, _ = await handle(always(raw("Broken", exit_code=2)))
    assert isinstance(st.error, NoHeaderTerminator)
    assert resp.status == 500
    assert b"Broken" in resp.body


@pytest.mark.asyncio
async def test_error_page_shows_stderr_tail():
    gw = Gateway(always(script("stderr")), make_cfg(), make_log())
    err = ProcessFailed("prog", 2, b"first problem\n<second>\n")
    page = gw.describe_error(err)
    assert "exited with non-zero (2)" in page
    assert "<second>" in page

    resp = FakeResponse()
    await gw.server_error(resp, page)
    assert b"&lt;second&gt;" in resp.body
    assert resp.status == 500


@pytest.mark.asyncio
async def test_debug_shows_traceback():
    def resolve(req):
        raise RuntimeError("boom")

    _, resp, _ = await handle(resolve, debug=True)
    assert resp.status == 500
    assert b"Traceback" in resp.body
    assert b"RuntimeError: boom" in resp.body


@pytest.mark.asyncio
async def test_access_log_arguments():
    req = FakeRequest(path="/x")
    st, resp, log = await handle(always(raw("\nbody")), req)

    args = log.access.call_args[0]
    assert args[0] is resp
    assert args[1] is req
    assert args[2] is st.environ
    assert args[3].total_seconds() >= 0


@pytest.mark.asyncio
async def test_crash_before_headers_shows_stderr():
    st, resp, _ = await handle(always(script("crash")))

    assert isinstance(st.error, NoHeaderTerminator)
    assert resp.status == 500
    assert b"ImportError: No module named" in resp.body
    assert b"missing_dependency" in resp.body
    assert st.process.returncode == 1


@pytest.mark.asyncio
async def test_timeout_after_response_started():
    st, resp, log = await handle(always(script("partial")),
                                 timeout=1, kill_timeout=0.5)

    assert isinstance(st.error, GatewayTimeout)
    assert st.state == gateway.FAILED
    assert resp.status == 200
    assert bytes(resp.body) == b"part"
    assert resp.finished is False
    assert ("end",) not in resp.events
    log.exception.assert_not_called()
    log.error.assert_called_once()
    assert isinstance(log.error.call_args[0][2], GatewayTimeout)
    assert st.process.returncode is not None
    with pytest.raises(ProcessLookupError):
        os.kill(st.process.pid, 0)
